# File: app/schemas/__init__.py
from .registration import (
    RegistrationSubmit, PackageEnroll, InstantRegistration, CheckEmailRequest, BlockStatusUpdate,
    RegistrationRecord, RegistrationMedia, RegistrationResponse, RegistrationDetail,
    PackageEnrollResponse, CheckEmailResponse, BlockStatusResponse,
)
from .scan import QRScanRequest, ScanMedia, ScanResponse, parse_scan_mode
from .short_link import DeviceUrlRequest, FormUrlRequest, ShortLinkResponse
