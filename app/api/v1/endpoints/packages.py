from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.core.deps import get_face_matcher
from app.schemas.registration import PackageEnroll, PackageEnrollResponse
from app.services.face_matching import FaceMatcher, decode_face_image
from app.services.registration_service import registration_service
from app.api.v1.endpoints.registrations import registration_response

router = APIRouter()

@router.post("/{package_id}/enroll", response_model=PackageEnrollResponse)
async def enroll_in_package(
    package_id: int,
    request: PackageEnroll,
    db: Session = Depends(get_db),
    matcher: FaceMatcher = Depends(get_face_matcher),
):
    """Register the participant for every event of a package"""
    face_image = decode_face_image(request.face_image_base64) if request.face_image_base64 else None
    results = await registration_service.enroll_package(
        db,
        package_id=package_id,
        payload=request.dict(),
        face_image=face_image,
        matcher=matcher,
    )
    registrations = await run_in_threadpool(lambda: [registration_response(result) for result in results])
    return PackageEnrollResponse(package_id=package_id, registrations=registrations)
