"""
Face Matching Service

Client for the external face-matching service plus the scatter-gather search that
compares one captured face against every enrolled participant of an event.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import httpx

from app.core.config import settings
from app.core.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"


def validate_face_image(image: bytes) -> bytes:
    """Accept PNG or JPEG captures up to ``FACE_MAX_IMAGE_BYTES``."""
    if not image:
        raise ValidationError("Face image is empty")
    if len(image) > settings.FACE_MAX_IMAGE_BYTES:
        limit_mb = settings.FACE_MAX_IMAGE_BYTES / (1024 * 1024)
        raise ValidationError(f"Face image must be smaller than {limit_mb:g} MB")
    if not (image.startswith(PNG_SIGNATURE) or image.startswith(JPEG_SIGNATURE)):
        raise ValidationError("Face image must be a PNG or JPEG")
    return image


def decode_face_image(encoded: str) -> bytes:
    """Decode a base64 capture, with or without a ``data:image/...;base64,`` prefix."""
    if encoded.startswith("data:"):
        encoded = encoded.partition(",")[2]
    try:
        image = base64.b64decode(encoded, validate=True)
    except (ValueError, TypeError):
        raise ValidationError("Face image is not valid base64")
    return validate_face_image(image)


@dataclass
class FaceComparison:
    matched: bool
    similarity: float


@dataclass
class FaceMatch:
    key: Any  # caller's candidate key, a registration id in practice
    similarity: float


class FaceMatcher:
    """Interface of the face-matching service."""

    @property
    def is_configured(self) -> bool:
        return True

    async def compare(self, source_image: bytes, target_ref: str, threshold: float) -> FaceComparison:
        raise NotImplementedError

    async def index(self, image: bytes) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class HttpFaceMatcher(FaceMatcher):
    """Talks JSON to the face-matching service.

    ``POST {base}/compare`` with ``source_image`` (base64), ``target_ref`` and
    ``threshold`` answers ``{"matched": bool, "similarity": float}``;
    ``POST {base}/index`` with ``image`` answers ``{"descriptor_ref": str}``.
    """

    def __init__(self, base_url: Optional[str], api_key: Optional[str] = None, timeout: float = 5.0):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout)
        return self._client

    async def _post(self, path: str, payload: dict) -> dict:
        if not self.is_configured:
            raise ExternalServiceError("Face matching service is not configured")
        try:
            response = await self._get_client().post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Face matching request failed: {type(e).__name__}")
        except ValueError:
            raise ExternalServiceError("Face matching service returned invalid JSON")

    async def compare(self, source_image: bytes, target_ref: str, threshold: float) -> FaceComparison:
        data = await self._post("/compare", {
            "source_image": base64.b64encode(source_image).decode(),
            "target_ref": target_ref,
            "threshold": threshold,
        })
        try:
            return FaceComparison(matched=bool(data["matched"]), similarity=float(data.get("similarity") or 0))
        except (KeyError, TypeError, ValueError):
            raise ExternalServiceError("Face matching service returned an unexpected payload")

    async def index(self, image: bytes) -> str:
        data = await self._post("/index", {"image": base64.b64encode(image).decode()})
        descriptor_ref = data.get("descriptor_ref") if isinstance(data, dict) else None
        if not descriptor_ref:
            raise ExternalServiceError("No face detected or face indexing failed")
        return str(descriptor_ref)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


async def search_faces(
    matcher: FaceMatcher,
    source_image: bytes,
    candidates: Sequence[Tuple[Any, str]],
    *,
    threshold: float,
    timeout: float,
    concurrency: int,
    strategy: str = "best",
) -> Optional[FaceMatch]:
    """Compare ``source_image`` against every ``(key, face_ref)`` candidate.

    At most ``concurrency`` comparisons run at once and each one is bounded by
    ``timeout``. A failed or timed-out comparison counts as "no match" for that
    candidate only. With ``strategy="best"`` the highest similarity at or above
    ``threshold`` wins; with ``"first"`` the first qualifying result wins and the
    remaining comparisons are cancelled.
    """
    if not candidates:
        return None

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def compare_one(key: Any, face_ref: str) -> Optional[FaceMatch]:
        async with semaphore:
            try:
                result = await asyncio.wait_for(
                    matcher.compare(source_image, face_ref, threshold), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Face comparison timed out for candidate {key}")
                return None
            except ExternalServiceError as e:
                logger.warning(f"Face comparison failed for candidate {key}: {e.message}")
                return None
            except Exception:
                logger.warning(f"Face comparison errored for candidate {key}", exc_info=True)
                return None
        if result.matched and result.similarity >= threshold:
            return FaceMatch(key=key, similarity=result.similarity)
        return None

    tasks = [asyncio.ensure_future(compare_one(key, face_ref)) for key, face_ref in candidates]

    if strategy == "first":
        try:
            for next_done in asyncio.as_completed(tasks):
                match = await next_done
                if match is not None:
                    return match
            return None
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    results: List[Optional[FaceMatch]] = await asyncio.gather(*tasks)
    matches = [match for match in results if match is not None]
    if not matches:
        return None
    # Ties go to the earliest candidate so the outcome does not depend on completion order
    return max(matches, key=lambda match: match.similarity)


face_matcher = HttpFaceMatcher(
    settings.FACE_MATCHER_URL,
    api_key=settings.FACE_MATCHER_API_KEY,
    timeout=settings.FACE_MATCH_TIMEOUT_SECONDS,
)
