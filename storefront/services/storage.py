"""
Storefront — Object storage for menu and store images (MinIO / S3)
"""
import io
import logging
import mimetypes
import uuid

from minio import Minio

from storefront.core.config import get_settings
from storefront.core.errors import ValidationError

settings = get_settings()
logger = logging.getLogger(__name__)


def _endpoint() -> str:
    return settings.S3_ENDPOINT.replace("http://", "").replace("https://", "")


def _client() -> Minio:
    return Minio(
        _endpoint(),
        access_key=settings.S3_ACCESS_KEY,
        secret_key=settings.S3_SECRET_KEY,
        secure=settings.S3_SECURE,
    )


def check_image(data: bytes, content_type: str | None) -> None:
    if len(data) > settings.UPLOAD_MAX_BYTES:
        raise ValidationError("파일 크기는 5MB 이하여야 합니다.", field="file")
    if not (content_type or "").startswith("image/"):
        raise ValidationError("이미지 파일만 업로드 가능합니다.", field="file")


def object_name(prefix: str, content_type: str) -> str:
    ext = mimetypes.guess_extension(content_type) or ""
    return f"{prefix}-{uuid.uuid4().hex}{ext}"


def public_url(bucket: str, filename: str) -> str:
    scheme = "https" if settings.S3_SECURE else "http"
    return f"{scheme}://{_endpoint()}/{bucket}/{filename}"


def upload(bucket: str, filename: str, data: bytes, content_type: str, client: Minio | None = None) -> str:
    """Store the bytes and return their public URL. Blocking; call from a worker thread."""
    check_image(data, content_type)
    c = client or _client()
    if not c.bucket_exists(bucket):
        c.make_bucket(bucket)
    c.put_object(bucket, filename, io.BytesIO(data), length=len(data), content_type=content_type)
    logger.info("Uploaded %s/%s (%d bytes)", bucket, filename, len(data))
    return public_url(bucket, filename)
