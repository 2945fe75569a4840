import logging
import mimetypes
import os
import uuid
from typing import Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from app.errors import NotFoundError, ValidationError
from app.types.contracts import Attachment, FileAttachment
from app.utils.formatting import format_file_size
from config import settings

_LOGGER = logging.getLogger(__name__)


def _bucket() -> str:
    if not settings.ATTACHMENTS_S3_BUCKET:
        raise RuntimeError("ATTACHMENTS_S3_BUCKET environment variable is not set")
    return settings.ATTACHMENTS_S3_BUCKET


def _client():
    return boto3.client("s3")


def object_key(user_id: str, file_name: str) -> str:
    """Storage path for an upload: ``<user>/<uuid>-<basename>``."""
    base = os.path.basename(file_name) or "attachment"
    return f"{user_id}/{uuid.uuid4()}-{base}"


def upload_attachment(user_id: str, file_name: str, data: bytes, content_type: Optional[str] = None) -> Attachment:
    """Store *data* and return the attachment reference kept on the message row."""
    max_bytes = settings.MAX_ATTACHMENT_MB * 1024 * 1024
    if len(data) > max_bytes:
        raise ValidationError(
            f"File {file_name} is too large ({format_file_size(len(data))}). "
            f"Maximum size is {settings.MAX_ATTACHMENT_MB}MB."
        )
    upload = FileAttachment(
        name=os.path.basename(file_name),
        size=len(data),
        type=content_type or mimetypes.guess_type(file_name)[0] or "application/octet-stream",
    )
    key = object_key(user_id, file_name)
    try:
        _client().put_object(Bucket=_bucket(), Key=key, Body=data, ContentType=upload.type)
    except ClientError as e:
        raise RuntimeError(f"Error uploading file to S3: {e}")
    upload.path = key
    upload.progress = 100.0
    upload.is_uploaded = True
    return upload.to_attachment()


def signed_url(path: str, file_name: Optional[str] = None, download: bool = False) -> str:
    """Time-limited URL for a stored attachment."""
    params = {"Bucket": _bucket(), "Key": path}
    if download:
        params["ResponseContentDisposition"] = f'attachment; filename="{file_name or os.path.basename(path)}"'
    try:
        return _client().generate_presigned_url(
            "get_object", Params=params, ExpiresIn=settings.ATTACHMENT_URL_TTL
        )
    except ClientError as e:
        raise NotFoundError(f"Attachment {path} is not available: {e}")


def delete_attachments(paths: Iterable[str]) -> int:
    keys = [{"Key": p} for p in paths if p]
    if not keys:
        return 0
    try:
        _client().delete_objects(Bucket=_bucket(), Delete={"Objects": keys, "Quiet": True})
    except ClientError as e:
        _LOGGER.error("Error deleting attachments %s: %s", [k["Key"] for k in keys], e)
        raise
    return len(keys)
