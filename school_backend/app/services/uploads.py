"""
Upload storage for registration files.

Files are checked (type, size) and written completely to the upload
directory before the caller touches the database.
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import FrozenSet, Optional
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from school_backend.app.core.config import settings
from school_backend.app.core.exceptions import ValidationError

logger = logging.getLogger("school_registry")


@dataclass(frozen=True)
class UploadRule:
    field_name: str
    content_types: FrozenSet[str]
    type_message: str


PHOTO_RULE = UploadRule(
    field_name="photo",
    content_types=frozenset({"image/jpeg", "image/jpg", "image/png"}),
    type_message="Photo must be JPG or PNG format",
)

BIRTH_CERTIFICATE_RULE = UploadRule(
    field_name="birthCertificate",
    content_types=frozenset({"application/pdf", "image/jpeg", "image/png"}),
    type_message="Birth certificate must be PDF, JPG, or PNG",
)


def _write_file(path: str, content: bytes) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "wb") as handle:
        handle.write(content)
        handle.flush()
        os.fsync(handle.fileno())


async def read_upload(upload: Optional[UploadFile], rule: UploadRule) -> Optional[bytes]:
    """Validate one uploaded file and return its bytes (None when no file was sent)."""
    if upload is None or not upload.filename:
        return None

    if upload.content_type not in rule.content_types:
        raise ValidationError(rule.type_message, details={"field": rule.field_name})

    content = await upload.read(settings.max_upload_bytes + 1)
    if len(content) > settings.max_upload_bytes:
        raise ValidationError(
            f"{rule.field_name} exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB limit",
            details={"field": rule.field_name},
        )
    return content


async def store_upload(upload: UploadFile, rule: UploadRule, content: bytes) -> str:
    """Write the file as <field>-<millis>-<random><ext>; returns the stored path."""
    extension = os.path.splitext(upload.filename or "")[1].lower()
    filename = f"{rule.field_name}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"
    path = os.path.join(settings.upload_dir, filename)
    await run_in_threadpool(_write_file, path, content)
    return path.replace("\\", "/")


def discard_upload(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except OSError:
        logger.warning("Could not remove orphaned upload %s", path)
