from __future__ import annotations

import logging
from collections.abc import Sequence

from dm_service.application.dto.message import UploadedFileDTO
from dm_service.application.exceptions import ValidationError
from dm_service.application.ports.storage import FileStorage
from dm_service.domain.entities.message import Attachment
from dm_service.domain.value_objects.enums import AttachmentKind

logger = logging.getLogger(__name__)


def kind_for(content_type: str) -> AttachmentKind:
    if content_type.startswith("image/"):
        return AttachmentKind.IMAGE
    if content_type.startswith("video/"):
        return AttachmentKind.VIDEO
    return AttachmentKind.FILE


def validate_uploads(
    files: Sequence[UploadedFileDTO],
    *,
    max_files: int,
    max_bytes: int,
    allowed_types: Sequence[str],
) -> None:
    if len(files) > max_files:
        raise ValidationError(f"At most {max_files} attachments per message")
    for f in files:
        if f.content_type not in allowed_types:
            raise ValidationError(
                f"Invalid file type for {f.filename!r}. "
                "Only images, videos, and docs (PDF/Word) are allowed."
            )
        if len(f.data) > max_bytes:
            raise ValidationError(f"{f.filename!r} exceeds {max_bytes} bytes")


async def store_uploads(
    files: Sequence[UploadedFileDTO],
    storage: FileStorage,
    *,
    max_files: int,
    max_bytes: int,
    allowed_types: Sequence[str],
) -> tuple[Attachment, ...]:
    """Validate every upload first, then hand the bytes to file storage.

    Returns attachment metadata in upload order.
    """
    validate_uploads(
        files, max_files=max_files, max_bytes=max_bytes, allowed_types=allowed_types,
    )
    attachments: list[Attachment] = []
    for f in files:
        kind = kind_for(f.content_type)
        url = await storage.save(kind, f.filename, f.data)
        logger.debug("Stored %s attachment %s -> %s", kind, f.filename, url)
        attachments.append(Attachment(kind=kind, url=url, original_name=f.filename))
    return tuple(attachments)


def upload_signature(files: Sequence[UploadedFileDTO]) -> tuple[tuple[AttachmentKind, str], ...]:
    """Kinds and names the uploads will be stored under, without storing them."""
    return tuple((kind_for(f.content_type), f.filename) for f in files)
