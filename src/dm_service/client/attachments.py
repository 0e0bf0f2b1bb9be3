"""Client-side staging of attachments with local preview handles.

A preview handle is acquired when a file is staged and must be released on
every way out of the staged state: replaced, removed, discarded, sent, or
abandoned when the conversation closes.
"""
from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from dm_service.application.dto.message import UploadedFileDTO

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreviewHandle:
    ref: str


class PreviewProvider(Protocol):
    def acquire(self, file: UploadedFileDTO) -> PreviewHandle: ...

    def release(self, handle: PreviewHandle) -> None:
        """Release ``handle``; releasing twice is a no-op."""
        ...


class TempFilePreviewProvider:
    """Materialises each staged file as a temporary file for local preview."""

    def __init__(self, directory: str | None = None) -> None:
        self._directory = directory
        self._active: set[str] = set()

    @property
    def active_count(self) -> int:
        return len(self._active)

    def acquire(self, file: UploadedFileDTO) -> PreviewHandle:
        fd, path = tempfile.mkstemp(
            prefix="dm-preview-",
            suffix=Path(file.filename).suffix,
            dir=self._directory,
        )
        with os.fdopen(fd, "wb") as fh:
            fh.write(file.data)
        self._active.add(path)
        return PreviewHandle(ref=path)

    def release(self, handle: PreviewHandle) -> None:
        if handle.ref not in self._active:
            return
        self._active.discard(handle.ref)
        Path(handle.ref).unlink(missing_ok=True)


@dataclass(frozen=True, slots=True)
class StagedAttachment:
    file: UploadedFileDTO
    preview: PreviewHandle


@dataclass(frozen=True, slots=True)
class Draft:
    """Immutable snapshot of the compose buffer taken when a send starts."""

    text: str
    staged: tuple[StagedAttachment, ...] = ()

    @property
    def files(self) -> tuple[UploadedFileDTO, ...]:
        return tuple(s.file for s in self.staged)

    def release(self, previews: PreviewProvider) -> None:
        for s in self.staged:
            previews.release(s.preview)


@dataclass
class ComposeBuffer:
    """Unsent text and staged attachments for one open conversation."""

    previews: PreviewProvider
    text: str = ""
    _staged: list[StagedAttachment] = field(default_factory=list)

    def __enter__(self) -> ComposeBuffer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clear()

    @property
    def staged(self) -> tuple[StagedAttachment, ...]:
        return tuple(self._staged)

    def is_empty(self) -> bool:
        return not self.text.strip() and not self._staged

    def stage(self, file: UploadedFileDTO) -> StagedAttachment:
        item = StagedAttachment(file=file, preview=self.previews.acquire(file))
        self._staged.append(item)
        return item

    def replace(self, index: int, file: UploadedFileDTO) -> StagedAttachment:
        old = self._staged[index]
        item = StagedAttachment(file=file, preview=self.previews.acquire(file))
        self._staged[index] = item
        self.previews.release(old.preview)
        return item

    def remove(self, index: int) -> None:
        item = self._staged.pop(index)
        self.previews.release(item.preview)

    def snapshot(self) -> Draft:
        return Draft(text=self.text, staged=tuple(self._staged))

    def clear(self) -> None:
        for item in self._staged:
            self.previews.release(item.preview)
        self._staged.clear()
        self.text = ""
