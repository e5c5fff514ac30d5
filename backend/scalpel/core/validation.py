"""
Upload validation: batch ceilings, content sniffing and name sanitization.

1. Batch size (count) and per-file size are checked from upload metadata
   first, so an oversize batch is rejected before any content is read.
2. Every file's leading bytes are sniffed with libmagic. The detected type
   is authoritative; the client-declared type is only logged.
3. One disallowed file rejects the whole batch.

Content that libmagic cannot classify is accepted.
"""
import re
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterable, Optional, Sequence

import structlog
from fastapi import UploadFile

from scalpel.core.errors import InvalidInput, PayloadTooLarge, UnsupportedType

log = structlog.get_logger()

SNIFF_BYTES = 2048
MAX_NAME_LENGTH = 200

# libmagic answers for "no idea" or empty content
UNRECOGNISED_TYPES = frozenset({
    "",
    "application/octet-stream",
    "application/x-empty",
    "inode/x-empty",
})

_UNSAFE_CHARS = re.compile(r"[^\w.\-() ]+", re.ASCII)


def sniff_mime(head: bytes) -> Optional[str]:
    """MIME type from content bytes, or None if nothing was recognised."""
    import magic

    detected = (magic.from_buffer(head, mime=True) or "").strip().lower()
    if detected in UNRECOGNISED_TYPES:
        return None
    return detected


def sanitize_filename(name: Optional[str], fallback: str = "file") -> str:
    """Strip directories and unsafe characters; safe for archive entries and disk."""
    base = (name or "").replace("\\", "/").split("/")[-1]
    base = base.replace("\x00", "")
    base = _UNSAFE_CHARS.sub("_", base)[:MAX_NAME_LENGTH]
    if not base.strip(". "):
        return fallback
    return base


_ENTRY_UNSAFE = re.compile(r'[/\\\x00-\x1f\x7f<>:"|?*]')


def sanitize_entry_name(name: Optional[str], fallback: str = "file") -> str:
    """
    Make a renamed file safe as an archive entry without changing what the
    user asked for: separators and control characters become "_", Unicode
    is kept, and an over-long name is shortened in the stem so the
    extension survives.
    """
    name = _ENTRY_UNSAFE.sub("_", name or "")
    if not name.strip(". "):
        return fallback
    if len(name) <= MAX_NAME_LENGTH:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot or len(ext) >= MAX_NAME_LENGTH // 2:
        return name[:MAX_NAME_LENGTH]
    return stem[:MAX_NAME_LENGTH - len(ext) - 1] + dot + ext


@dataclass
class ValidatedFile:
    original_name: str
    safe_name: str
    declared_type: Optional[str]
    detected_type: Optional[str]
    size: int
    stream: BinaryIO


def _size_of(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, 2)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


class UploadValidator:

    def __init__(
        self,
        allowed_types: Iterable[str],
        max_file_size: int,
        max_files: int,
        sniffer: Callable[[bytes], Optional[str]] = sniff_mime,
    ):
        self.allowed_types = frozenset(t.lower() for t in allowed_types)
        self.max_file_size = max_file_size
        self.max_files = max_files
        self._sniff = sniffer

    async def validate(self, uploads: Sequence[UploadFile]) -> list[ValidatedFile]:
        if not uploads:
            raise InvalidInput("No files uploaded")
        if len(uploads) > self.max_files:
            raise PayloadTooLarge(f"Too many files: at most {self.max_files} per upload")

        sizes = []
        for upload in uploads:
            size = _size_of(upload)
            if size > self.max_file_size:
                raise PayloadTooLarge(
                    f"File exceeds maximum size of {self.max_file_size} bytes",
                    filename=sanitize_filename(upload.filename),
                )
            sizes.append(size)

        validated = []
        for upload, size in zip(uploads, sizes):
            safe_name = sanitize_filename(upload.filename)
            head = await upload.read(SNIFF_BYTES)
            await upload.seek(0)

            detected = self._sniff(head)
            if detected is not None and detected not in self.allowed_types:
                log.warning("upload_rejected", filename=safe_name, detected=detected, declared=upload.content_type)
                raise UnsupportedType(safe_name, detected)
            if detected is not None and upload.content_type and detected != upload.content_type.lower():
                log.debug("declared_type_mismatch", filename=safe_name, detected=detected, declared=upload.content_type)

            validated.append(ValidatedFile(
                original_name=upload.filename or "",
                safe_name=safe_name,
                declared_type=upload.content_type,
                detected_type=detected,
                size=size,
                stream=upload.file,
            ))

        log.info("batch_validated", files=len(validated), bytes=sum(sizes))
        return validated
