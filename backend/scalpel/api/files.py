"""
Processing API:

options + files → validate (count, size, sniff) → reserve quota → stage →
rename → stream zip.

Everything that can reject the batch happens before the first archive byte,
so failures are ordinary JSON errors. Usage is charged on admission, right
after validation, and nothing after that point refunds it.
"""
import json
import re
import time
from typing import List, Optional

import anyio
import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from scalpel.api.deps import get_writer_account
from scalpel.config import settings
from scalpel.core.archive import ArchiveAssembler, ArchiveEntry
from scalpel.core.errors import InvalidInput, ProcessingTimeout
from scalpel.core.ledger import QuotaLedger, get_ledger
from scalpel.core.ratelimit import limit_processing
from scalpel.core.rename import rename
from scalpel.core.staging import StagingArea
from scalpel.core.validation import UploadValidator, sanitize_entry_name, sanitize_filename
from scalpel.models.account import Account
from scalpel.schemas.rename import RenameOptions

router = APIRouter()
log = structlog.get_logger()


def get_validator() -> UploadValidator:
    return UploadValidator(
        allowed_types=settings.ALLOWED_CONTENT_TYPES,
        max_file_size=settings.MAX_FILE_SIZE_BYTES,
        max_files=settings.MAX_FILES_PER_UPLOAD,
    )


def get_assembler() -> ArchiveAssembler:
    return ArchiveAssembler(compresslevel=settings.ZIP_COMPRESSION_LEVEL)


def parse_options(raw: Optional[str]) -> RenameOptions:
    if not raw:
        return RenameOptions()
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise InvalidInput("Malformed options") from e
    if not isinstance(data, dict):
        raise InvalidInput("Malformed options")
    return RenameOptions.model_validate(data)


def archive_filename(options: RenameOptions) -> str:
    base = re.sub(r"\s+", "_", options.base_name)
    base = sanitize_filename(base, fallback="renamed").replace(" ", "_")
    return f"{base}_{int(time.time() * 1000)}.zip"


def archive_response(
    assembler: ArchiveAssembler,
    entries: List[ArchiveEntry],
    staging: StagingArea,
    filename: str,
    deadline: Optional[float] = None,
) -> StreamingResponse:
    # the background task also covers a response dropped before its first chunk
    return StreamingResponse(
        assembler.stream(entries, deadline=deadline, on_close=staging.cleanup),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        background=BackgroundTask(staging.cleanup),
    )


@router.post("/process-files")
async def process_files(
    account: Account = Depends(get_writer_account),
    _limit: None = Depends(limit_processing),
    files: List[UploadFile] = File(default=[]),
    options: Optional[str] = Form(default=None),
    ledger: QuotaLedger = Depends(get_ledger),
    validator: UploadValidator = Depends(get_validator),
    assembler: ArchiveAssembler = Depends(get_assembler),
):
    rename_options = parse_options(options)
    deadline = time.monotonic() + settings.PROCESSING_TIMEOUT_SEC

    try:
        with anyio.fail_after(settings.PROCESSING_TIMEOUT_SEC):
            validated = await validator.validate(files)
    except TimeoutError as e:
        raise ProcessingTimeout("Processing timed out") from e

    # charged before anything touches disk; never refunded
    await ledger.reserve(account.id, len(validated))

    staging = StagingArea(settings.TMP_DIR)
    try:
        with anyio.fail_after(max(0.0, deadline - time.monotonic())):
            entries = []
            for index, item in enumerate(validated):
                path = await staging.put(item.stream, item.safe_name)
                new_name = sanitize_entry_name(rename(item.safe_name, index, rename_options))
                entries.append(ArchiveEntry(name=new_name, source=path))
    except TimeoutError as e:
        staging.cleanup()
        raise ProcessingTimeout("Processing timed out") from e
    except BaseException:
        staging.cleanup()
        raise

    log.info("processing_started", account_id=str(account.id), files=len(entries))
    return archive_response(assembler, entries, staging, archive_filename(rename_options), deadline)
