"""
Per-request staging directory.

Uploads are copied here under random-prefixed names so the archive can be
streamed after the multipart handles are closed. Stored names come from the
sanitized file name only, never from client paths.
"""
import os
import secrets
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional

import structlog
from starlette.concurrency import run_in_threadpool

log = structlog.get_logger()

COPY_CHUNK = 1024 * 1024


class StagingArea:

    def __init__(self, root: Optional[str] = None):
        self._root = root or None
        self._dir: Optional[Path] = None

    @property
    def path(self) -> Optional[Path]:
        return self._dir

    def _ensure_dir(self) -> Path:
        if self._dir is None:
            if self._root:
                os.makedirs(self._root, exist_ok=True)
            self._dir = Path(tempfile.mkdtemp(prefix="scalpel-", dir=self._root))
            log.debug("staging_created", path=str(self._dir))
        return self._dir

    def _copy(self, source: BinaryIO, safe_name: str) -> Path:
        target = self._ensure_dir() / f"{secrets.token_hex(6)}_{safe_name}"
        source.seek(0)
        with open(target, "xb") as out:
            shutil.copyfileobj(source, out, COPY_CHUNK)
        return target

    async def put(self, source: BinaryIO, safe_name: str) -> Path:
        return await run_in_threadpool(self._copy, source, safe_name)

    def cleanup(self) -> None:
        if self._dir is None:
            return
        try:
            shutil.rmtree(self._dir)
            log.debug("staging_removed", path=str(self._dir))
        except OSError as e:
            log.warning("staging_cleanup_failed", path=str(self._dir), error=str(e))
        self._dir = None
