"""
Streaming zip assembly.

The archive is written through a non-seekable sink (zip data descriptors),
and the sink is drained after every block, so the response starts before
the last entry is compressed and the full archive never sits in memory.
Aborting (error, deadline, client disconnect closing the generator) skips
the central directory: the client gets a truncated archive and `on_close`
still runs.
"""
import io
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Callable, Iterable, Optional, Union

import structlog
from starlette.concurrency import run_in_threadpool

from scalpel.core.errors import ProcessingTimeout

log = structlog.get_logger()

READ_CHUNK = 64 * 1024


@dataclass
class ArchiveEntry:
    name: str
    source: Union[bytes, Path]

    def open(self) -> BinaryIO:
        if isinstance(self.source, (bytes, bytearray)):
            return io.BytesIO(self.source)
        return open(self.source, "rb")


class ChunkSink:
    """Write-only file object collecting bytes until drained."""

    def __init__(self):
        self._chunks: list[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class EntryNames:
    """
    Hands out unique entry names in arrival order. A repeated name (compared
    case-insensitively) becomes "stem (2).ext", "stem (3).ext", ...
    """

    def __init__(self):
        self._taken: set[str] = set()

    def claim(self, name: str) -> str:
        candidate = name
        if candidate.lower() in self._taken:
            stem, dot, ext = name.rpartition(".")
            if not dot:
                stem, ext = name, ""
            n = 2
            while True:
                candidate = f"{stem} ({n}){dot}{ext}"
                if candidate.lower() not in self._taken:
                    break
                n += 1
        self._taken.add(candidate.lower())
        return candidate


class ArchiveAssembler:

    def __init__(self, compresslevel: int = 6, chunk_size: int = READ_CHUNK):
        self.compresslevel = compresslevel
        self.chunk_size = chunk_size

    async def stream(
        self,
        entries: Iterable[ArchiveEntry],
        deadline: Optional[float] = None,
        on_close: Optional[Callable[[], None]] = None,
    ) -> AsyncIterator[bytes]:
        sink = ChunkSink()
        zf = zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compresslevel)
        names = EntryNames()
        written = 0
        finished = False
        try:
            for entry in entries:
                name = names.claim(entry.name)
                if name != entry.name:
                    log.info("archive_name_collision", requested=entry.name, assigned=name)
                source = await run_in_threadpool(entry.open)
                try:
                    with zf.open(name, "w") as dest:
                        while True:
                            if deadline is not None and time.monotonic() > deadline:
                                raise ProcessingTimeout("Archive assembly timed out")
                            block = await run_in_threadpool(source.read, self.chunk_size)
                            if not block:
                                break
                            await run_in_threadpool(dest.write, block)
                            chunk = sink.drain()
                            if chunk:
                                yield chunk
                finally:
                    source.close()
                written += 1
                chunk = sink.drain()
                if chunk:
                    yield chunk

            zf.close()
            finished = True
            tail = sink.drain()
            if tail:
                yield tail
            log.info("archive_complete", entries=written)
        except Exception as e:
            log.error("archive_aborted", entries=written, error=str(e))
            raise
        finally:
            if not finished:
                # drop buffered bytes; the central directory is never written
                zf.fp = None
                sink.drain()
            if on_close is not None:
                on_close()
