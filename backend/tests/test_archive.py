import io
import os
import time
import zipfile

import pytest

from scalpel.api.files import archive_response
from scalpel.core.archive import ArchiveAssembler, ArchiveEntry, EntryNames
from scalpel.core.errors import ProcessingTimeout
from scalpel.core.staging import StagingArea


async def collect(stream) -> bytes:
    return b"".join([chunk async for chunk in stream])


async def test_archive_contains_entries_in_order(tmp_path):
    on_disk = tmp_path / "big.bin"
    payload = os.urandom(300 * 1024)
    on_disk.write_bytes(payload)

    entries = [
        ArchiveEntry("first.txt", b"hello"),
        ArchiveEntry("second.bin", on_disk),
        ArchiveEntry("third.txt", b""),
    ]
    data = await collect(ArchiveAssembler(chunk_size=16 * 1024).stream(entries))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.testzip() is None
        assert zf.namelist() == ["first.txt", "second.bin", "third.txt"]
        assert zf.read("first.txt") == b"hello"
        assert zf.read("second.bin") == payload
        assert zf.read("third.txt") == b""


async def test_archive_streams_in_several_chunks(tmp_path):
    on_disk = tmp_path / "noise.bin"
    on_disk.write_bytes(os.urandom(256 * 1024))

    chunks = [c async for c in ArchiveAssembler(chunk_size=8 * 1024).stream([ArchiveEntry("noise.bin", on_disk)])]
    assert len(chunks) > 1
    assert all(chunks)


async def test_duplicate_names_are_disambiguated():
    entries = [ArchiveEntry("photo.png", b"1"), ArchiveEntry("PHOTO.png", b"2"), ArchiveEntry("photo.png", b"3")]
    data = await collect(ArchiveAssembler().stream(entries))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["photo.png", "PHOTO (2).png", "photo (3).png"]
        assert [zf.read(n) for n in zf.namelist()] == [b"1", b"2", b"3"]


def test_entry_names_without_extension():
    names = EntryNames()
    assert [names.claim(n) for n in ["file.", "file.", "README", "README"]] == [
        "file.", "file (2).", "README", "README (2)",
    ]


async def test_on_close_runs_after_success():
    closed = []
    await collect(ArchiveAssembler().stream([ArchiveEntry("a.txt", b"a")], on_close=lambda: closed.append(True)))
    assert closed == [True]


async def test_abandoned_stream_is_truncated_and_still_cleaned_up(tmp_path):
    staging = StagingArea(str(tmp_path))
    first = await staging.put(io.BytesIO(os.urandom(128 * 1024)), "a.bin")
    second = await staging.put(io.BytesIO(b"second"), "b.txt")
    assert staging.path.exists()

    stream = ArchiveAssembler(chunk_size=4 * 1024).stream(
        [ArchiveEntry("a.bin", first), ArchiveEntry("b.txt", second)],
        on_close=staging.cleanup,
    )
    received = await stream.__anext__()
    await stream.aclose()

    assert received
    assert b"PK\x05\x06" not in received
    with pytest.raises(zipfile.BadZipFile):
        zipfile.ZipFile(io.BytesIO(received))
    assert not any(tmp_path.iterdir())


async def test_deadline_aborts_assembly():
    closed = []
    stream = ArchiveAssembler().stream(
        [ArchiveEntry("a.txt", b"a")],
        deadline=time.monotonic() - 1,
        on_close=lambda: closed.append(True),
    )
    with pytest.raises(ProcessingTimeout):
        await collect(stream)
    assert closed == [True]


async def test_staging_uses_sanitized_unique_names(tmp_path):
    staging = StagingArea(str(tmp_path / "root"))
    one = await staging.put(io.BytesIO(b"1"), "same.txt")
    two = await staging.put(io.BytesIO(b"2"), "same.txt")

    assert one != two
    assert one.parent == two.parent == staging.path
    assert one.name.endswith("_same.txt")
    assert one.read_bytes() == b"1"

    staging.cleanup()
    assert not one.parent.exists()
    assert staging.path is None
    staging.cleanup()


async def test_unstarted_response_still_cleans_staging(tmp_path):
    staging = StagingArea(str(tmp_path))
    path = await staging.put(io.BytesIO(b"payload"), "a.txt")

    response = archive_response(ArchiveAssembler(), [ArchiveEntry("a.txt", path)], staging, "batch.zip")
    assert response.headers["content-disposition"] == 'attachment; filename="batch.zip"'

    # body never iterated, as when the client goes away before the first chunk
    await response.background()
    assert not path.parent.exists()
