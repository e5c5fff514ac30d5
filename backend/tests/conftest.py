"""
Delade fixtures: en riktig SQLite-databas per test (via aiosqlite) istället
för Postgres, och en AsyncClient mot appen utan nätverk.
"""
import struct
import zlib

import pytest
from httpx import ASGITransport, AsyncClient


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from scalpel.core.ratelimit import ALL_LIMITERS
    for limiter in ALL_LIMITERS:
        limiter.reset()
    yield


@pytest.fixture
async def database(tmp_path, monkeypatch):
    from scalpel.db import close_db, init_db

    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'scalpel.db'}")
    await close_db()
    await init_db()
    yield
    await close_db()


@pytest.fixture
async def make_account(database):
    from scalpel.core.security import hash_password
    from scalpel.db import new_session
    from scalpel.models.account import Account

    async def _make(email="user@example.com", plan="free", file_limit=50, files_used=0, password="hunter22!"):
        async with new_session() as session:
            account = Account(
                email=email,
                password_hash=hash_password(password),
                plan=plan,
                file_limit=file_limit,
                files_used=files_used,
            )
            session.add(account)
            await session.commit()
            return account.id

    return _make


@pytest.fixture
async def load_account(database):
    from scalpel.db import new_session
    from scalpel.models.account import Account

    async def _load(account_id):
        async with new_session() as session:
            return await session.get(Account, account_id)

    return _load


@pytest.fixture
async def client(database, tmp_path, monkeypatch):
    from scalpel.config import settings
    from scalpel.main import app

    monkeypatch.setattr(settings, "TMP_DIR", str(tmp_path / "staging"))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def signed_in(client, email="user@example.com", password="hunter22!", register=True):
    """Registrerar (eller loggar in) och returnerar CSRF-headern för skrivande anrop."""
    path = "/api/register" if register else "/api/login"
    response = await client.post(path, json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"X-CSRF-Token": client.cookies.get("XSRF-TOKEN")}


def png_bytes() -> bytes:
    """Minimal giltig 1x1 PNG."""
    def chunk(kind: bytes, data: bytes) -> bytes:
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", zlib.crc32(kind + data) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    idat = zlib.compress(b"\x00\xff\x00\x00")
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", idat) + chunk(b"IEND", b"")


def elf_bytes() -> bytes:
    """64-bit ELF executable header (x86-64) padded with zeros."""
    header = (
        b"\x7fELF"              # magic
        + bytes([2, 1, 1, 0])     # 64-bit, little endian, version 1, System V ABI
        + b"\x00" * 8
        + struct.pack("<HHIQQQIHHHHHH", 2, 0x3E, 1, 0x401000, 64, 0, 0, 64, 56, 1, 64, 0, 0)
    )
    return header + b"\x00" * 512


class BrokenSession:
    """Session som tappar anslutningen vid första anropet."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, *args, **kwargs):
        from sqlalchemy.exc import OperationalError
        raise OperationalError("SELECT 1", {}, Exception("connection lost"))

    get = scalar = execute

    async def rollback(self):
        pass
