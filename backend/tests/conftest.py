from __future__ import annotations

import asyncio
import sys
import textwrap
import uuid
from pathlib import Path

# Add backend folder to sys.path so `import expense_tracker...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from expense_tracker.core.config import settings
from expense_tracker.core.database import Base
from expense_tracker.models import tables  # noqa: F401
from expense_tracker.services.cache import set_redis_client
from expense_tracker.services.upload_service import UploadService


@pytest.fixture(autouse=True)
def _no_cache(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", None)
    set_redis_client(None)
    yield
    set_redis_client(None)


@pytest.fixture
def db_engine(tmp_path):
    # NullPool: TestClient and pytest-asyncio each run their own event loop
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def upload_service(tmp_path):
    service = UploadService(base_dir=tmp_path / "uploads")
    service.ensure_directories()
    return service


@pytest.fixture
def temp_files(upload_service):
    """Return a callable listing files currently in the temporary upload area."""
    def _list():
        temp_dir = upload_service.base_dir / "temp"
        return sorted(p.name for p in temp_dir.iterdir()) if temp_dir.exists() else []
    return _list


@pytest.fixture
def make_tool(tmp_path):
    """Write a throwaway extraction tool script and return its command line."""
    def _make(body: str) -> list[str]:
        script = tmp_path / f"tool_{uuid.uuid4().hex[:8]}.py"
        script.write_text(textwrap.dedent(body))
        return [sys.executable, str(script)]
    return _make
