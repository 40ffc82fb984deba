"""Shared fixtures: isolated SQLite databases and source files."""
import pytest
import pytest_asyncio

from clippilot.db.database import build_engine, build_session_maker, close_db, init_db
from clippilot.pipeline.domain import MediaInfo, SourceDescriptor
from clippilot.services.job_store import JobStore


@pytest_asyncio.fixture
async def store(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield JobStore(build_session_maker(engine))
    await close_db(engine)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "source.mp4"
    path.write_bytes(b"not really a video")
    return path


@pytest.fixture
def source(source_file):
    return SourceDescriptor(type="file", path=source_file)


@pytest.fixture
def media_info():
    return MediaInfo(duration_sec=600.0, width=1920, height=1080, fps=30.0, bitrate=4_000_000)
