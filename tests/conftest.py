"""Shared test fixtures.

Hey future me - database tests use a throwaway SQLite FILE under tmp_path, not :memory:. The
bulk executor and the pipeline runner open several sessions, and each new connection to
:memory: would see an empty database.
"""

from collections.abc import AsyncGenerator, Callable
from io import BytesIO
from pathlib import Path

import pytest
import pytest_asyncio
from PIL import Image

from catalogaudit.application.services.rules.rule_service import RuleService
from catalogaudit.config import Settings
from catalogaudit.config.settings import DatabaseSettings, RulesSettings
from catalogaudit.domain.entities import Artist
from catalogaudit.infrastructure.persistence import (
    Database,
    RuleRepository,
    ViolationRepository,
)


def image_bytes(
    width: int, height: int, fmt: str = "JPEG", mode: str = "RGB", color: object = "red"
) -> bytes:
    """Encode a solid image of the given size."""
    buffer = BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture
def write_image(tmp_path: Path) -> Callable[..., Path]:
    """Write a solid image into a directory (tmp_path by default)."""

    def _write(
        name: str,
        width: int,
        height: int,
        directory: Path | None = None,
        fmt: str | None = None,
        mode: str = "RGB",
    ) -> Path:
        target = (directory or tmp_path) / name
        target.parent.mkdir(parents=True, exist_ok=True)
        if fmt is None:
            fmt = "PNG" if name.lower().endswith(".png") else "JPEG"
        target.write_bytes(image_bytes(width, height, fmt=fmt, mode=mode))
        return target

    return _write


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        app_env="test",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
        rules=RulesSettings(scheduler_interval_hours=0),
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with tables created and the built-in rules seeded."""
    database = Database(settings)
    await database.create_tables()
    async with database.session_scope() as session:
        await RuleService(RuleRepository(session), ViolationRepository(session)).seed_defaults()
    yield database
    await database.close()


@pytest.fixture
def artist_dir(tmp_path: Path) -> Path:
    path = tmp_path / "library" / "Test Artist"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_artist(artist_dir: Path) -> Callable[..., Artist]:
    """Artist pointing at artist_dir, fields overridable by keyword."""

    def _make(**overrides: object) -> Artist:
        values: dict[str, object] = {"name": "Test Artist", "path": str(artist_dir)}
        values.update(overrides)
        return Artist(**values)  # type: ignore[arg-type]

    return _make
