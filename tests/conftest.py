"""Shared fixtures: build date-folder trees under a temporary site root."""

from pathlib import Path

import pytest


def lesson_page(title: str) -> str:
    return f"<!DOCTYPE html>\n<html><head><title>{title}</title></head><body><h1>{title}</h1></body></html>\n"


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def make_day(site: Path):
    """Create a day folder holding lesson.html plus optional sibling files."""

    def _make_day(name: str, parent: Path | None = None, title: str | None = None, extras: dict | None = None) -> Path:
        folder = (parent or site) / name
        folder.mkdir(parents=True, exist_ok=True)
        (folder / "lesson.html").write_text(lesson_page(title or f"Lesson {name}"), encoding="utf-8")
        for filename, content in (extras or {}).items():
            (folder / filename).write_text(content, encoding="utf-8")
        return folder

    return _make_day


@pytest.fixture
def snapshot():
    """Return a function mapping every path under a root to its bytes (None for directories)."""

    def _snapshot(root: Path) -> dict[str, bytes | None]:
        return {
            path.relative_to(root).as_posix(): (None if path.is_dir() else path.read_bytes())
            for path in sorted(root.rglob("*"))
        }

    return _snapshot
