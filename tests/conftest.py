"""Shared pytest fixtures for fastcheck tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

ProjectFactory = Callable[..., Path]


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Return an empty project directory (symlinks resolved)."""
    root = tmp_path / "project"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def make_project(project_root: Path) -> ProjectFactory:
    """
    Return a factory writing a project with a mypy configuration.

    Usage: make_project({"pkg/mod.py": "x = 1\\n"}, mypy_ini="[mypy]\\n")
    """

    def _make(
        files: dict[str, str] | None = None,
        mypy_ini: str | None = "[mypy]\n",
        pyproject: str | None = None,
    ) -> Path:
        if mypy_ini is not None:
            (project_root / "mypy.ini").write_text(mypy_ini)
        if pyproject is not None:
            (project_root / "pyproject.toml").write_text(pyproject)
        for name, content in (files or {}).items():
            path = project_root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return project_root

    return _make
