"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import tomlkit

from tidy_release.config import ReleaseConfig
from tidy_release.history import CommitGrammar
from tidy_release.models import CommitRecord


def make_workspace(root: Path, version: str = "1.4.2") -> Path:
    """Write a two-package uv workspace (acme-core, acme-cli) under root."""
    (root / "pyproject.toml").write_text(
        """\
[tool.uv.workspace]
members = ["packages/*"]

[tool.tidy-release]
changelog = "CHANGELOG.md"
"""
    )
    core = root / "packages" / "core"
    core.mkdir(parents=True)
    (core / "pyproject.toml").write_text(
        f"""\
[project]
name = "acme-core"
version = "{version}"
# runtime deps
dependencies = ["requests>=2.0"]
"""
    )
    cli = root / "packages" / "cli"
    cli.mkdir(parents=True)
    (cli / "pyproject.toml").write_text(
        f"""\
[project]
name = "acme-cli"
version = "{version}"
dependencies = [
    "acme-core>={version},<99",
    "click>=8.0",
]

[dependency-groups]
test = ["pytest>=8.0", "acme-core=={version}"]
"""
    )
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace whose packages are all at 1.4.2."""
    return make_workspace(tmp_path)


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep==1.0.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=1.0.0"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal~=1.0.0"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "dev"}]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.tidy-release]
tag-prefix = "release-"
"""
    return tomlkit.parse(content)


@pytest.fixture
def config() -> ReleaseConfig:
    return ReleaseConfig()


@pytest.fixture
def grammar(config: ReleaseConfig) -> CommitGrammar:
    return CommitGrammar.from_config(config)


@pytest.fixture
def make_commits(grammar: CommitGrammar) -> Callable[..., list[CommitRecord]]:
    """Build classified commits from subjects, oldest first."""

    def _make(*subjects: str) -> list[CommitRecord]:
        return [
            grammar.parse(f"{i:07x}" + "0" * 33, subject)
            for i, subject in enumerate(subjects, start=1)
        ]

    return _make


def _fake_git(*args: str, check: bool = True) -> str:
    """Stand-in for shell.git inside a clean repository."""
    if args[:2] == ("diff", "--cached"):
        return "packages/core/pyproject.toml"
    if args[:1] == ("rev-parse",):
        return "main" if "--abbrev-ref" in args else "f" * 40
    return ""


@pytest.fixture
def fake_git() -> Iterator[dict[str, MagicMock]]:
    """Patch every git entry point the workflows use.

    Yields the mocks keyed by module so tests can assert on calls.
    """
    with (
        patch("tidy_release.workspace.git", side_effect=_fake_git) as ws_git,
        patch("tidy_release.pipeline.git", side_effect=_fake_git) as pipe_git,
        patch("tidy_release.workspace.normalize_ownership", return_value=0),
    ):
        yield {"workspace": ws_git, "pipeline": pipe_git}
