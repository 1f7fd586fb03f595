"""Publication backends.

The workflows talk to the outside world through two capabilities:

- RegistryPublisher: builds, uploads, and tags a version. Implemented with
  uv (`uv build`, `uv publish`) and git.
- HostReleasePublisher: release objects and pull requests on the
  source-control host. Implemented with the GitHub CLI.

Credentials are never handled here: gh and uv read their own (GH_TOKEN,
UV_PUBLISH_TOKEN, trusted publishing, ...).
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Protocol

from .config import ReleaseConfig
from .errors import ExternalToolError
from .graph import publish_order
from .models import PackageInfo
from .shell import gh, git, run


class RegistryPublisher(Protocol):
    def publish(self, packages: dict[str, PackageInfo], version: str, tag: str) -> None:
        """Upload every package at version and create/push tag, or raise."""
        ...


class HostReleasePublisher(Protocol):
    def release_exists(self, tag: str) -> bool: ...

    def create_release(self, tag: str, notes: str, *, latest: bool) -> str: ...

    def find_open_pull_request(self, head_prefix: str) -> str | None: ...

    def open_pull_request(
        self, branch: str, base: str, title: str, body: str
    ) -> str: ...


class UvRegistryPublisher:
    """Publish workspace packages with uv, then tag the release commit.

    Uploads happen before the tag is created: a failed upload leaves no
    tag behind, so the next run retries the whole transaction. With
    check_url configured, files already on the index are skipped, which
    makes a retry after a partial upload safe.
    """

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    def publish(self, packages: dict[str, PackageInfo], version: str, tag: str) -> None:
        with tempfile.TemporaryDirectory(prefix="tidy-release-") as tmp:
            out_dir = Path(tmp)
            for name in publish_order(packages):
                info = packages[name]
                print(f"\n  Building {name} {version} ({info.path})")
                run("uv", "build", info.path, "--out-dir", str(out_dir))

            dists = sorted(str(p) for p in out_dir.iterdir())
            if not dists:
                raise ExternalToolError(
                    f"uv build produced no distributions in {out_dir}"
                )

            cmd = ["uv", "publish"]
            if self.config.publish_url:
                cmd += ["--publish-url", self.config.publish_url]
            if self.config.check_url:
                cmd += ["--check-url", self.config.check_url]
            print(f"\n  Uploading {len(dists)} distributions")
            run(*cmd, *dists)

        git("tag", "-a", tag, "-m", f"Release {tag}")
        git("push", self.config.remote, f"refs/tags/{tag}")
        print(f"  Tagged and pushed {tag}")


class GitHubHost:
    """HostReleasePublisher backed by the GitHub CLI."""

    def __init__(self, config: ReleaseConfig) -> None:
        self.config = config

    def release_exists(self, tag: str) -> bool:
        return bool(gh("release", "view", tag, "--json", "tagName", check=False))

    def create_release(self, tag: str, notes: str, *, latest: bool) -> str:
        """Create a release named by tag; returns its URL."""
        return gh(
            "release",
            "create",
            tag,
            "--verify-tag",
            "--title",
            tag,
            "--notes",
            notes,
            "--latest" if latest else "--latest=false",
        )

    def find_open_pull_request(self, head_prefix: str) -> str | None:
        """Return the URL of an open PR whose branch starts with head_prefix."""
        output = gh(
            "pr",
            "list",
            "--base",
            self.config.base_branch,
            "--state",
            "open",
            "--json",
            "url,headRefName",
            "--limit",
            "100",
        )
        try:
            pulls = json.loads(output) if output else []
        except json.JSONDecodeError as exc:
            raise ExternalToolError(
                f"Unexpected output from `gh pr list`: {exc}"
            ) from exc
        for pull in pulls:
            if pull["headRefName"].startswith(head_prefix):
                return pull["url"]
        return None

    def open_pull_request(self, branch: str, base: str, title: str, body: str) -> str:
        """Open a pull request from branch into base; returns its URL."""
        return gh(
            "pr",
            "create",
            "--head",
            branch,
            "--base",
            base,
            "--title",
            title,
            "--body",
            body,
        )
