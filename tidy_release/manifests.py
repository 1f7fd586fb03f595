"""Workspace manifest discovery and version rewriting.

All packages in a workspace share one version. It is recorded redundantly in
every member's pyproject.toml, so reads check that the manifests agree and
writes update every manifest or none of them.
"""

from __future__ import annotations

import glob
from pathlib import Path

import tomlkit

from .deps import dep_canonical_name, rewrite_pyproject
from .errors import ManifestWriteError
from .models import PackageInfo
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    load_pyproject,
)
from .versions import parse_version


def discover_packages(root: Path) -> dict[str, PackageInfo]:
    """Scan the workspace and discover all packages.

    Reads [tool.uv.workspace].members from root pyproject.toml to find
    package directories, then extracts name, version, and internal deps
    from each package's pyproject.toml. The root manifest is itself a
    package when it carries a [project] table with a static version.

    Returns:
        Map of package name to PackageInfo.

    Raises:
        ManifestWriteError: If no versioned package is found or a member
            manifest has no version.
    """
    root_doc = load_pyproject(root / "pyproject.toml")

    manifests: list[tuple[Path, tomlkit.TOMLDocument]] = []
    if get_project_version(root_doc) is not None:
        manifests.append((root, root_doc))

    # Expand globs to find all package directories
    for pattern in get_workspace_member_globs(root_doc):
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists():
                manifests.append((p, load_pyproject(p / "pyproject.toml")))

    if not manifests:
        raise ManifestWriteError(
            "No versioned packages found: set [project].version in the root "
            "pyproject.toml or define [tool.uv.workspace] members"
        )

    # First pass: collect basic info from each package
    packages: dict[str, PackageInfo] = {}
    raw_deps: dict[str, list[str]] = {}

    for d, doc in manifests:
        name = get_project_name(doc, d.name)
        version = get_project_version(doc)
        rel = "." if d == root else str(d.relative_to(root))
        if version is None:
            raise ManifestWriteError(f"{rel}/pyproject.toml has no [project].version")
        packages[name] = PackageInfo(path=rel, version=version)
        raw_deps[name] = get_all_dependency_strings(doc)

    # Second pass: identify which deps are internal (within workspace)
    workspace_names = set(packages.keys())
    for name, deps in raw_deps.items():
        seen: set[str] = set()
        for dep_str in deps:
            dep_name = dep_canonical_name(dep_str)
            # Only track internal deps, ignore external packages
            internal = dep_name in workspace_names and dep_name != name
            if internal and dep_name not in seen:
                packages[name].deps.append(dep_name)
                seen.add(dep_name)

    for name, info in packages.items():
        deps = f" → [{', '.join(info.deps)}]" if info.deps else ""
        print(f"  {name} {info.version} ({info.path}){deps}")

    return packages


def read_workspace_version(packages: dict[str, PackageInfo]) -> str:
    """Return the single version all manifests agree on.

    Raises:
        ManifestWriteError: If manifests disagree or a version is malformed.
    """
    versions: dict[str, list[str]] = {}
    for name, info in packages.items():
        try:
            normalized = str(parse_version(info.version))
        except ValueError as exc:
            raise ManifestWriteError(
                f"{info.manifest}: invalid version {info.version!r}"
            ) from exc
        versions.setdefault(normalized, []).append(name)

    if len(versions) != 1:
        detail = "\n".join(
            f"  {version}: {', '.join(sorted(names))}"
            for version, names in sorted(versions.items())
        )
        raise ManifestWriteError(f"Workspace manifests disagree on version:\n{detail}")
    return next(iter(versions))


def update_manifests(
    root: Path,
    packages: dict[str, PackageInfo],
    old_version: str,
    new_version: str,
) -> list[str]:
    """Write new_version into every manifest, all or nothing.

    Each manifest's [project].version becomes new_version and internal
    dependency constraints that referenced old_version are retargeted.
    If any write fails, every manifest is restored to its original bytes
    before the error is raised.

    Returns:
        Paths of the rewritten manifests, relative to root.

    Raises:
        ManifestWriteError: If any manifest could not be rewritten.
    """
    internal = set(packages)
    paths = [info.manifest for info in packages.values()]
    originals = {rel: (root / rel).read_bytes() for rel in paths}

    try:
        for name, info in packages.items():
            rewrite_pyproject(root / info.manifest, old_version, new_version, internal)
            print(f"  {name}: {old_version} → {new_version}")
    except Exception as exc:
        for rel, content in originals.items():
            (root / rel).write_bytes(content)
        raise ManifestWriteError(
            f"Failed to update {info.manifest}: {exc}; all manifests restored"
        ) from exc

    return paths
