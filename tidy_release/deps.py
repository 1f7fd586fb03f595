"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings and rewriting
pyproject.toml files so internal workspace dependencies that reference the
outgoing version are moved to the new one.
"""

from __future__ import annotations

from collections.abc import Collection
from pathlib import Path
from typing import Any, cast

from packaging.requirements import Requirement
from packaging.specifiers import SpecifierSet
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from .toml import load_pyproject, save_pyproject


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def _same_version(a: str, b: str) -> bool:
    try:
        return Version(a) == Version(b)
    except InvalidVersion:
        return a == b


def retarget_dep(dep_str: str, old_version: str, new_version: str) -> str:
    """Move version clauses that reference old_version to new_version.

    Operators, extras and environment markers are preserved. Clauses that
    reference other versions are left alone, as are URL requirements. The
    input string is returned unchanged when nothing references old_version.

    Examples:
        retarget_dep("pkg==1.4.2", "1.4.2", "1.5.0") → "pkg==1.5.0"
        retarget_dep("pkg[x]>=1.4.2,<2", "1.4.2", "1.5.0") → "pkg[x]<2,>=1.5.0"
        retarget_dep("pkg>=1.0", "1.4.2", "1.5.0") → "pkg>=1.0"
    """
    req = Requirement(dep_str)
    if req.url:
        return dep_str

    clauses: list[str] = []
    changed = False
    for spec in req.specifier:
        if not spec.version.endswith(".*") and _same_version(spec.version, old_version):
            clauses.append(f"{spec.operator}{new_version}")
            changed = True
        else:
            clauses.append(str(spec))
    if not changed:
        return dep_str

    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{SpecifierSet(','.join(clauses))}{marker}"


def rewrite_pyproject(
    pyproject_path: Path,
    old_version: str,
    new_version: str,
    internal_names: Collection[str],
) -> None:
    """Update a package's version and retarget its internal dependencies.

    This function:
    1. Updates [project].version to new_version
    2. Rewrites internal deps whose constraints reference old_version

    Internal deps are rewritten in all locations:
    - [project].dependencies
    - [project].optional-dependencies.*
    - [dependency-groups].*

    Uses tomlkit to preserve formatting and comments.

    Args:
        pyproject_path: Path to the pyproject.toml file.
        old_version: Version being released away from.
        new_version: New version string to set.
        internal_names: Canonical names of the workspace's packages.

    Raises:
        KeyError: If the manifest has no [project] table.
    """
    doc = load_pyproject(pyproject_path)
    # Cast needed because tomlkit types are complex unions
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version

    if internal_names:
        deps = project.get("dependencies")
        if isinstance(deps, list):
            _retarget_dep_list(deps, internal_names, old_version, new_version)

        opt_deps = project.get("optional-dependencies")
        if isinstance(opt_deps, dict):
            for group in opt_deps.values():
                if isinstance(group, list):
                    _retarget_dep_list(group, internal_names, old_version, new_version)

        dep_groups = doc.get("dependency-groups")
        if isinstance(dep_groups, dict):
            for group in dep_groups.values():
                if isinstance(group, list):
                    _retarget_dep_list(group, internal_names, old_version, new_version)

    save_pyproject(pyproject_path, doc)


def _retarget_dep_list(
    deps: list, names: Collection[str], old_version: str, new_version: str
) -> None:
    """Retarget internal dependencies in a list, modifying in place.

    Non-string entries (e.g. {include-group = "..."}) are skipped.
    """
    for i, dep_str in enumerate(deps):
        if not isinstance(dep_str, str):
            continue
        if dep_canonical_name(dep_str) in names:
            deps[i] = retarget_dep(str(dep_str), old_version, new_version)
