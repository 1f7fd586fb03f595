"""Dependency graph utilities.

Packages are uploaded in dependency order so that a dependent is never
visible on the registry before the internal packages it requires.
"""

from __future__ import annotations

from collections import deque

from .errors import ManifestWriteError
from .models import PackageInfo


def publish_order(packages: dict[str, PackageInfo]) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Kahn's algorithm; packages that become ready at the same time are
    taken alphabetically so the order is deterministic.

    Raises:
        ManifestWriteError: If the internal dependencies form a cycle.

    Example:
        If A depends on B, and B depends on C: [C, B, A]
    """
    pending = {
        name: {d for d in info.deps if d in packages and d != name}
        for name, info in packages.items()
    }
    dependents: dict[str, set[str]] = {name: set() for name in packages}
    for name, deps in pending.items():
        for dep in deps:
            dependents[dep].add(name)

    ready = deque(sorted(name for name, deps in pending.items() if not deps))
    order: list[str] = []
    while ready:
        name = ready.popleft()
        order.append(name)
        for dependent in sorted(dependents[name]):
            pending[dependent].discard(name)
            if not pending[dependent]:
                ready.append(dependent)

    if len(order) != len(packages):
        cycle = sorted(set(packages) - set(order))
        raise ManifestWriteError(
            f"Dependency cycle detected involving: {', '.join(cycle)}"
        )
    return order
