"""Schema catalog types.

A backend's catalog is the full "create latest" script plus the ordered
upgrade steps that take an older database to the same shape. Statements are
run one at a time with ``exec_driver_sql`` so they must not contain bind
markers or ``%``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

CURRENT_VERSION = 2


@dataclass(frozen=True)
class Migration:
    """One upgrade step, applied in its own transaction."""
    from_version: int
    to_version: int
    description: str
    statements: tuple[str, ...]


@dataclass(frozen=True)
class DialectSchema:
    name: str
    create: tuple[str, ...]
    upgrades: tuple[Migration, ...] = field(default_factory=tuple)
    version: int = CURRENT_VERSION

    def step_from(self, version: int) -> Migration | None:
        for step in self.upgrades:
            if step.from_version == version:
                return step
        return None
