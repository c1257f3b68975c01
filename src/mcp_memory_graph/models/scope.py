"""Scope identity.

A scope is either one project directory or the global namespace used when
no project path is given. Resolution is idempotent: every spelling of the
same directory (relative, ``~``-prefixed, through a symlink, with a
trailing slash) resolves to the same ``Scope``.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict

GLOBAL_SCOPE_ID = "global"


class Scope(BaseModel):
    """Normalised scope identity; hashable so it can key the registry."""

    model_config = ConfigDict(frozen=True)

    id: str
    path: Path | None = None

    @property
    def is_global(self) -> bool:
        return self.path is None

    def __str__(self) -> str:
        return self.id


GLOBAL_SCOPE = Scope(id=GLOBAL_SCOPE_ID)


def resolve_scope(project_path: str | Path | None) -> Scope:
    """Map an optional project path to its scope.

    ``None`` and blank strings select the global scope.
    """
    if project_path is None:
        return GLOBAL_SCOPE
    raw = str(project_path).strip()
    if not raw:
        return GLOBAL_SCOPE
    resolved = Path(raw).expanduser().resolve()
    return Scope(id=str(resolved), path=resolved)
