"""
Pane Models Module.

Value types shared by the tmux bridge, the collector and the hub.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class PaneIdentity:
    """tmux pane address (session, window, pane)"""

    session: str
    window: str
    pane: str

    def __str__(self) -> str:
        return f"{self.session}:{self.window}.{self.pane}"


@dataclass(frozen=True)
class PaneInfo:
    """Pane metadata as reported by ``tmux list-panes``."""

    session: str
    window: str
    pane: str
    title: str
    cols: int
    rows: int

    @property
    def identity(self) -> PaneIdentity:
        return PaneIdentity(self.session, self.window, self.pane)

    def to_dict(self) -> dict[str, str | int]:
        return asdict(self)


@dataclass(frozen=True)
class PaneUpdate:
    """A pane whose captured content changed since the previous sample."""

    info: PaneInfo
    content: str
    fingerprint: str

    @property
    def identity(self) -> PaneIdentity:
        return self.info.identity
