"""
Pane State Module.

Provides fingerprint-based change detection for tmux pane contents.
"""

from __future__ import annotations

import enum
import hashlib
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import PaneIdentity, PaneInfo

FINGERPRINT_BYTES = 8


def fingerprint(content: str) -> str:
    """First 8 bytes of the sha256 of the content, as 16 hex characters."""
    digest = hashlib.sha256(content.encode("utf-8")).digest()
    return digest[:FINGERPRINT_BYTES].hex()


class Change(enum.Enum):
    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass
class PaneRegistry:
    """pane単位の最終メタデータとfingerprint

    Written only by the collector. ``lock`` is re-entrant so the collector
    can hold it across a whole observe/retain batch while each method
    still guards itself for snapshot readers on other threads.
    """

    entries: dict[PaneIdentity, tuple[PaneInfo, str]] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def snapshot(self) -> list[PaneInfo]:
        """Point-in-time copy of the pane metadata (order unspecified)."""
        with self.lock:
            return [info for info, _ in self.entries.values()]

    def observe(self, info: PaneInfo, content_fingerprint: str) -> Change:
        """Upsert a pane; CHANGED if the fingerprint is new or different."""
        identity = info.identity
        with self.lock:
            previous = self.entries.get(identity)
            self.entries[identity] = (info, content_fingerprint)
        if previous is None or previous[1] != content_fingerprint:
            return Change.CHANGED
        return Change.UNCHANGED

    def retain(self, identities: Iterable[PaneIdentity]) -> None:
        """Drop every pane not in ``identities``."""
        keep = set(identities)
        with self.lock:
            for identity in [i for i in self.entries if i not in keep]:
                del self.entries[identity]

    def identities(self) -> set[PaneIdentity]:
        with self.lock:
            return set(self.entries)

    def __len__(self) -> int:
        with self.lock:
            return len(self.entries)
