"""
Wire Messages Module.

JSON text frames sent from the server to dashboard clients.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError

from .models import PaneInfo, PaneUpdate

logger = logging.getLogger(__name__)


class PaneEntry(BaseModel):
    session: str
    window: str
    pane: str
    title: str
    cols: int
    rows: int


class PaneListMessage(BaseModel):
    """Sent once to each client right after it registers."""

    type: Literal["pane_list"] = "pane_list"
    panes: list[PaneEntry]


class PaneSize(BaseModel):
    cols: int
    rows: int


class PaneUpdateMessage(BaseModel):
    """Full current content of one pane. The fingerprint is not exposed."""

    type: Literal["pane_update"] = "pane_update"
    session: str
    window: str
    pane: str
    content: str
    size: PaneSize


def pane_list_message(panes: Iterable[PaneInfo]) -> PaneListMessage:
    return PaneListMessage(panes=[PaneEntry(**p.to_dict()) for p in panes])


def pane_update_message(update: PaneUpdate) -> PaneUpdateMessage:
    info = update.info
    return PaneUpdateMessage(
        session=info.session,
        window=info.window,
        pane=info.pane,
        content=update.content,
        size=PaneSize(cols=info.cols, rows=info.rows),
    )


def encode_pane_list(panes: Iterable[PaneInfo]) -> str | None:
    """Encode a ``pane_list`` frame; None (logged) if encoding fails."""
    try:
        return pane_list_message(panes).model_dump_json()
    except (PydanticSerializationError, ValueError, TypeError):
        logger.error("Error encoding pane list", exc_info=True)
        return None


def encode_pane_update(update: PaneUpdate) -> str | None:
    """Encode a ``pane_update`` frame; None (logged) if encoding fails."""
    try:
        return pane_update_message(update).model_dump_json()
    except (PydanticSerializationError, ValueError, TypeError):
        logger.error("Error encoding update for %s", update.identity, exc_info=True)
        return None
