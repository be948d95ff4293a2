"""
Tmux Bridge Module for Watchtower.

This module shells out to tmux to discover panes host-wide and to capture
their visible screen contents. It keeps no state between calls.
"""

from __future__ import annotations

import fnmatch
import logging
import subprocess

import libtmux
from libtmux.exc import LibTmuxException

from .models import PaneIdentity, PaneInfo

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ":"
PANE_FORMAT = (
    "#{session_name}:#{window_index}.#{pane_index}:#{pane_title}"
    ":#{pane_width}:#{pane_height}"
)


class MuxError(Exception):
    """tmux could not be run or exited with an error."""


def parse_pane_line(line: str) -> PaneInfo | None:
    """Parse one ``list-panes`` line rendered with PANE_FORMAT.

    The title may itself contain colons, so the line is split from both
    ends: session and window.pane from the left, width and height from
    the right.

    Args:
        line: e.g. ``gt-main:0.0:zsh:80:24``

    Returns:
        PaneInfo, or None if the line is malformed
    """
    head = line.split(FIELD_SEPARATOR, 2)
    if len(head) < 3:
        return None
    session, window_pane, rest = head
    tail = rest.rsplit(FIELD_SEPARATOR, 2)
    if len(tail) < 3:
        return None
    title, width, height = tail

    window, dot, pane = window_pane.partition(".")
    if not dot:
        return None

    try:
        cols = int(width)
        rows = int(height)
    except ValueError:
        return None

    return PaneInfo(
        session=session, window=window, pane=pane, title=title, cols=cols, rows=rows
    )


def format_pane_line(info: PaneInfo) -> str:
    """Render a PaneInfo the way tmux prints it with PANE_FORMAT."""
    return FIELD_SEPARATOR.join(
        [info.session, f"{info.window}.{info.pane}", info.title, str(info.cols), str(info.rows)]
    )


def match_session_filter(session: str, pattern: str) -> bool:
    """Shell-glob match of a session name; an empty pattern admits all."""
    if not pattern:
        return True
    return fnmatch.fnmatchcase(session, pattern)


class TmuxBridge:
    """Bridge between Watchtower and the host's tmux server."""

    def __init__(self, socket_path: str = "", session_filter: str = ""):
        self.socket_path = socket_path
        self.session_filter = session_filter
        self.server = libtmux.Server(socket_path=socket_path or None)

    def _tmux_args(self, *args: str) -> list[str]:
        if self.socket_path:
            return ["tmux", "-S", self.socket_path, *args]
        return ["tmux", *args]

    def list_panes(self) -> list[PaneInfo]:
        """
        List every pane on the server whose session passes the filter.

        Returns:
            Panes in the order tmux printed them

        Raises:
            MuxError: If tmux is missing or exits non-zero
        """
        try:
            proc = self.server.cmd("list-panes", "-a", "-F", PANE_FORMAT)
        except (LibTmuxException, OSError) as e:
            raise MuxError(f"list-panes failed: {e}") from e
        if proc.returncode:
            raise MuxError(
                f"list-panes exited {proc.returncode}: {' '.join(proc.stderr)}"
            )

        panes = []
        for line in proc.stdout:
            if not line:
                continue
            info = parse_pane_line(line)
            if info is None:
                logger.debug("Skipping malformed list-panes line: %r", line)
                continue
            if not match_session_filter(info.session, self.session_filter):
                continue
            panes.append(info)
        return panes

    def capture_pane(self, identity: PaneIdentity) -> str:
        """
        Capture the visible screen of one pane.

        Args:
            identity: Pane to capture

        Returns:
            tmux stdout verbatim, trailing newlines included

        Raises:
            MuxError: If tmux is missing or exits non-zero
        """
        args = self._tmux_args("capture-pane", "-p", "-t", str(identity))
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                check=True,
                encoding="utf-8",
                errors="replace",
            )
        except (subprocess.CalledProcessError, OSError) as e:
            raise MuxError(f"capture-pane {identity} failed: {e}") from e
        return result.stdout
