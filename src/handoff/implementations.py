"""
Real implementation of TmuxInterface, backed by libtmux.
"""

import os
import time
from typing import Any, Dict, List, Optional

import libtmux
from libtmux.exc import LibTmuxException
from libtmux._internal.query_list import ObjectDoesNotExist

from .settings import get_tmux_socket


class RealTmux:
    """Production implementation of TmuxInterface using libtmux."""

    def __init__(self, socket_name: Optional[str] = None):
        """Initialize with optional socket name for test isolation.

        If no socket_name is provided, checks HANDOFF_TMUX_SOCKET env var.
        """
        self._socket_name = socket_name or get_tmux_socket()
        self._server: Optional[libtmux.Server] = None

    @property
    def server(self) -> libtmux.Server:
        """Lazy-load the tmux server connection."""
        if self._server is None:
            if self._socket_name:
                self._server = libtmux.Server(socket_name=self._socket_name)
            else:
                self._server = libtmux.Server()
        return self._server

    def _get_session(self, session: str) -> Optional[libtmux.Session]:
        try:
            return self.server.sessions.get(session_name=session)
        except (LibTmuxException, ObjectDoesNotExist):
            return None

    def _get_window(self, session: str, window: int) -> Optional[libtmux.Window]:
        sess = self._get_session(session)
        if sess is None:
            return None
        try:
            return sess.windows.get(window_index=str(window))
        except (LibTmuxException, ObjectDoesNotExist):
            return None

    def has_session(self, session: str) -> bool:
        try:
            return self.server.has_session(session)
        except LibTmuxException:
            return False

    def new_session(self, session: str, window_name: Optional[str] = None,
                    cwd: Optional[str] = None) -> bool:
        try:
            kwargs: Dict[str, Any] = {"session_name": session, "attach": False}
            if window_name:
                kwargs["window_name"] = window_name
            if cwd:
                kwargs["start_directory"] = cwd
            self.server.new_session(**kwargs)
            return True
        except LibTmuxException:
            return False

    def new_window(self, session: str, name: str, command: Optional[List[str]] = None,
                   cwd: Optional[str] = None) -> Optional[int]:
        try:
            sess = self._get_session(session)
            if sess is None:
                return None

            kwargs: Dict[str, Any] = {"window_name": name, "attach": False}
            if cwd:
                kwargs["start_directory"] = cwd
            if command:
                kwargs["window_shell"] = " ".join(command)

            window = sess.new_window(**kwargs)
            return int(window.window_index)
        except (LibTmuxException, ValueError):
            return None

    def send_keys(self, session: str, window: int, keys: str, enter: bool = True) -> bool:
        try:
            win = self._get_window(session, window)
            if win is None or not win.panes:
                return False
            pane = win.panes[0]
            # Text and Enter go as separate commands so interactive CLIs
            # see a complete line before the submit
            if keys:
                pane.send_keys(keys, enter=False)
                time.sleep(0.1)
            if enter:
                pane.send_keys("", enter=True)
            return True
        except LibTmuxException:
            return False

    def kill_session(self, session: str) -> bool:
        try:
            sess = self._get_session(session)
            if sess is None:
                return False
            sess.kill()
            return True
        except LibTmuxException:
            return False

    def list_windows(self, session: str) -> List[Dict[str, Any]]:
        try:
            sess = self._get_session(session)
            if sess is None:
                return []

            windows = []
            for win in sess.windows:
                windows.append({
                    "index": int(win.window_index),
                    "name": win.window_name,
                    "active": win.window_active == "1",
                })
            return windows
        except LibTmuxException:
            return []

    def attach(self, session: str, window: Optional[int] = None) -> None:
        target = f"{session}:{window}" if window is not None else session
        if self._socket_name:
            os.execlp("tmux", "tmux", "-L", self._socket_name, "attach-session", "-t", target)
        else:
            os.execlp("tmux", "tmux", "attach-session", "-t", target)
