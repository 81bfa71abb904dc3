"""
Mock implementation of TmuxInterface for tests.

Records every call so tests can assert on what would have been typed
into which window, without a tmux server.
"""

from typing import Any, Dict, List, Optional, Tuple


class MockTmux:
    """In-memory tmux: sessions map to {window_index: window_name}."""

    def __init__(self):
        self.sessions: Dict[str, Dict[int, str]] = {}
        self.sent_keys: List[Tuple[str, int, str, bool]] = []
        self.window_commands: Dict[Tuple[str, int], Optional[List[str]]] = {}
        self.window_cwds: Dict[Tuple[str, int], Optional[str]] = {}
        self.attached: Optional[Tuple[str, Optional[int]]] = None
        self._next_window: Dict[str, int] = {}

    def has_session(self, session: str) -> bool:
        return session in self.sessions

    def new_session(self, session: str, window_name: Optional[str] = None,
                    cwd: Optional[str] = None) -> bool:
        if session in self.sessions:
            return False
        self.sessions[session] = {0: window_name or "bash"}
        self.window_cwds[(session, 0)] = cwd
        self._next_window[session] = 1
        return True

    def new_window(self, session: str, name: str, command: Optional[List[str]] = None,
                   cwd: Optional[str] = None) -> Optional[int]:
        if session not in self.sessions:
            return None
        index = self._next_window[session]
        self._next_window[session] = index + 1
        self.sessions[session][index] = name
        self.window_commands[(session, index)] = command
        self.window_cwds[(session, index)] = cwd
        return index

    def send_keys(self, session: str, window: int, keys: str, enter: bool = True) -> bool:
        if window not in self.sessions.get(session, {}):
            return False
        self.sent_keys.append((session, window, keys, enter))
        return True

    def kill_session(self, session: str) -> bool:
        if session not in self.sessions:
            return False
        del self.sessions[session]
        return True

    def list_windows(self, session: str) -> List[Dict[str, Any]]:
        windows = self.sessions.get(session, {})
        return [
            {"index": index, "name": name, "active": index == 0}
            for index, name in sorted(windows.items())
        ]

    def attach(self, session: str, window: Optional[int] = None) -> None:
        self.attached = (session, window)
