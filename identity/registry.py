"""Registry of live connections per authenticated subject."""
from __future__ import annotations

import threading
from typing import Dict, Set


class SessionRegistry:
    """
    subject id -> set of connection ids, plus the reverse mapping.
    Entries are added when a connection is authenticated and removed when
    it closes; nothing else writes here.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._by_subject: Dict[str, Set[str]] = {}
        self._by_connection: Dict[str, object] = {}

    def add(self, connection_id: str, identity) -> None:
        with self._lock:
            previous = self._by_connection.get(connection_id)
            if previous is not None:
                self._discard(connection_id, previous.subject_id)
            self._by_connection[connection_id] = identity
            self._by_subject.setdefault(identity.subject_id, set()).add(connection_id)

    def remove(self, connection_id: str):
        """Drop a connection; returns its identity or None if unknown."""
        with self._lock:
            identity = self._by_connection.pop(connection_id, None)
            if identity is not None:
                self._discard(connection_id, identity.subject_id)
            return identity

    def _discard(self, connection_id: str, subject_id: str) -> None:
        connections = self._by_subject.get(subject_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._by_subject[subject_id]

    def identity_for(self, connection_id: str):
        with self._lock:
            return self._by_connection.get(connection_id)

    def connections_for(self, subject_id: str) -> Set[str]:
        with self._lock:
            return set(self._by_subject.get(subject_id, ()))

    def is_online(self, subject_id: str) -> bool:
        with self._lock:
            return subject_id in self._by_subject

    def online_subjects(self) -> Set[str]:
        with self._lock:
            return set(self._by_subject)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_connection)
