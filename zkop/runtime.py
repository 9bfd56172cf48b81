from __future__ import annotations

from threading import Lock

from .status import ClusterStatus


ClusterKey = tuple[str, str]  # (namespace, name)


class RuntimeState:
    """Status snapshots published by cluster workers for readers (the HTTP API).

    Workers own the live status objects; this only ever holds copies.
    """

    def __init__(self) -> None:
        self.lock = Lock()
        self.statuses: dict[ClusterKey, ClusterStatus] = {}

    def publish(self, key: ClusterKey, status: ClusterStatus) -> None:
        snapshot = status.copy()
        with self.lock:
            self.statuses[key] = snapshot

    def get_status(self, key: ClusterKey) -> ClusterStatus | None:
        with self.lock:
            st = self.statuses.get(key)
        return st.copy() if st else None

    def list_statuses(self) -> dict[ClusterKey, ClusterStatus]:
        with self.lock:
            return {k: v.copy() for k, v in self.statuses.items()}

    def forget(self, key: ClusterKey) -> None:
        with self.lock:
            self.statuses.pop(key, None)
