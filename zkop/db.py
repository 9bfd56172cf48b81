from __future__ import annotations

import json
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (a bind mount Docker created for a
    missing file, for instance), the database file is placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "zkop.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS clusters (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL,
              namespace TEXT NOT NULL,
              uid TEXT NOT NULL,
              resource_version INTEGER NOT NULL,
              spec TEXT NOT NULL, -- JSON
              created_at TEXT NOT NULL,
              UNIQUE(namespace, name)
            );

            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              cluster_name TEXT,
              member TEXT,
              message TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_events_cluster ON events(cluster_name);
            """
        )


def log_event(level: str, message: str, cluster_name: str | None = None, member: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, cluster_name, member, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), cluster_name, member, message),
        )


@dataclass(frozen=True)
class ClusterRow:
    id: int
    name: str
    namespace: str
    uid: str
    resource_version: int
    spec: str
    created_at: str

    def spec_dict(self) -> dict[str, Any]:
        return json.loads(self.spec)


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def upsert_cluster(name: str, namespace: str, uid: str, resource_version: int, spec: dict[str, Any]) -> ClusterRow:
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO clusters (name, namespace, uid, resource_version, spec, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(namespace, name) DO UPDATE SET
              uid=excluded.uid,
              resource_version=excluded.resource_version,
              spec=excluded.spec
            """,
            (name, namespace, uid, resource_version, json.dumps(spec, sort_keys=True), utc_now()),
        )
        cur = conn.execute("SELECT * FROM clusters WHERE namespace=? AND name=?", (namespace, name))
        return ClusterRow(**dict(cur.fetchone()))


def get_cluster(namespace: str, name: str) -> ClusterRow | None:
    with connect() as conn:
        row = conn.execute("SELECT * FROM clusters WHERE namespace=? AND name=?", (namespace, name)).fetchone()
        return ClusterRow(**dict(row)) if row else None


def list_clusters(namespace: str | None = None) -> list[ClusterRow]:
    with connect() as conn:
        if namespace:
            rows = conn.execute("SELECT * FROM clusters WHERE namespace=? ORDER BY name", (namespace,)).fetchall()
        else:
            rows = conn.execute("SELECT * FROM clusters ORDER BY namespace, name").fetchall()
        return _rows_to_dataclass(rows, ClusterRow)


def delete_cluster(namespace: str, name: str) -> bool:
    with connect() as conn:
        cur = conn.execute("DELETE FROM clusters WHERE namespace=? AND name=?", (namespace, name))
        return cur.rowcount > 0


def latest_events(limit: int = 100, cluster_name: str | None = None) -> list[dict[str, Any]]:
    with connect() as conn:
        if cluster_name:
            rows = conn.execute(
                "SELECT * FROM events WHERE cluster_name=? ORDER BY id DESC LIMIT ?", (cluster_name, limit)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
