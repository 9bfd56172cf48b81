from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from kazoo.client import KazooClient
from kazoo.exceptions import ConnectionLoss, KazooException, SessionExpiredError
from kazoo.handlers.threading import KazooTimeoutError

from .errors import EnsembleConnectError, EnsembleProtocolError
from .members import PARTICIPANT
from .settings import settings


CONFIG_NODE = "/zookeeper/config"

CONFIG_LINE_RE = re.compile(r"^server\.(?P<id>\d+)=(?P<server>[^;]+)(;(?P<client>.*))?$")


def parse_config(data: bytes | None) -> list[str]:
    """Turn a config payload into sorted server lines.

    The payload lists one server per line and ends with a "version=<hex>"
    line, which is dropped.
    """
    if data is None:
        raise EnsembleProtocolError("empty ensemble config payload")
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise EnsembleProtocolError(f"ensemble config is not utf-8: {e}") from e

    lines = text.rstrip("\n").split("\n")
    if not lines[-1].startswith("version="):
        raise EnsembleProtocolError(f"ensemble config has no trailing version line: {lines[-1]!r}")
    return sorted(line for line in lines[:-1] if line)


def parse_config_line(line: str) -> tuple[int, str, str]:
    """Return (server id, server host, role) for one server line."""
    m = CONFIG_LINE_RE.match(line.strip())
    if not m:
        raise EnsembleProtocolError(f"malformed ensemble config line: {line!r}")
    parts = m.group("server").split(":")
    role = parts[3] if len(parts) > 3 and parts[3] else PARTICIPANT
    return int(m.group("id")), parts[0], role


def member_name_from_config_line(line: str) -> str:
    # Hosts are "<memberName>.<clusterName>.<namespace>.<domain>".
    _, host, _ = parse_config_line(line)
    return host.split(".")[0]


class EnsembleClient:
    """Narrow client for the ensemble's dynamic membership API.

    Every call opens its own connection and releases it before returning.
    Failures are never retried here; the next reconcile pass retries.
    """

    def __init__(
        self,
        connect_timeout_s: float | None = None,
        client_factory: Callable[..., Any] = KazooClient,
    ) -> None:
        self.connect_timeout_s = connect_timeout_s if connect_timeout_s is not None else settings.zk_connect_timeout_s
        self._client_factory = client_factory

    @contextmanager
    def _connect(self, hosts: list[str]) -> Iterator[Any]:
        if not hosts:
            raise EnsembleConnectError("no ensemble hosts to connect to")
        zk = self._client_factory(hosts=",".join(hosts))
        try:
            zk.start(timeout=self.connect_timeout_s)
        except KazooTimeoutError as e:
            # kazoo stops and closes the client itself when start() times out.
            raise EnsembleConnectError(f"failed to connect to ensemble hosts {hosts}: {e}") from e
        try:
            yield zk
        except (ConnectionLoss, SessionExpiredError) as e:
            raise EnsembleConnectError(f"lost connection to ensemble: {type(e).__name__}: {e}") from e
        except KazooException as e:
            raise EnsembleProtocolError(f"ensemble request failed: {type(e).__name__}: {e}") from e
        finally:
            zk.stop()
            zk.close()

    def read_config(self, hosts: list[str]) -> list[str]:
        with self._connect(hosts) as zk:
            data, _ = zk.get(CONFIG_NODE)
            return parse_config(data)

    def reconfigure(self, hosts: list[str], desired: list[str]) -> list[str]:
        """Replace the ensemble membership with `desired` (non-incremental)."""
        new_members = ",".join(desired)
        with self._connect(hosts) as zk:
            data, _ = zk.reconfig(joining=None, leaving=None, new_members=new_members, from_config=-1)
            return parse_config(data)
