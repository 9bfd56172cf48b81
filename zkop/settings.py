from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("ZKOP_DB_PATH", "zkop.db")
    backend: str = os.getenv("ZKOP_BACKEND", "kubernetes")  # kubernetes|docker
    resync_interval_s: int = _env_int("ZKOP_RESYNC_INTERVAL_S", 8)

    # Ensemble client
    zk_connect_timeout_s: float = _env_float("ZKOP_ZK_CONNECT_TIMEOUT_S", 1.0)

    # Pod lifecycle
    pod_create_timeout_s: int = _env_int("ZKOP_POD_CREATE_TIMEOUT_S", 300)
    pod_poll_interval_s: float = _env_float("ZKOP_POD_POLL_INTERVAL_S", 5.0)
    pod_grace_period_s: int = _env_int("ZKOP_POD_GRACE_PERIOD_S", 5)
    pod_delete_timeout_s: int = _env_int("ZKOP_POD_DELETE_TIMEOUT_S", 60)

    # Naming
    service_domain: str = os.getenv("ZKOP_SERVICE_DOMAIN", "svc")

    # Backends
    docker_network: str = os.getenv("ZKOP_DOCKER_NETWORK", "zkop")
    kube_in_cluster: bool = _env_bool("ZKOP_KUBE_IN_CLUSTER", True)

    # Spec defaults
    default_repository: str = os.getenv("ZKOP_DEFAULT_REPOSITORY", "blafrisch/zookeeper")
    default_version: str = os.getenv("ZKOP_DEFAULT_VERSION", "3.5.3-beta")


settings = Settings()
