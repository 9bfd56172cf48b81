from __future__ import annotations

import time
from dataclasses import dataclass
from queue import Empty, Queue
from threading import Event, Lock, Thread

from . import db
from .api_models import ClusterResource
from .cluster import Cluster
from .ensemble import EnsembleClient
from .errors import LostQuorumError
from .reconcile import reconcile
from .runtime import ClusterKey, RuntimeState
from .settings import settings
from .status import PHASE_FAILED
from .workload import POD_PENDING, POD_RUNNING, PodInfo, Workload, get_workload


# -- events -----------------------------------------------------------------


@dataclass(frozen=True)
class Added:
    resource: ClusterResource


@dataclass(frozen=True)
class Modified:
    resource: ClusterResource


@dataclass(frozen=True)
class Deleted:
    namespace: str
    name: str


@dataclass(frozen=True)
class Resync:
    pass


ClusterEvent = Added | Modified | Deleted | Resync


def event_key(event: Added | Modified | Deleted) -> ClusterKey:
    if isinstance(event, Deleted):
        return event.namespace, event.name
    return event.resource.key


def split_pods(pods: list[PodInfo]) -> tuple[list[PodInfo], list[PodInfo]]:
    """Return (running, pending), skipping pods that are being deleted or finished."""
    running: list[PodInfo] = []
    pending: list[PodInfo] = []
    for p in pods:
        if p.deleting:
            continue
        if p.phase == POD_RUNNING:
            running.append(p)
        elif p.phase == POD_PENDING:
            pending.append(p)
    return running, pending


# -- per-cluster worker -----------------------------------------------------

WORKER_INITIALIZING = "Initializing"
WORKER_RUNNING = "Running"
WORKER_TERMINATED = "Terminated"


class ClusterWorker:
    """Serially handles every event of one cluster on its own thread.

    When no event arrives for `resync_interval_s` the worker handles a Resync
    tick, which runs one reconcile pass.
    """

    def __init__(
        self,
        resource: ClusterResource,
        workload: Workload,
        ensemble: EnsembleClient,
        runtime: RuntimeState,
        resync_interval_s: float | None = None,
    ) -> None:
        self.cluster = Cluster(resource, workload, ensemble)
        self.runtime = runtime
        self.resync_interval_s = resync_interval_s if resync_interval_s is not None else settings.resync_interval_s
        self.state = WORKER_INITIALIZING
        self.deleted = False
        self._queue: Queue[ClusterEvent] = Queue()
        self._stopping = Event()
        self._thr: Thread | None = None

    @property
    def key(self) -> ClusterKey:
        return self.cluster.resource.key

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self._loop, name=f"zkop-{self.cluster.namespace}-{self.cluster.name}", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stopping.set()
        self._queue.put(Resync())

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def is_alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def submit(self, event: ClusterEvent) -> None:
        self._queue.put(event)

    def _loop(self) -> None:
        next_resync = time.monotonic() + self.resync_interval_s
        while not self._stopping.is_set() and self.state != WORKER_TERMINATED:
            try:
                event = self._queue.get(timeout=max(0.0, next_resync - time.monotonic()))
            except Empty:
                event = Resync()
                next_resync = time.monotonic() + self.resync_interval_s
            if self._stopping.is_set():
                break
            try:
                self.handle(event)
            except Exception as e:
                self.cluster.log("ERROR", f"{type(event).__name__} handling failed: {type(e).__name__}: {e}")

    def handle(self, event: ClusterEvent) -> None:
        if self.deleted:
            return
        if isinstance(event, Added):
            self._on_added(event.resource)
        elif isinstance(event, Modified):
            self._on_modified(event.resource)
        elif isinstance(event, Deleted):
            self._on_deleted()
            return
        elif isinstance(event, Resync):
            self._on_resync()
        else:
            raise TypeError(f"unknown cluster event: {event!r}")
        self.runtime.publish(self.key, self.cluster.status)

    def _on_added(self, resource: ClusterResource) -> None:
        if self.state != WORKER_INITIALIZING:
            self.cluster.log("WARN", "ignoring Added event for a cluster that is already set up")
            return
        cluster = self.cluster
        cluster.resource = resource
        try:
            pods = [p for p in cluster.workload.list_pods(cluster.name, cluster.namespace) if not p.deleting]
            if pods:
                cluster.recover(pods)
            else:
                cluster.create_seed_members()
        except Exception as e:
            cluster.status.set_phase(PHASE_FAILED)
            cluster.status.set_reason(f"{type(e).__name__}: {e}")
            cluster.log("ERROR", f"cluster setup failed: {type(e).__name__}: {e}")
            self.state = WORKER_TERMINATED
            return
        finally:
            cluster.status.size = cluster.members.size()
            cluster.status.members = cluster.members.names()
        self.state = WORKER_RUNNING
        cluster.log("INFO", f"cluster running with members: {cluster.members}")

    def _on_modified(self, resource: ClusterResource) -> None:
        old = self.cluster.resource
        self.cluster.resource = resource
        self.cluster.log(
            "INFO", f"cluster spec updated (resource version {old.resource_version} -> {resource.resource_version})"
        )
        if resource.spec.paused != old.spec.paused:
            self.cluster.log("INFO", "control is paused" if resource.spec.paused else "control is resumed")

    def _on_deleted(self) -> None:
        # Pods and services are left to owner-reference garbage collection.
        self.deleted = True
        self.state = WORKER_TERMINATED
        self.runtime.forget(self.key)
        self.cluster.log("INFO", "cluster deleted, stopped scheduling resyncs")

    def _on_resync(self) -> None:
        cluster = self.cluster
        if self.state != WORKER_RUNNING:
            return
        if cluster.spec.paused:
            cluster.log("INFO", "control is paused, skipping reconciliation")
            return

        running, pending = split_pods(cluster.workload.list_pods(cluster.name, cluster.namespace))
        if pending:
            cluster.log(
                "INFO",
                f"skip reconciliation: running ({[p.name for p in running]}), pending ({[p.name for p in pending]})",
            )
            return

        try:
            reconcile(cluster, running)
            cluster.status.set_reason("")
        except LostQuorumError as e:
            cluster.status.set_reason(str(e))
            cluster.log("ERROR", f"{e}; waiting for members to come back")
        except Exception as e:
            cluster.status.set_reason(f"{type(e).__name__}: {e}")
            cluster.log("ERROR", f"failed to reconcile: {type(e).__name__}: {e}")


# -- controller -------------------------------------------------------------


class Controller:
    """Routes cluster events to one worker per cluster."""

    def __init__(
        self,
        runtime: RuntimeState | None = None,
        workload: Workload | None = None,
        ensemble: EnsembleClient | None = None,
        resync_interval_s: float | None = None,
    ) -> None:
        self.runtime = runtime or RuntimeState()
        self._workload = workload
        self.ensemble = ensemble or EnsembleClient()
        self.resync_interval_s = resync_interval_s
        self._lock = Lock()
        self._workers: dict[ClusterKey, ClusterWorker] = {}

    @property
    def workload(self) -> Workload:
        if self._workload is None:
            self._workload = get_workload()
        return self._workload

    def worker(self, key: ClusterKey) -> ClusterWorker | None:
        with self._lock:
            return self._workers.get(key)

    def handle(self, event: ClusterEvent) -> None:
        if isinstance(event, Resync):
            with self._lock:
                workers = list(self._workers.values())
            for w in workers:
                w.submit(event)
            return

        key = event_key(event)
        with self._lock:
            if isinstance(event, Added):
                if key in self._workers:
                    db.log_event("WARN", "cluster already managed, ignoring Added", cluster_name=key[1])
                    return
                w = ClusterWorker(event.resource, self.workload, self.ensemble, self.runtime, self.resync_interval_s)
                self._workers[key] = w
                w.start()
            elif isinstance(event, Deleted):
                w = self._workers.pop(key, None)
            else:
                w = self._workers.get(key)

        if w is None:
            db.log_event("WARN", f"no worker for cluster, ignoring {type(event).__name__}", cluster_name=key[1])
            return
        w.submit(event)

    def start(self) -> None:
        """Pick stored clusters back up; their workers recover membership."""
        db.log_event("INFO", "Controller started")
        for row in db.list_clusters():
            resource = ClusterResource(
                name=row.name,
                namespace=row.namespace,
                uid=row.uid,
                resource_version=row.resource_version,
                spec=row.spec_dict(),
            )
            self.handle(Added(resource))

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            workers = list(self._workers.values())
            self._workers.clear()
        for w in workers:
            w.stop()
        for w in workers:
            w.join(timeout)
