from __future__ import annotations

from dataclasses import replace

from . import db
from .api_models import ClusterResource, ClusterSpec
from .ensemble import EnsembleClient, parse_config_line
from .errors import EnsembleError, OperatorError, PodCreateError
from .members import OBSERVER, Member, MemberSet
from .status import PHASE_RUNNING, ClusterStatus
from .workload import STATE_NEW, STATE_SEED, PodInfo, Workload


class Cluster:
    """Everything the reconcile pass knows about one managed cluster.

    Owned by a single worker; nothing here is shared with other threads.
    """

    def __init__(
        self,
        resource: ClusterResource,
        workload: Workload,
        ensemble: EnsembleClient,
        members: MemberSet | None = None,
        status: ClusterStatus | None = None,
    ) -> None:
        self.resource = resource
        self.workload = workload
        self.ensemble = ensemble
        self.members = members if members is not None else MemberSet()
        self.status = status if status is not None else ClusterStatus()

    @property
    def name(self) -> str:
        return self.resource.name

    @property
    def namespace(self) -> str:
        return self.resource.namespace

    @property
    def spec(self) -> ClusterSpec:
        return self.resource.spec

    def log(self, level: str, message: str, member: str | None = None) -> None:
        db.log_event(level, message, cluster_name=self.name, member=member)

    # -- bring-up ---------------------------------------------------------

    def create_seed_members(self) -> None:
        """Create services and `spec.size` voting members, ids 1..size."""
        self.workload.create_services(self.resource)
        seeds = MemberSet(Member(name=f"{self.name}-{i}", namespace=self.namespace) for i in range(1, self.spec.size + 1))
        seed_config = seeds.to_ensemble_config()
        for m in seeds:
            own = m.config_line()
            existing = [line for line in seed_config if line != own]
            self.members.add(m)
            self._create_pod(m, existing, STATE_SEED)
            self.log("INFO", f"created seed member ({m.name})", member=m.name)
        self.status.set_version(self.spec.version)
        self.status.set_phase(PHASE_RUNNING)

    def recover(self, pods: list[PodInfo]) -> None:
        """Rebuild membership from the live ensemble config after a restart."""
        hosts = MemberSet.from_pods(pods).client_endpoints()
        members = MemberSet()
        for line in self.ensemble.read_config(hosts):
            _, host, role = parse_config_line(line)
            members.add(Member(name=host.split(".")[0], namespace=self.namespace, role=role))
        self.members = members
        self.log("INFO", f"recovered membership from ensemble config: {members}")
        versions = {p.version for p in pods if p.version}
        if len(versions) == 1:
            self.status.set_version(versions.pop())
        self.status.set_phase(PHASE_RUNNING)

    # -- membership primitives -------------------------------------------

    def new_member(self) -> Member:
        return Member(name=f"{self.name}-{self.members.max_id() + 1}", namespace=self.namespace)

    def add_member(self, member: Member, state: str) -> None:
        # New members join as observers until a reconfigure promotes them.
        if state == STATE_NEW:
            member = replace(member, role=OBSERVER)
        else:
            member = member.promoted()
        existing = self.members.to_ensemble_config()
        self.members.add(member)
        self._create_pod(member, existing, state)
        self.log("INFO", f"MemberAdd: added member ({member.name}) as {state}", member=member.name)

    def remove_member(self, member: Member, reconfigure: bool, graceful: bool) -> None:
        """Drop a member from the record, then from the ensemble, then its pod."""
        self.members.remove(member.name)
        if reconfigure:
            try:
                config = self.ensemble.reconfigure(self.members.client_endpoints(), self.members.to_ensemble_config())
                self.log("INFO", f"ensemble reconfigured without {member.name}: {config}", member=member.name)
            except EnsembleError as e:
                # The membership check on a later pass pushes the config again.
                self.log("ERROR", f"failed to reconfigure remove member from cluster: {e}", member=member.name)
        self.log("INFO", f"MemberRemove: removing member ({member.name})", member=member.name)
        self.remove_pod(member.name, graceful)
        self.log("INFO", f"removed member ({member.name}) with ID ({member.id})", member=member.name)

    def remove_pod(self, name: str, graceful: bool) -> None:
        self.workload.delete_pod(name, self.namespace, graceful)

    def _create_pod(self, member: Member, existing: list[str], state: str) -> None:
        try:
            self.workload.create_pod(member, existing, state, self.resource)
        except OperatorError:
            raise
        except Exception as e:
            raise PodCreateError(member.name, f"{type(e).__name__}: {e}") from e
