from __future__ import annotations

from .api_models import ClusterSpec
from .cluster import Cluster
from .members import Member
from .workload import STATE_REPLACEMENT, PodInfo


def needs_upgrade(pods: list[PodInfo], spec: ClusterSpec) -> bool:
    """True when membership is stable and some pod runs another version."""
    return len(pods) == spec.size and pick_upgrade_candidate(pods, spec.version) is not None


def pick_upgrade_candidate(pods: list[PodInfo], version: str) -> Member | None:
    # Listing order, no leader awareness.
    for pod in pods:
        if pod.version == version:
            continue
        return Member(name=pod.name, namespace=pod.namespace)
    return None


def upgrade_one_member(cluster: Cluster, member: Member, from_version: str | None = None) -> None:
    """Replace one member with a pod built from the target version."""
    to_version = cluster.spec.version
    cluster.status.upgrade_version_to(to_version, from_version=cluster.status.current_version or from_version)
    cluster.log("INFO", f"UpgradeMember: upgrading {member.name} to {to_version}", member=member.name)
    known = cluster.members.get(member.name) or member
    cluster.remove_member(known, reconfigure=True, graceful=True)
    cluster.add_member(known, STATE_REPLACEMENT)
