from __future__ import annotations

from .cluster import Cluster
from .errors import LostQuorumError
from .members import Member, MemberSet
from .workload import STATE_NEW, STATE_REPLACEMENT


def majority(size: int) -> int:
    return size // 2 + 1


def reconcile_members(cluster: Cluster, running: MemberSet) -> None:
    """Bring running pods, membership and desired size one step closer.

    Steps:
      1) force-delete running pods that are not members
      2) L = remaining running members
      3) L == members: resize
      4) L below majority of members: lost quorum, do nothing
      5) otherwise replace one dead member
    """
    members = cluster.members
    cluster.log("INFO", f"running members: {running}")
    cluster.log("INFO", f"cluster membership: {members}")

    unknown = running.diff(members)
    if unknown.size() > 0:
        cluster.log("INFO", f"removing unexpected pods: {unknown}")
        for m in unknown:
            # Never part of the ensemble, so no reconfigure and no drain.
            cluster.remove_pod(m.name, graceful=False)
    alive = running.diff(unknown)

    if alive.size() == members.size():
        resize(cluster)
        return

    if alive.size() < majority(members.size()):
        raise LostQuorumError(alive.size(), members.size())

    cluster.log("INFO", "removing one dead member")
    replace_dead_member(cluster, members.diff(alive).pick_one())


def resize(cluster: Cluster) -> None:
    size = cluster.members.size()
    if size == cluster.spec.size:
        return
    if size < cluster.spec.size:
        add_one_member(cluster)
        return
    remove_one_member(cluster)


def add_one_member(cluster: Cluster) -> None:
    cluster.status.set_scaling_up(cluster.members.size(), cluster.spec.size)
    cluster.add_member(cluster.new_member(), STATE_NEW)


def remove_one_member(cluster: Cluster) -> None:
    cluster.status.set_scaling_down(cluster.members.size(), cluster.spec.size)
    # TODO: avoid picking the current quorum leader to spare a re-election.
    cluster.remove_member(cluster.members.pick_one(), reconfigure=True, graceful=True)


def replace_dead_member(cluster: Cluster, member: Member) -> None:
    cluster.log("INFO", f"ReplacingDeadMember: replacing dead member {member.name!r}", member=member.name)
    # Same name and id come back, so the ensemble config does not change.
    cluster.remove_member(member, reconfigure=False, graceful=True)
    cluster.add_member(member, STATE_REPLACEMENT)
