from __future__ import annotations

from . import scaling, upgrade
from .cluster import Cluster
from .members import MemberSet
from .status import CONDITION_SCALING, CONDITION_UPGRADING
from .workload import PodInfo


def reconcile(cluster: Cluster, pods: list[PodInfo]) -> None:
    """Run one reconcile pass over the cluster's running pods.

    - pods match membership but the ensemble config does not: reconfigure, done
    - pods and membership disagree, or membership != desired size: one scaling step
    - otherwise upgrade one outdated member, or mark the cluster ready

    At most one membership change happens per pass.
    """
    cluster.log("INFO", "Start reconciling")
    try:
        _reconcile(cluster, pods)
    finally:
        cluster.status.size = cluster.members.size()
        cluster.status.members = cluster.members.names()
        cluster.log("INFO", "Finish reconciling")


def _reconcile(cluster: Cluster, pods: list[PodInfo]) -> None:
    spec = cluster.spec
    running = MemberSet.from_pods(pods)

    if running.is_equal(cluster.members):
        if sync_ensemble_config(cluster):
            return

    if not running.is_equal(cluster.members) or cluster.members.size() != spec.size:
        scaling.reconcile_members(cluster, running)
        return
    cluster.status.clear_condition(CONDITION_SCALING)

    if upgrade.needs_upgrade(pods, spec):
        m = upgrade.pick_upgrade_candidate(pods, spec.version)
        from_version = next((p.version for p in pods if p.name == m.name), None)
        upgrade.upgrade_one_member(cluster, m, from_version=from_version)
        return
    cluster.status.clear_condition(CONDITION_UPGRADING)

    cluster.status.set_version(spec.version)
    cluster.status.set_ready()


def sync_ensemble_config(cluster: Cluster) -> bool:
    """Push the membership to the ensemble if its live config drifted.

    Returns True when a reconfigure was issued. Observers still waiting for
    promotion count as drift.
    """
    members = cluster.members
    if members.size() == 0:
        return False
    hosts = members.client_endpoints()
    live = cluster.ensemble.read_config(hosts)
    if len(live) == members.size() and live == members.to_ensemble_config() and not members.has_observers():
        return False

    members.promote_all()
    cluster.log("INFO", "Reconfiguring ZK cluster")
    config = cluster.ensemble.reconfigure(hosts, members.to_ensemble_config())
    cluster.log("INFO", f"New ZK config: {config}")
    return True
