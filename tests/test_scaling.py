import pytest

from zkop import db
from zkop.errors import EnsembleConnectError, LostQuorumError
from zkop.members import OBSERVER, MemberSet
from zkop.scaling import majority, reconcile_members
from zkop.status import CONDITION_READY, CONDITION_SCALING
from zkop.workload import STATE_NEW, STATE_REPLACEMENT

from fakes import make_cluster, members_of, running_pods


def _running(ids):
    return MemberSet.from_pods(running_pods(ids))


@pytest.mark.parametrize("size,expected", [(1, 1), (2, 2), (3, 2), (4, 3), (5, 3), (7, 4)])
def test_majority(size, expected):
    assert majority(size) == expected


def test_quorum_kept_replaces_one_dead_member():
    cluster = make_cluster(5, [1, 2, 3, 4, 5], running_ids=[1, 2, 3])

    reconcile_members(cluster, _running([1, 2, 3]))

    # Lowest id among the dead goes first; the same name and id come back.
    assert cluster.workload.deleted == [("example-4", True)]
    existing = members_of([1, 2, 3, 5]).to_ensemble_config()
    assert cluster.workload.created == [("example-4", existing, STATE_REPLACEMENT)]
    assert cluster.ensemble.reconfigs == []
    assert cluster.members.size() == 5


def test_lost_quorum_changes_nothing():
    cluster = make_cluster(5, [1, 2, 3, 4, 5], running_ids=[1, 2])

    with pytest.raises(LostQuorumError) as ei:
        reconcile_members(cluster, _running([1, 2]))

    assert (ei.value.alive, ei.value.members) == (2, 5)
    assert cluster.workload.created == []
    assert cluster.workload.deleted == []
    assert cluster.members.names() == members_of([1, 2, 3, 4, 5]).names()


def test_unknown_pods_are_force_deleted_first():
    cluster = make_cluster(3, [1, 2, 3], running_ids=[1, 2, 3, 9])

    reconcile_members(cluster, _running([1, 2, 3, 9]))

    assert cluster.workload.deleted == [("example-9", False)]
    assert cluster.workload.created == []


def test_scale_up_adds_exactly_one_observer():
    cluster = make_cluster(7, [1, 2, 3])
    cluster.status.set_ready()

    reconcile_members(cluster, _running([1, 2, 3]))

    assert [c[0] for c in cluster.workload.created] == ["example-4"]
    assert cluster.workload.created[0][2] == STATE_NEW
    assert cluster.members.get("example-4").role == OBSERVER
    assert cluster.members.size() == 4
    cond = cluster.status.condition(CONDITION_SCALING)
    assert (cond.direction, cond.from_size, cond.to_size) == ("up", 3, 7)
    assert not cluster.status.has_condition(CONDITION_READY)


def test_scale_down_removes_one_member_through_the_ensemble():
    cluster = make_cluster(3, [1, 2, 3, 4, 5])

    reconcile_members(cluster, _running([1, 2, 3, 4, 5]))

    assert cluster.ensemble.reconfigs == [members_of([2, 3, 4, 5]).to_ensemble_config()]
    assert cluster.workload.deleted == [("example-1", True)]
    assert cluster.members.size() == 4
    cond = cluster.status.condition(CONDITION_SCALING)
    assert (cond.direction, cond.from_size, cond.to_size) == ("down", 5, 3)


def test_failed_reconfigure_still_deletes_pod():
    cluster = make_cluster(2, [1, 2, 3])
    cluster.ensemble.fail = EnsembleConnectError("no hosts reachable")

    reconcile_members(cluster, _running([1, 2, 3]))

    assert cluster.workload.deleted == [("example-1", True)]
    errors = [e for e in db.latest_events(cluster_name="example") if e["level"] == "ERROR"]
    assert errors and "failed to reconfigure" in errors[0]["message"]


def test_matching_size_is_a_no_op():
    cluster = make_cluster(3, [1, 2, 3])
    reconcile_members(cluster, _running([1, 2, 3]))
    assert cluster.workload.created == []
    assert cluster.workload.deleted == []
