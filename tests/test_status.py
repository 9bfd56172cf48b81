from zkop.status import (
    CONDITION_READY,
    CONDITION_SCALING,
    CONDITION_UPGRADING,
    PHASE_INITIALIZING,
    PHASE_RUNNING,
    ClusterStatus,
)


def test_new_status():
    st = ClusterStatus()
    assert st.phase == PHASE_INITIALIZING
    assert st.conditions == {}
    assert not st.is_ready()


def test_scaling_clears_ready():
    st = ClusterStatus()
    st.set_ready()
    st.set_scaling_up(3, 5)

    assert not st.is_ready()
    cond = st.condition(CONDITION_SCALING)
    assert (cond.direction, cond.from_size, cond.to_size) == ("up", 3, 5)

    st.set_scaling_down(5, 3)
    assert st.condition(CONDITION_SCALING).direction == "down"


def test_upgrade_defaults_from_current_version():
    st = ClusterStatus()
    st.set_version("3.4.0")
    st.set_ready()
    st.upgrade_version_to("3.5.3")

    cond = st.condition(CONDITION_UPGRADING)
    assert (cond.from_version, cond.to_version) == ("3.4.0", "3.5.3")
    assert st.target_version == "3.5.3"
    assert not st.is_ready()


def test_scaling_and_upgrading_are_independent():
    st = ClusterStatus()
    st.set_scaling_up(1, 3)
    st.upgrade_version_to("3.5.3", from_version="3.4.0")
    assert st.has_condition(CONDITION_SCALING)
    assert st.has_condition(CONDITION_UPGRADING)

    st.clear_condition(CONDITION_SCALING)
    assert st.has_condition(CONDITION_UPGRADING)


def test_ready_clears_scaling_and_upgrading():
    st = ClusterStatus()
    st.set_scaling_up(1, 3)
    st.upgrade_version_to("3.5.3")
    st.set_version("3.5.3")
    st.set_ready()

    assert st.is_ready()
    assert not st.has_condition(CONDITION_SCALING)
    assert not st.has_condition(CONDITION_UPGRADING)
    assert st.current_version == "3.5.3"
    assert st.target_version == ""


def test_same_condition_keeps_transition_time():
    st = ClusterStatus()
    st.set_scaling_up(3, 5)
    first = st.condition(CONDITION_SCALING)
    st.set_scaling_up(3, 5)
    assert st.condition(CONDITION_SCALING) is first


def test_copy_is_independent():
    st = ClusterStatus(phase=PHASE_RUNNING, members=["example-1"])
    snap = st.copy()
    st.members.append("example-2")
    st.set_ready()
    assert snap.members == ["example-1"]
    assert not snap.is_ready()


def test_to_dict_lists_conditions_by_type():
    st = ClusterStatus()
    st.upgrade_version_to("3.5.3", from_version="3.4.0")
    st.set_scaling_up(1, 3)
    d = st.to_dict()
    assert [c["type"] for c in d["conditions"]] == [CONDITION_SCALING, CONDITION_UPGRADING]
    assert d["phase"] == PHASE_INITIALIZING
    assert CONDITION_READY not in [c["type"] for c in d["conditions"]]
