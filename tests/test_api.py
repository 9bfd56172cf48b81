import time

import pytest
from fastapi.testclient import TestClient

from zkop.api import create_app
from zkop.controller import Added, Controller, Deleted, Modified
from zkop.runtime import RuntimeState

from fakes import FakeEnsemble, FakeWorkload


class RecordingController:
    """Takes events without running any workers."""

    def __init__(self):
        self.runtime = RuntimeState()
        self.events = []
        self.started = False
        self.stopped = False

    def handle(self, event):
        self.events.append(event)

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True


@pytest.fixture()
def ctl():
    return RecordingController()


@pytest.fixture()
def client(ctl):
    with TestClient(create_app(controller=ctl)) as c:
        yield c


def _create(client, name="example", size=3, **spec):
    return client.post("/clusters", json={"name": name, "spec": {"size": size, **spec}})


def test_lifecycle_hooks_drive_the_controller(ctl):
    with TestClient(create_app(controller=ctl)) as c:
        assert c.get("/health").json() == {"status": "ok", "clusters": 0}
        assert ctl.started
    assert ctl.stopped


def test_create_cluster_defaults_and_emits_added(client, ctl):
    r = _create(client, size=3)
    assert r.status_code == 201
    body = r.json()
    assert body["namespace"] == "default"
    assert body["resource_version"] == 1
    assert body["spec"]["version"] == "3.5.3-beta"
    assert body["spec"]["repository"] == "blafrisch/zookeeper"
    assert body["status"] is None

    assert len(ctl.events) == 1
    ev = ctl.events[0]
    assert isinstance(ev, Added)
    assert ev.resource.key == ("default", "example")
    assert ev.resource.uid == body["uid"]


def test_duplicate_cluster_conflicts(client):
    assert _create(client).status_code == 201
    assert _create(client).status_code == 409


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "Bad_Name", "spec": {"size": 3}},
        {"name": "example", "spec": {"size": 0}},
        {"name": "example", "spec": {"size": 3, "pod": {"labels": {"app": "mine"}}}},
        {"name": "example", "spec": {"size": 3, "pod": {"labels": {"zookeeper_cluster": "x"}}}},
    ],
)
def test_invalid_clusters_are_rejected(client, ctl, payload):
    assert client.post("/clusters", json=payload).status_code == 422
    assert ctl.events == []


def test_anti_affinity_is_translated_on_create(client):
    body = _create(client, pod={"anti_affinity": True}).json()
    affinity = body["spec"]["pod"]["affinity"]
    term = affinity["podAntiAffinity"]["requiredDuringSchedulingIgnoredDuringExecution"][0]
    assert term["labelSelector"]["matchLabels"] == {"zookeeper_cluster": "example"}
    assert term["topologyKey"] == "kubernetes.io/hostname"


def test_get_and_list(client):
    _create(client, name="alpha")
    _create(client, name="beta", size=5)

    assert [c["name"] for c in client.get("/clusters").json()] == ["alpha", "beta"]
    assert client.get("/clusters/default/beta").json()["spec"]["size"] == 5
    assert client.get("/clusters/default/gamma").status_code == 404


def test_patch_bumps_resource_version_and_emits_modified(client, ctl):
    _create(client, size=3, version="3.4.0")

    r = client.patch("/clusters/default/example", json={"size": 5, "version": "v3.5.3"})
    assert r.status_code == 200
    body = r.json()
    assert body["resource_version"] == 2
    assert body["spec"]["size"] == 5
    assert body["spec"]["version"] == "3.5.3"

    ev = ctl.events[-1]
    assert isinstance(ev, Modified)
    assert ev.resource.resource_version == 2
    assert ev.resource.uid == body["uid"]


def test_patch_pause_and_validation(client):
    _create(client)
    assert client.patch("/clusters/default/example", json={"paused": True}).json()["spec"]["paused"] is True
    assert client.patch("/clusters/default/example", json={"size": 0}).status_code == 422
    assert client.patch("/clusters/default/missing", json={"size": 3}).status_code == 404


def test_delete_cluster(client, ctl):
    _create(client)
    r = client.delete("/clusters/default/example")
    assert r.status_code == 200
    assert isinstance(ctl.events[-1], Deleted)
    assert client.get("/clusters/default/example").status_code == 404
    assert client.delete("/clusters/default/example").status_code == 404


def test_events_endpoint(client):
    _create(client, name="alpha")
    _create(client, name="beta")

    events = client.get("/events", params={"cluster": "alpha"}).json()
    assert events and all(e["cluster_name"] == "alpha" for e in events)
    assert events[0]["message"] == "cluster created with size 3"
    assert len(client.get("/events", params={"limit": 1}).json()) == 1


def test_status_is_served_from_the_running_worker():
    ctl = Controller(workload=FakeWorkload(), ensemble=FakeEnsemble(), resync_interval_s=3600)
    with TestClient(create_app(controller=ctl)) as c:
        assert _create(c, size=3).status_code == 201

        deadline = time.monotonic() + 5
        status = None
        while time.monotonic() < deadline:
            status = c.get("/clusters/default/example").json()["status"]
            if status is not None:
                break
            time.sleep(0.02)

        assert status is not None
        assert status["phase"] == "Running"
        assert status["members"] == ["example-1", "example-2", "example-3"]
