from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import ValidationError

from . import __version__, db
from .api_models import ClusterCreateRequest, ClusterPatchRequest, ClusterResource, ClusterSpec
from .controller import Added, Controller, Deleted, Modified


def create_app(controller: Controller | None = None) -> FastAPI:
    """Build the operator's HTTP API.

    The API is the event source: every create/patch/delete is stored in the
    desired-state table and then handed to the controller.
    """
    app = FastAPI(title="Zookeeper Operator", version=__version__)
    ctl = controller or Controller()
    app.state.controller = ctl

    def _view(row: db.ClusterRow) -> dict[str, Any]:
        st = ctl.runtime.get_status((row.namespace, row.name))
        return {
            "name": row.name,
            "namespace": row.namespace,
            "uid": row.uid,
            "resource_version": row.resource_version,
            "created_at": row.created_at,
            "spec": row.spec_dict(),
            "status": st.to_dict() if st else None,
        }

    def _get_or_404(namespace: str, name: str) -> db.ClusterRow:
        row = db.get_cluster(namespace, name)
        if not row:
            raise HTTPException(status_code=404, detail=f"cluster {namespace}/{name} not found")
        return row

    @app.on_event("startup")
    def _startup() -> None:
        db.init_db()
        db.log_event("INFO", "API started")
        ctl.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        ctl.stop()
        db.log_event("INFO", "API stopped")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "clusters": len(db.list_clusters())}

    @app.get("/clusters")
    def list_clusters(namespace: str | None = None) -> list[dict[str, Any]]:
        return [_view(r) for r in db.list_clusters(namespace)]

    @app.post("/clusters", status_code=201)
    def create_cluster(req: ClusterCreateRequest) -> dict[str, Any]:
        if db.get_cluster(req.namespace, req.name):
            raise HTTPException(status_code=409, detail=f"cluster {req.namespace}/{req.name} already exists")
        resource = ClusterResource(name=req.name, namespace=req.namespace, spec=req.spec)
        row = db.upsert_cluster(
            resource.name,
            resource.namespace,
            resource.uid,
            resource.resource_version,
            resource.spec.model_dump(mode="json"),
        )
        db.log_event("INFO", f"cluster created with size {resource.spec.size}", cluster_name=resource.name)
        ctl.handle(Added(resource))
        return _view(row)

    @app.get("/clusters/{namespace}/{name}")
    def get_cluster(namespace: str, name: str) -> dict[str, Any]:
        return _view(_get_or_404(namespace, name))

    @app.patch("/clusters/{namespace}/{name}")
    def patch_cluster(namespace: str, name: str, req: ClusterPatchRequest) -> dict[str, Any]:
        row = _get_or_404(namespace, name)
        spec = row.spec_dict()
        spec.update(req.model_dump(mode="json", exclude_unset=True))
        try:
            new_spec = ClusterSpec.model_validate(spec)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e

        resource = ClusterResource(
            name=row.name,
            namespace=row.namespace,
            uid=row.uid,
            resource_version=row.resource_version + 1,
            spec=new_spec,
        )
        row = db.upsert_cluster(
            resource.name,
            resource.namespace,
            resource.uid,
            resource.resource_version,
            resource.spec.model_dump(mode="json"),
        )
        db.log_event("INFO", f"cluster spec patched: {sorted(req.model_fields_set)}", cluster_name=name)
        ctl.handle(Modified(resource))
        return _view(row)

    @app.delete("/clusters/{namespace}/{name}")
    def delete_cluster(namespace: str, name: str) -> dict[str, Any]:
        if not db.delete_cluster(namespace, name):
            raise HTTPException(status_code=404, detail=f"cluster {namespace}/{name} not found")
        db.log_event("INFO", "cluster deleted", cluster_name=name)
        ctl.handle(Deleted(namespace, name))
        return {"ok": True}

    @app.get("/events")
    def events(limit: int = 100, cluster: str | None = None) -> list[dict[str, Any]]:
        return db.latest_events(limit=limit, cluster_name=cluster)

    return app