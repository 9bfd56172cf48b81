from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _patch(base: str, namespace: str, name: str, payload: dict) -> requests.Response:
    return requests.patch(f"{base}/clusters/{namespace}/{name}", json=payload, timeout=30)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Zookeeper Operator CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    p.add_argument("-n", "--namespace", default="default")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("clusters", help="List clusters")

    s_status = sub.add_parser("status", help="Show one cluster with its status")
    s_status.add_argument("name")

    s_create = sub.add_parser("create", help="Create a cluster")
    s_create.add_argument("name")
    s_create.add_argument("--size", type=int, required=True)
    s_create.add_argument("--version", default=None, help="Zookeeper version, e.g. 3.5.3-beta")
    s_create.add_argument("--repository", default=None, help="Image repository")
    s_create.add_argument("--paused", action="store_true")
    s_create.add_argument("--anti-affinity", action="store_true", help="Spread members across nodes")

    s_scale = sub.add_parser("scale", help="Change the desired ensemble size")
    s_scale.add_argument("name")
    s_scale.add_argument("--size", type=int, required=True)

    s_up = sub.add_parser("upgrade", help="Roll the cluster to another version")
    s_up.add_argument("name")
    s_up.add_argument("--version", required=True)

    s_pause = sub.add_parser("pause", help="Stop reconciling a cluster")
    s_pause.add_argument("name")

    s_resume = sub.add_parser("resume", help="Resume reconciling a cluster")
    s_resume.add_argument("name")

    s_del = sub.add_parser("delete", help="Delete a cluster")
    s_del.add_argument("name")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)
    s_ev.add_argument("--cluster", default=None)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")
    ns = args.namespace

    if args.cmd == "clusters":
        _print(requests.get(f"{base}/clusters", params={"namespace": ns}, timeout=10).json())
        return 0

    if args.cmd == "status":
        r = requests.get(f"{base}/clusters/{ns}/{args.name}", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        params = {"limit": args.limit}
        if args.cluster:
            params["cluster"] = args.cluster
        _print(requests.get(f"{base}/events", params=params, timeout=10).json())
        return 0

    if args.cmd == "create":
        spec: dict = {"size": args.size, "paused": args.paused}
        if args.version:
            spec["version"] = args.version
        if args.repository:
            spec["repository"] = args.repository
        if args.anti_affinity:
            spec["pod"] = {"anti_affinity": True}
        r = requests.post(f"{base}/clusters", json={"name": args.name, "namespace": ns, "spec": spec}, timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "delete":
        r = requests.delete(f"{base}/clusters/{ns}/{args.name}", timeout=30)
        _print(r.json())
        return 0 if r.ok else 1

    patches = {
        "scale": lambda: {"size": args.size},
        "upgrade": lambda: {"version": args.version},
        "pause": lambda: {"paused": True},
        "resume": lambda: {"paused": False},
    }
    if args.cmd in patches:
        r = _patch(base, ns, args.name, patches[args.cmd]())
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
