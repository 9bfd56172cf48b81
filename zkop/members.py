from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Iterable, Iterator

from .errors import EmptySetError
from .settings import settings

if TYPE_CHECKING:
    from .workload import PodInfo


CLIENT_PORT = 2181
PEER_PORT = 2888
LEADER_PORT = 3888

PARTICIPANT = "participant"
OBSERVER = "observer"

MEMBER_NAME_RE = re.compile(r"^(?P<cluster>.+)-(?P<id>\d+)$")


def parse_member_name(name: str) -> tuple[str, int]:
    """Split "<clusterName>-<id>" into (clusterName, id)."""
    m = MEMBER_NAME_RE.match(name)
    if not m:
        raise ValueError(f"unexpected member name: {name!r}")
    return m.group("cluster"), int(m.group("id"))


@dataclass(frozen=True)
class Member:
    name: str
    namespace: str
    role: str = PARTICIPANT
    service_domain: str = settings.service_domain

    def __post_init__(self) -> None:
        parse_member_name(self.name)
        if self.role not in {PARTICIPANT, OBSERVER}:
            raise ValueError(f"unknown ensemble role: {self.role!r}")

    @property
    def id(self) -> int:
        return parse_member_name(self.name)[1]

    @property
    def cluster_name(self) -> str:
        return parse_member_name(self.name)[0]

    @property
    def addr(self) -> str:
        # DNS A record of the pod behind the headless peer service.
        return f"{self.name}.{self.cluster_name}.{self.namespace}.{self.service_domain}"

    @property
    def client_endpoint(self) -> str:
        return f"{self.addr}:{CLIENT_PORT}"

    def config_line(self, role: str | None = None) -> str:
        role = role or self.role
        return f"server.{self.id}={self.addr}:{PEER_PORT}:{LEADER_PORT}:{role};{self.addr}:{CLIENT_PORT}"

    def promoted(self) -> Member:
        return replace(self, role=PARTICIPANT)


class MemberSet:
    """The operator's record of ensemble membership, keyed by member name.

    Storage is unordered; every iteration and serialization is sorted so that
    comparisons and wire calls are deterministic.
    """

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._members: dict[str, Member] = {}
        for m in members:
            self.add(m)

    @classmethod
    def from_pods(cls, pods: Iterable[PodInfo]) -> MemberSet:
        return cls(Member(name=p.name, namespace=p.namespace) for p in pods)

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self) -> Iterator[Member]:
        return iter(sorted(self._members.values(), key=lambda m: (m.id, m.name)))

    def __contains__(self, name: object) -> bool:
        return name in self._members

    def __str__(self) -> str:
        return ",".join(self.names())

    def __repr__(self) -> str:
        return f"MemberSet({self})"

    def size(self) -> int:
        return len(self._members)

    def get(self, name: str) -> Member | None:
        return self._members.get(name)

    def names(self) -> list[str]:
        return [m.name for m in self]

    def copy(self) -> MemberSet:
        return MemberSet(self._members.values())

    def add(self, member: Member) -> None:
        self._members[member.name] = member

    def remove(self, name: str) -> None:
        self._members.pop(name, None)

    def diff(self, other: MemberSet) -> MemberSet:
        """Members of self whose name is not in other."""
        return MemberSet(m for n, m in self._members.items() if n not in other)

    def is_equal(self, other: MemberSet) -> bool:
        # Membership equality is judged by name only.
        if self.size() != other.size():
            return False
        return all(n in other for n in self._members)

    def pick_one(self) -> Member:
        """Return the member with the lowest id (name breaks ties)."""
        for m in self:
            return m
        raise EmptySetError("cannot pick a member from an empty set")

    def max_id(self) -> int:
        return max((m.id for m in self._members.values()), default=0)

    def client_endpoints(self) -> list[str]:
        return sorted(m.client_endpoint for m in self._members.values())

    def to_ensemble_config(self) -> list[str]:
        return sorted(m.config_line() for m in self._members.values())

    def has_observers(self) -> bool:
        return any(m.role == OBSERVER for m in self._members.values())

    def promote_all(self) -> None:
        for name, m in list(self._members.items()):
            if m.role == OBSERVER:
                self._members[name] = m.promoted()
