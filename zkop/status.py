from __future__ import annotations

import copy
from dataclasses import asdict, dataclass, field
from typing import Any

from .db import utc_now


PHASE_INITIALIZING = "Initializing"
PHASE_RUNNING = "Running"
PHASE_FAILED = "Failed"

CONDITION_READY = "Ready"
CONDITION_SCALING = "Scaling"
CONDITION_UPGRADING = "Upgrading"


@dataclass
class Condition:
    type: str
    reason: str = ""
    message: str = ""
    # Scaling
    direction: str | None = None  # up|down
    from_size: int | None = None
    to_size: int | None = None
    # Upgrading
    from_version: str | None = None
    to_version: str | None = None
    last_transition_time: str = field(default_factory=utc_now)


@dataclass
class ClusterStatus:
    """Observable state of one cluster, kept apart from its membership.

    Scaling and Upgrading are independent conditions; Ready is only set once
    both are cleared, and setting either one clears Ready.
    """

    phase: str = PHASE_INITIALIZING
    reason: str = ""
    size: int = 0
    members: list[str] = field(default_factory=list)
    current_version: str = ""
    target_version: str = ""
    conditions: dict[str, Condition] = field(default_factory=dict)

    def set_phase(self, phase: str) -> None:
        self.phase = phase

    def set_reason(self, reason: str) -> None:
        self.reason = reason

    def has_condition(self, ctype: str) -> bool:
        return ctype in self.conditions

    def condition(self, ctype: str) -> Condition | None:
        return self.conditions.get(ctype)

    def clear_condition(self, ctype: str) -> None:
        self.conditions.pop(ctype, None)

    def _set_condition(self, cond: Condition) -> None:
        prev = self.conditions.get(cond.type)
        if prev is not None and prev.reason == cond.reason and prev.message == cond.message:
            return
        self.conditions[cond.type] = cond

    def set_scaling_up(self, from_size: int, to_size: int) -> None:
        self._set_scaling("up", from_size, to_size)

    def set_scaling_down(self, from_size: int, to_size: int) -> None:
        self._set_scaling("down", from_size, to_size)

    def _set_scaling(self, direction: str, from_size: int, to_size: int) -> None:
        self.clear_condition(CONDITION_READY)
        self._set_condition(
            Condition(
                type=CONDITION_SCALING,
                reason=f"Scaling {direction}",
                message=f"Current cluster size: {from_size}, desired cluster size: {to_size}",
                direction=direction,
                from_size=from_size,
                to_size=to_size,
            )
        )

    def upgrade_version_to(self, version: str, from_version: str | None = None) -> None:
        from_version = from_version if from_version is not None else self.current_version
        self.target_version = version
        self.clear_condition(CONDITION_READY)
        self._set_condition(
            Condition(
                type=CONDITION_UPGRADING,
                reason="Cluster upgrading",
                message=f"upgrading from {from_version} to {version}",
                from_version=from_version,
                to_version=version,
            )
        )

    def set_version(self, version: str) -> None:
        self.current_version = version
        self.target_version = ""

    def set_ready(self) -> None:
        self.clear_condition(CONDITION_SCALING)
        self.clear_condition(CONDITION_UPGRADING)
        self._set_condition(Condition(type=CONDITION_READY, reason="Cluster available"))

    def is_ready(self) -> bool:
        return self.has_condition(CONDITION_READY)

    def copy(self) -> ClusterStatus:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["conditions"] = [asdict(c) for _, c in sorted(self.conditions.items())]
        return d
