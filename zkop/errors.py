from __future__ import annotations


class OperatorError(Exception):
    """Base class for errors surfaced by a reconcile pass."""


class EnsembleError(OperatorError):
    pass


class EnsembleConnectError(EnsembleError):
    """No ensemble host could be reached within the connect timeout."""


class EnsembleProtocolError(EnsembleError):
    """The ensemble answered, but the answer was unusable."""


class LostQuorumError(OperatorError):
    def __init__(self, alive: int, members: int):
        self.alive = alive
        self.members = members
        super().__init__(f"lost quorum: {alive} of {members} members running, need {members // 2 + 1}")


class PodCreateError(OperatorError):
    def __init__(self, member: str, detail: str):
        self.member = member
        self.detail = detail
        super().__init__(f"fail to create member's pod ({member}): {detail}")


class PodWaitTimeout(PodCreateError):
    """The pod was created but never left Pending in time."""


class EmptySetError(OperatorError, LookupError):
    pass


class PodDeleteTimeout(OperatorError):
    def __init__(self, pod: str, timeout_s: float):
        self.pod = pod
        super().__init__(f"pod {pod} still terminating after {timeout_s}s")
