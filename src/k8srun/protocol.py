"""Value types shared by the runner and the platform adapters."""

from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional


@dataclass(frozen=True)
class Job:
    """A request to run one instance of a registered pod template.

    ``instance``, ``config`` and the alphanumeric prefix of ``name`` select
    the template.  ``args`` replace the first container's arguments verbatim.
    An empty ``namespace`` means the cluster default.
    """
    instance: str
    name: str
    config: str
    args: tuple[str, ...] = ()
    namespace: str = ""

    def __post_init__(self):
        # Accept any sequence but keep the job immutable.
        object.__setattr__(self, "args", tuple(self.args))


@dataclass
class Template:
    """A label-addressed pod template read from the platform.

    ``unit`` is the embedded pod template (``metadata`` and ``spec``) in
    Kubernetes API dictionary form.
    """
    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    unit: dict[str, Any] = field(default_factory=dict)

    @property
    def containers(self) -> list[dict[str, Any]]:
        return (self.unit.get("spec") or {}).get("containers") or []


@dataclass(frozen=True)
class UnitRef:
    """Identity of a created pod."""
    name: str
    namespace: str
    container: Optional[str] = None  # primary container

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


TERMINAL_PHASES = frozenset({"Succeeded", "Failed"})


@dataclass
class UnitStatus:
    """Snapshot of a pod's status as seen by the waiter."""
    phase: Optional[str]
    exit_code: Optional[int] = None   # primary container, once terminated
    reason: Optional[str] = None
    message: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class ExitStatus(NamedTuple):
    """Outcome of a run: an exit code plus the machinery error, if any.

    Code 128 means the runner itself failed; any other code is the one the
    unit's primary container reported.
    """
    code: int
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.code == 0 and self.error is None
