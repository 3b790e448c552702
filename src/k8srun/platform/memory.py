"""In-memory platform for tests and local dry runs.

Templates and pods live in dictionaries.  What a created pod "does" is
scripted by a ``UnitBehavior``, chosen per pod by a callable so a test can
make different jobs behave differently::

    platform = InMemoryPlatform(namespace="jobs")
    platform.add_template("deploy", labels={...}, containers=[{"name": "main", "image": "busybox"}])
    platform.behavior = lambda manifest: UnitBehavior(output=[b"hi\\n"], exit_code=3)
"""

import copy
import random
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional

import yaml

from ..protocol import Template, UnitRef, UnitStatus
from .base import BasePlatform

if TYPE_CHECKING:
    from ..cancel import CancellationToken

# Same alphabet and length the API server uses for generateName suffixes.
_SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
_SUFFIX_LENGTH = 5


class NotFound(LookupError):
    """Raised for operations on pods that do not exist."""
    pass


@dataclass
class UnitBehavior:
    """Scripted outcome of one pod."""
    output: list[bytes] = field(default_factory=list)
    exit_code: int = 0
    phase: Optional[str] = None          # defaults from exit_code
    running_polls: int = 0               # status polls answered "Running" first
    stream_error: Optional[Exception] = None
    status_error: Optional[Exception] = None
    reason: Optional[str] = None

    @property
    def final_phase(self) -> str:
        if self.phase:
            return self.phase
        return "Succeeded" if self.exit_code == 0 else "Failed"


@dataclass
class _Unit:
    ref: UnitRef
    manifest: dict[str, Any]
    behavior: UnitBehavior
    polls: int = 0


class InMemoryPlatform(BasePlatform):
    """Dictionary-backed implementation of both platform capabilities."""

    def __init__(
        self,
        templates: list[Template] | None = None,
        *,
        namespace: str = "default",
        behavior: Callable[[dict[str, Any]], UnitBehavior] | None = None,
    ):
        super().__init__(namespace)
        self.templates: list[Template] = list(templates or [])
        self.behavior = behavior or (lambda manifest: UnitBehavior())
        self.units: dict[tuple[str, str], _Unit] = {}

        # Every pod ever created / deleted, in order.
        self.created: list[UnitRef] = []
        self.deleted: list[UnitRef] = []
        self.list_calls = 0
        self.delete_calls = 0

        # Injected failures.
        self.list_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

        self._lock = threading.Lock()

    # -- setup ---------------------------------------------------------------

    def add_template(
        self,
        name: str,
        *,
        labels: dict[str, str],
        containers: list[dict[str, Any]],
        namespace: str | None = None,
        metadata: dict[str, Any] | None = None,
        spec: dict[str, Any] | None = None,
    ) -> Template:
        """Register a template with the given labels and container list."""
        unit_spec = dict(spec or {})
        unit_spec["containers"] = containers
        template = Template(
            name=name,
            namespace=namespace or self.namespace,
            labels=dict(labels),
            unit={"metadata": dict(metadata or {}), "spec": unit_spec},
        )
        self.templates.append(template)
        return template

    @classmethod
    def from_yaml(cls, path: Path, *, namespace: str = "default", **kwargs) -> "InMemoryPlatform":
        """Load ``kind: PodTemplate`` documents from a (multi-document) YAML file."""
        platform = cls(namespace=namespace, **kwargs)
        with open(path) as f:
            for doc in yaml.safe_load_all(f):
                if not doc or doc.get("kind") != "PodTemplate":
                    continue
                meta = doc.get("metadata") or {}
                platform.templates.append(Template(
                    name=meta.get("name", ""),
                    namespace=meta.get("namespace") or namespace,
                    labels=dict(meta.get("labels") or {}),
                    unit=doc.get("template") or {},
                ))
        return platform

    # -- inspection ----------------------------------------------------------

    def get_manifest(self, unit: UnitRef) -> dict[str, Any]:
        return self._unit(unit).manifest

    def exists(self, unit: UnitRef) -> bool:
        return (unit.namespace, unit.name) in self.units

    # -- BasePlatform hooks --------------------------------------------------

    def _do_list_templates(self, namespace: str, selector: dict[str, str]) -> list[Template]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return [
            t for t in self.templates
            if t.namespace == namespace
            and all(t.labels.get(k) == v for k, v in selector.items())
        ]

    def _do_create_unit(self, namespace: str, manifest: dict[str, Any]) -> UnitRef:
        if self.create_error is not None:
            raise self.create_error

        manifest = copy.deepcopy(manifest)
        metadata = manifest.setdefault("metadata", {})
        containers = manifest.get("spec", {}).get("containers") or []

        with self._lock:
            name = metadata.get("name")
            while not name or (namespace, name) in self.units:
                name = metadata.get("generateName", "") + "".join(
                    random.choices(_SUFFIX_ALPHABET, k=_SUFFIX_LENGTH)
                )
            metadata["name"] = name
            metadata["namespace"] = namespace

            ref = UnitRef(
                name=name,
                namespace=namespace,
                container=containers[0].get("name") if containers else None,
            )
            self.units[(namespace, name)] = _Unit(ref, manifest, self.behavior(manifest))
            self.created.append(ref)
        return ref

    def _do_stream_output(
        self, unit: UnitRef, cancel: "CancellationToken | None"
    ) -> Iterator[bytes]:
        behavior = self._unit(unit).behavior
        for chunk in behavior.output:
            if cancel is not None and cancel.cancelled:
                return
            yield chunk
        if behavior.stream_error is not None:
            raise behavior.stream_error

    def _do_get_unit_status(self, unit: UnitRef) -> UnitStatus:
        state = self._unit(unit)
        behavior = state.behavior
        if behavior.status_error is not None:
            raise behavior.status_error

        state.polls += 1
        if state.polls <= behavior.running_polls:
            return UnitStatus(phase="Running")
        return UnitStatus(
            phase=behavior.final_phase,
            exit_code=behavior.exit_code,
            reason=behavior.reason or ("Completed" if behavior.exit_code == 0 else "Error"),
        )

    def _do_delete_unit(self, unit: UnitRef) -> None:
        self.delete_calls += 1
        if self.delete_error is not None:
            raise self.delete_error
        with self._lock:
            if self.units.pop((unit.namespace, unit.name), None) is not None:
                self.deleted.append(unit)

    def _unit(self, unit: UnitRef) -> _Unit:
        try:
            return self.units[(unit.namespace, unit.name)]
        except KeyError:
            raise NotFound(f"pods {unit.name!r} not found in {unit.namespace!r}") from None
