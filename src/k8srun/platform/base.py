"""Platform capabilities consumed by the runner.

There are two layers:

1. ``TemplateCatalog`` and ``UnitRuntime`` - structural Protocols.  The
   runner only ever talks to objects satisfying these, so the core can be
   exercised against an in-memory fake.

2. ``BasePlatform`` - an abstract base class that **every concrete platform
   should extend**.  Its public methods wrap the subclass's ``_do_*`` hooks
   with logging so pod creation and deletion are *always* visible in the
   logs, whichever backend performed them.
"""

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Iterator, Protocol, runtime_checkable

from ..protocol import Template, UnitRef, UnitStatus

if TYPE_CHECKING:
    from ..cancel import CancellationToken

logger = logging.getLogger(__name__)


@runtime_checkable
class TemplateCatalog(Protocol):
    """Read-only access to label-addressed pod templates."""

    def list_templates(self, namespace: str, selector: dict[str, str]) -> list[Template]:
        """Return templates whose labels equal every entry of *selector*."""
        ...


@runtime_checkable
class UnitRuntime(Protocol):
    """Lifecycle operations on pods."""

    def create_unit(self, namespace: str, manifest: dict[str, Any]) -> UnitRef:
        ...

    def stream_output(
        self, unit: UnitRef, cancel: "CancellationToken | None" = None
    ) -> Iterator[bytes]:
        """Yield raw output chunks until the primary container's log closes."""
        ...

    def get_unit_status(self, unit: UnitRef) -> UnitStatus:
        ...

    def delete_unit(self, unit: UnitRef) -> None:
        """Delete the pod; a pod that is already gone is not an error."""
        ...


class BasePlatform(ABC):
    """Abstract base class for platforms with automatic lifecycle logging.

    Subclass this and implement the ``_do_*`` hooks.  Hooks raise the
    backend's own exceptions; translating them into k8srun errors is the
    caller's job, so the original error is never lost.

    Example::

        class MyPlatform(BasePlatform):
            def _do_list_templates(self, namespace, selector): ...
            def _do_create_unit(self, namespace, manifest): ...
            def _do_stream_output(self, unit, cancel): ...
            def _do_get_unit_status(self, unit): ...
            def _do_delete_unit(self, unit): ...
    """

    def __init__(self, namespace: str = "default"):
        # Namespace used when a job does not name one.
        self.namespace = namespace

    # ------------------------------------------------------------------
    # Public API - do NOT override
    # ------------------------------------------------------------------

    def list_templates(self, namespace: str, selector: dict[str, str]) -> list[Template]:
        templates = self._do_list_templates(namespace, selector)
        logger.debug(
            "Found %d pod template(s) in %r namespace for %s",
            len(templates), namespace, selector,
        )
        return templates

    def create_unit(self, namespace: str, manifest: dict[str, Any]) -> UnitRef:
        unit = self._do_create_unit(namespace, manifest)
        logger.info("Created pod %r in %r namespace", unit.name, unit.namespace)
        return unit

    def stream_output(
        self, unit: UnitRef, cancel: "CancellationToken | None" = None
    ) -> Iterator[bytes]:
        return self._do_stream_output(unit, cancel)

    def get_unit_status(self, unit: UnitRef) -> UnitStatus:
        status = self._do_get_unit_status(unit)
        logger.debug("Pod %s is %s", unit, status.phase)
        return status

    def delete_unit(self, unit: UnitRef) -> None:
        self._do_delete_unit(unit)
        logger.info("Deleted pod %r in %r namespace", unit.name, unit.namespace)

    # ------------------------------------------------------------------
    # Subclass contract
    # ------------------------------------------------------------------

    @abstractmethod
    def _do_list_templates(self, namespace: str, selector: dict[str, str]) -> list[Template]:
        ...

    @abstractmethod
    def _do_create_unit(self, namespace: str, manifest: dict[str, Any]) -> UnitRef:
        """Submit *manifest*; return the identity the platform assigned."""
        ...

    @abstractmethod
    def _do_stream_output(
        self, unit: UnitRef, cancel: "CancellationToken | None"
    ) -> Iterator[bytes]:
        ...

    @abstractmethod
    def _do_get_unit_status(self, unit: UnitRef) -> UnitStatus:
        ...

    @abstractmethod
    def _do_delete_unit(self, unit: UnitRef) -> None:
        ...
