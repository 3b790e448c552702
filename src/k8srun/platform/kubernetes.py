"""Kubernetes platform backed by the official ``kubernetes`` client.

Templates are ``PodTemplate`` objects; units are ``Pod`` objects created
from dictionary manifests.  Typical lifecycle::

    platform = KubernetesPlatform.connect(Settings.from_env())
    unit = platform.create_unit("jobs", manifest)
    for chunk in platform.stream_output(unit):   # waits for the pod to start
        ...
    platform.get_unit_status(unit)               # phase + exit code
    platform.delete_unit(unit)
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

import yaml
from kubernetes import client
from kubernetes import config as kube_config
from kubernetes.client.rest import ApiException

from ..config import Settings
from ..errors import ConfigError
from ..protocol import Template, UnitRef, UnitStatus
from .base import BasePlatform

if TYPE_CHECKING:
    from ..cancel import CancellationToken

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")
DEFAULT_NAMESPACE = "default"
LOG_CHUNK_SIZE = 64 * 1024


def format_selector(selector: dict[str, str]) -> str:
    """Equality-based label selector string (``a=1,b=2``)."""
    return ",".join(f"{key}={value}" for key, value in selector.items())


def load_api_client(settings: Settings) -> tuple[client.ApiClient, str]:
    """Build an API client and find the default namespace.

    Uses the kubeconfig (explicit path, else ``KUBECONFIG`` / ``~/.kube/config``)
    and falls back to the in-cluster service account when no kubeconfig
    exists and no explicit path was given.

    Raises:
        ConfigError: no usable configuration was found.
    """
    try:
        contexts, active = kube_config.list_kube_config_contexts(
            config_file=settings.kubeconfig
        )
    except (kube_config.ConfigException, OSError, yaml.YAMLError) as e:
        if settings.kubeconfig or "KUBERNETES_SERVICE_HOST" not in os.environ:
            raise ConfigError(f"unable to load kubeconfig: {e}") from e
        return _load_in_cluster()

    selected = active
    if settings.context:
        selected = next((c for c in contexts if c.get("name") == settings.context), None)
        if selected is None:
            raise ConfigError(f"context {settings.context!r} not found in kubeconfig")

    namespace = ((selected or {}).get("context") or {}).get("namespace") or DEFAULT_NAMESPACE

    try:
        api_client = kube_config.new_client_from_config(
            config_file=settings.kubeconfig,
            context=settings.context,
            persist_config=False,
        )
    except (kube_config.ConfigException, OSError, yaml.YAMLError) as e:
        raise ConfigError(f"unable to load kubeconfig: {e}") from e
    return api_client, namespace


def _load_in_cluster() -> tuple[client.ApiClient, str]:
    configuration = client.Configuration()
    try:
        kube_config.load_incluster_config(client_configuration=configuration)
    except kube_config.ConfigException as e:
        raise ConfigError(f"unable to load in-cluster config: {e}") from e

    namespace = DEFAULT_NAMESPACE
    if SERVICE_ACCOUNT_NAMESPACE.exists():
        namespace = SERVICE_ACCOUNT_NAMESPACE.read_text().strip() or DEFAULT_NAMESPACE
    return client.ApiClient(configuration), namespace


class KubernetesPlatform(BasePlatform):
    """Runs jobs as pods through the CoreV1 API."""

    def __init__(
        self,
        core: client.CoreV1Api,
        namespace: str = DEFAULT_NAMESPACE,
        poll_interval: float = 1.0,
    ):
        super().__init__(namespace)
        self.core = core
        self.poll_interval = poll_interval

    @classmethod
    def connect(cls, settings: Settings | None = None) -> "KubernetesPlatform":
        settings = settings or Settings.from_env()
        api_client, namespace = load_api_client(settings)
        return cls(client.CoreV1Api(api_client), namespace, settings.poll_interval)

    # -- BasePlatform hooks --------------------------------------------------

    def _do_list_templates(self, namespace: str, selector: dict[str, str]) -> list[Template]:
        result = self.core.list_namespaced_pod_template(
            namespace, label_selector=format_selector(selector)
        )
        serialize = self.core.api_client.sanitize_for_serialization
        return [self._template(serialize(item), namespace) for item in result.items]

    def _do_create_unit(self, namespace: str, manifest: dict[str, Any]) -> UnitRef:
        pod = self.core.create_namespaced_pod(namespace, manifest)
        containers = pod.spec.containers if pod.spec else None
        return UnitRef(
            name=pod.metadata.name,
            namespace=pod.metadata.namespace or namespace,
            container=containers[0].name if containers else None,
        )

    def _do_stream_output(
        self, unit: UnitRef, cancel: "CancellationToken | None"
    ) -> Iterator[bytes]:
        # The log endpoint refuses pods whose container has not started yet.
        if not self._wait_until_started(unit, cancel):
            return

        response = self.core.read_namespaced_pod_log(
            unit.name,
            unit.namespace,
            container=unit.container,
            follow=True,
            _preload_content=False,
        )
        unregister = cancel.on_cancel(response.close) if cancel is not None else None
        try:
            for chunk in response.stream(LOG_CHUNK_SIZE):
                yield chunk
        finally:
            if unregister is not None:
                unregister()
            response.release_conn()

    def _do_get_unit_status(self, unit: UnitRef) -> UnitStatus:
        pod = self.core.read_namespaced_pod_status(unit.name, unit.namespace)
        status = pod.status
        if status is None:
            return UnitStatus(phase=None)

        exit_code = None
        reason = None
        for container_status in status.container_statuses or []:
            if unit.container is not None and container_status.name != unit.container:
                continue
            state = container_status.state
            terminated = state.terminated if state is not None else None
            if terminated is not None:
                exit_code = terminated.exit_code
                reason = terminated.reason
            break

        return UnitStatus(
            phase=status.phase,
            exit_code=exit_code,
            reason=reason or status.reason,
            message=status.message,
        )

    def _do_delete_unit(self, unit: UnitRef) -> None:
        try:
            self.core.delete_namespaced_pod(unit.name, unit.namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            logger.debug("Pod %s already gone", unit)

    # -- helpers -------------------------------------------------------------

    def _wait_until_started(self, unit: UnitRef, cancel: "CancellationToken | None") -> bool:
        """Poll until the pod leaves ``Pending``; ``False`` if cancelled first."""
        while self._do_get_unit_status(unit).phase in (None, "Pending"):
            if cancel is not None:
                if cancel.wait(self.poll_interval):
                    return False
            else:
                time.sleep(self.poll_interval)
        return True

    @staticmethod
    def _template(data: dict[str, Any], namespace: str) -> Template:
        metadata = data.get("metadata") or {}
        return Template(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace") or namespace,
            labels=dict(metadata.get("labels") or {}),
            unit=data.get("template") or {},
        )
