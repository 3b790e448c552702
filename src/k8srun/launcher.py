"""TaskLauncher - turns a resolved template into a running pod."""

import copy
from typing import Any

from .errors import K8sRunError, LaunchFailure, MalformedTemplate
from .execution.handle import Execution
from .platform.base import UnitRuntime
from .protocol import Job, Template

# Metadata inherited from the template that would clash with, or
# misidentify, the new pod.
IDENTITY_FIELDS = (
    "name",
    "namespace",
    "generateName",
    "uid",
    "resourceVersion",
    "selfLink",
    "creationTimestamp",
)


def normalize(name: str) -> str:
    """Trim, lower-case and replace ``_`` with ``-`` (``" My_Job "`` -> ``"my-job"``)."""
    return name.strip().lower().replace("_", "-")


class TaskLauncher:
    """Creates one pod per job from its template."""

    def __init__(self, runtime: UnitRuntime):
        self.runtime = runtime

    def render(self, template: Template, job: Job) -> dict[str, Any]:
        """Build the pod manifest for *job* without submitting it.

        The template's metadata and spec are copied verbatim except that
        identity fields are cleared, ``generateName`` is derived from the
        job name, and the first container's ``args`` become ``job.args``.
        """
        unit = copy.deepcopy(template.unit)
        metadata = unit.get("metadata") or {}
        spec = unit.get("spec") or {}

        containers = spec.get("containers") or []
        if not containers:
            raise MalformedTemplate(
                f"pod template {template.namespace}/{template.name} has no containers"
            )

        for key in IDENTITY_FIELDS:
            metadata.pop(key, None)
        metadata["generateName"] = normalize(job.name) + "-"

        # Only the first container is parameterized.
        containers[0]["args"] = list(job.args)

        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": metadata,
            "spec": spec,
        }

    def launch(self, template: Template, job: Job) -> Execution:
        """Create the pod in the template's namespace.

        Raises:
            MalformedTemplate: the template cannot produce a pod.
            LaunchFailure: the platform rejected the pod; not retried.
        """
        manifest = self.render(template, job)

        try:
            unit = self.runtime.create_unit(template.namespace, manifest)
        except K8sRunError:
            raise
        except Exception as e:
            raise LaunchFailure(
                f"unable to create pod in {template.namespace!r} namespace: {e}"
            ) from e

        return Execution(job=job, runtime=self.runtime, unit=unit, template=template)
