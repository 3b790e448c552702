"""
Error classes for k8srun.

Every failure of the runner machinery maps to exit code 128 so callers can
tell "my job failed" (the unit's own non-zero exit code, reported without an
error) from "the runner couldn't even run it" (one of these exceptions).

Components wrap platform exceptions at their boundary with ``raise ... from``
so the original cause stays attached.  ``Runner.run`` turns any
``K8sRunError`` into ``ExitStatus(128, error)``.
"""

MACHINERY_EXIT_CODE = 128


class K8sRunError(Exception):
    """Base exception for k8srun."""
    exit_code = MACHINERY_EXIT_CODE


class ConfigError(K8sRunError):
    """Cluster credentials or connection settings are unusable."""
    pass


class TemplateLookupFailure(K8sRunError):
    """Listing pod templates failed."""
    pass


class TemplateNotFound(K8sRunError):
    """No pod template matched the job's labels."""

    def __init__(self, namespace: str, selector: dict[str, str]):
        self.namespace = namespace
        self.selector = dict(selector)
        super().__init__(
            f"unable to find the pod template in {namespace!r} namespace "
            f"(selector: {_format(selector)})"
        )


class TemplateAmbiguous(K8sRunError):
    """
    More than one pod template matched the job's labels.

    Never resolved by picking one: the wrong template would run the wrong
    workload.
    """

    def __init__(self, namespace: str, selector: dict[str, str], names: list[str]):
        self.namespace = namespace
        self.selector = dict(selector)
        self.names = list(names)
        super().__init__(
            f"more than one pod template is defined in {namespace!r} namespace "
            f"(selector: {_format(selector)}; templates: {', '.join(names)})"
        )


class MalformedTemplate(K8sRunError):
    """The template cannot be turned into a pod (e.g. it has no containers)."""
    pass


class LaunchFailure(K8sRunError):
    """The platform rejected pod creation (quota, validation, ...)."""
    pass


class StreamFailure(K8sRunError):
    """The log stream could not be opened or broke mid-copy."""
    pass


class WaitFailure(K8sRunError):
    """The pod's terminal state could not be determined."""
    pass


class RunCancelled(K8sRunError):
    """The caller cancelled the run."""
    pass


class DeleteFailure(K8sRunError):
    """
    Deleting the pod failed.

    Never raised out of a run: it is logged and recorded on the execution,
    and the leaked pod is left for out-of-band cleanup.
    """
    pass


def _format(selector: dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in selector.items())
