"""k8srun - run a pod template as a one-shot job and report its exit code."""

__version__ = "0.1.0"

from .cancel import CancellationToken
from .errors import (
    ConfigError,
    DeleteFailure,
    K8sRunError,
    LaunchFailure,
    MalformedTemplate,
    RunCancelled,
    StreamFailure,
    TemplateAmbiguous,
    TemplateLookupFailure,
    TemplateNotFound,
    WaitFailure,
)
from .protocol import ExitStatus, Job, Template, UnitRef, UnitStatus
from .runner import Runner

__all__ = [
    "Job", "Template", "UnitRef", "UnitStatus", "ExitStatus",
    "Runner", "CancellationToken",
    "K8sRunError", "ConfigError", "TemplateLookupFailure", "TemplateNotFound",
    "TemplateAmbiguous", "MalformedTemplate", "LaunchFailure", "StreamFailure",
    "WaitFailure", "RunCancelled", "DeleteFailure",
    "__version__",
]
