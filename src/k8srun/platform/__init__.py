"""Platform backends.

``KubernetesPlatform`` lives in ``k8srun.platform.kubernetes`` and is
imported on demand so the ``kubernetes`` client is only loaded when a real
cluster is used.
"""

from .base import BasePlatform, TemplateCatalog, UnitRuntime
from .memory import InMemoryPlatform, UnitBehavior

__all__ = [
    "BasePlatform",
    "TemplateCatalog",
    "UnitRuntime",
    "InMemoryPlatform",
    "UnitBehavior",
]
