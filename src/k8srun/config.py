from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Mapping

from .errors import ConfigError

ENV_KUBECONFIG = "K8SRUN_KUBECONFIG"
ENV_CONTEXT = "K8SRUN_CONTEXT"
ENV_POLL_INTERVAL = "K8SRUN_POLL_INTERVAL"

DEFAULT_POLL_INTERVAL = 1.0


def _as_float(value: Any, *, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid float for {key}: {value!r}") from e


def _as_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True)
class Settings:
    """How to reach the cluster and how often to poll it.

    ``kubeconfig=None`` means the client's default lookup (``KUBECONFIG``,
    then ``~/.kube/config``, then in-cluster service account).
    """
    kubeconfig: str | None = None
    context: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ConfigError(f"poll interval must be positive, got {self.poll_interval!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        poll = env.get(ENV_POLL_INTERVAL)
        return cls(
            kubeconfig=_as_optional_str(env.get(ENV_KUBECONFIG)),
            context=_as_optional_str(env.get(ENV_CONTEXT)),
            poll_interval=(
                DEFAULT_POLL_INTERVAL if poll in (None, "")
                else _as_float(poll, key=ENV_POLL_INTERVAL)
            ),
        )

    def override(self, **values: Any) -> "Settings":
        """Return a copy with every non-``None`` value of *values* applied."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})
