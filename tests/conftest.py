"""Shared fixtures: an in-memory platform and a template factory."""

import pytest

from k8srun.platform.memory import InMemoryPlatform
from k8srun.resolver import CONFIG_LABEL, INSTANCE_LABEL, PREFIX_LABEL
from k8srun.runner import Runner


@pytest.fixture
def platform():
    return InMemoryPlatform(namespace="jobs")


@pytest.fixture
def add_template(platform):
    """Register a template; defaults match job deploy-1 / prod / Team-A."""

    def _add(
        name="deploy",
        *,
        prefix="deploy",
        config="prod",
        instance="team-a",
        namespace=None,
        containers=None,
        metadata=None,
    ):
        if containers is None:
            containers = [{"name": "main", "image": "busybox", "args": ["--from-template"]}]
        return platform.add_template(
            name,
            labels={PREFIX_LABEL: prefix, CONFIG_LABEL: config, INSTANCE_LABEL: instance},
            containers=containers,
            namespace=namespace,
            metadata=metadata,
        )

    return _add


@pytest.fixture
def runner(platform):
    return Runner.for_platform(platform, poll_interval=0.01)
