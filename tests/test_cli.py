"""Tests for the k8srun command line."""

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from k8srun import __version__
from k8srun.cli import cli
from k8srun.errors import ConfigError
from k8srun.platform.memory import UnitBehavior

TEMPLATES_YAML = """\
apiVersion: v1
kind: PodTemplate
metadata:
  name: deploy
  labels:
    k8srun.yashkov.org/prefix: deploy
    k8srun.yashkov.org/config: prod
    k8srun.yashkov.org/instance: team-a
template:
  metadata:
    labels:
      app: deploy
  spec:
    restartPolicy: Never
    containers:
    - name: main
      image: busybox
      args: ["--from-template"]
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: unrelated
"""


@pytest.fixture
def connected(platform):
    with patch("k8srun.cli.connect_platform", return_value=platform) as connect:
        yield connect


class TestCLI:

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_run_help(self):
        result = CliRunner().invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        assert "--instance" in result.output

    def test_instance_is_required(self, connected):
        result = CliRunner().invoke(cli, ["run", "deploy"])
        assert result.exit_code != 0
        connected.assert_not_called()


class TestRunCommand:

    def test_success_streams_output(self, platform, add_template, connected):
        add_template()
        platform.behavior = lambda manifest: UnitBehavior(output=[b"dry run ok\n"])

        result = CliRunner().invoke(cli, [
            "run", "-i", "Team-A", "-c", "prod", "--poll-interval", "0.01", "deploy-1",
        ])

        assert result.exit_code == 0
        assert b"dry run ok\n" in result.stdout_bytes
        assert platform.units == {}

    def test_exit_code_is_pod_exit_code(self, platform, add_template, connected):
        add_template()
        platform.behavior = lambda manifest: UnitBehavior(exit_code=3)

        result = CliRunner().invoke(cli, ["run", "-i", "team-a", "-c", "prod", "deploy"])

        assert result.exit_code == 3
        assert "✗" not in result.output

    def test_arguments_after_name_pass_through(self, platform, add_template, connected):
        add_template()
        manifests = []

        def behavior(manifest):
            manifests.append(manifest)
            return UnitBehavior()

        platform.behavior = behavior
        result = CliRunner().invoke(cli, [
            "run", "-i", "team-a", "-c", "prod", "deploy-1", "--dry-run", "-v", "x",
        ])

        assert result.exit_code == 0
        assert manifests[0]["spec"]["containers"][0]["args"] == ["--dry-run", "-v", "x"]

    def test_missing_template_exits_128(self, connected):
        result = CliRunner().invoke(cli, ["run", "-i", "team-a", "-c", "prod", "deploy"])

        assert result.exit_code == 128
        assert "unable to find the pod template" in result.output

    def test_failure_reported_once(self, connected, caplog):
        with caplog.at_level(logging.INFO):
            result = CliRunner().invoke(cli, ["run", "-i", "team-a", "-c", "prod", "deploy"])

        assert result.output.count("unable to find the pod template") == 1
        assert "unable to find the pod template" not in caplog.text

    def test_namespace_option(self, platform, add_template, connected):
        add_template(namespace="batch")

        result = CliRunner().invoke(cli, [
            "run", "-i", "team-a", "-c", "prod", "-n", "batch", "deploy",
        ])

        assert result.exit_code == 0
        assert platform.created[0].namespace == "batch"

    def test_settings_reach_platform(self, connected):
        CliRunner().invoke(cli, [
            "run", "-i", "a", "--context", "staging", "--poll-interval", "2", "deploy",
        ])

        settings = connected.call_args.args[0]
        assert settings.context == "staging"
        assert settings.poll_interval == 2.0

    def test_config_error_exits_128(self):
        with patch("k8srun.cli.connect_platform", side_effect=ConfigError("no kubeconfig")):
            result = CliRunner().invoke(cli, ["run", "-i", "a", "deploy"])

        assert result.exit_code == 128
        assert "no kubeconfig" in result.output

    def test_malformed_kubeconfig_exits_128(self, tmp_path):
        path = tmp_path / "config"
        path.write_text("clusters: [\n  bad: : yaml\n")

        result = CliRunner().invoke(cli, ["run", "-i", "a", "--kubeconfig", str(path), "deploy"])

        assert result.exit_code == 128
        assert "unable to load kubeconfig" in result.output

    def test_bad_poll_interval_env(self, connected):
        result = CliRunner(env={"K8SRUN_POLL_INTERVAL": "soon"}).invoke(
            cli, ["run", "-i", "a", "deploy"]
        )

        assert result.exit_code == 128
        assert "K8SRUN_POLL_INTERVAL" in result.output

    def test_trace_file(self, platform, add_template, connected, tmp_path):
        add_template()
        trace_file = tmp_path / "trace.jsonl"

        result = CliRunner().invoke(cli, [
            "run", "-i", "team-a", "-c", "prod", "--trace", str(trace_file), "deploy",
        ])

        assert result.exit_code == 0
        assert '"type": "run_complete"' in trace_file.read_text()


class TestRenderCommand:

    @pytest.fixture
    def templates_file(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text(TEMPLATES_YAML)
        return str(path)

    def test_render_from_file(self, templates_file):
        result = CliRunner().invoke(cli, [
            "render", "-i", "Team-A", "-c", "prod",
            "--templates-file", templates_file, "deploy-1", "--dry-run",
        ])

        assert result.exit_code == 0
        assert "kind: Pod" in result.output
        assert "generateName: deploy-1-" in result.output
        assert "- --dry-run" in result.output
        assert "--from-template" not in result.output

    def test_render_not_found(self, templates_file):
        result = CliRunner().invoke(cli, [
            "render", "-i", "team-b", "-c", "prod",
            "--templates-file", templates_file, "deploy",
        ])

        assert result.exit_code == 128
        assert "unable to find the pod template" in result.output

    def test_render_creates_nothing(self, platform, add_template, connected):
        add_template()

        result = CliRunner().invoke(cli, ["render", "-i", "team-a", "-c", "prod", "deploy"])

        assert result.exit_code == 0
        assert "generateName: deploy-" in result.output
        assert platform.created == []
