"""CLI for k8srun."""

import logging
import signal
import sys
from pathlib import Path

import click
import yaml
from dotenv import load_dotenv

from . import __version__
from .cancel import CancellationToken
from .config import Settings
from .errors import K8sRunError
from .logging import TraceLogger
from .protocol import Job
from .runner import Runner

# Load .env file if present
load_dotenv()

# Options after NAME belong to the pod, not to us.
PASSTHROUGH = {"ignore_unknown_options": True, "allow_interspersed_args": False}


def connect_platform(settings: Settings):
    """Connect to the cluster described by *settings*."""
    from .platform.kubernetes import KubernetesPlatform
    return KubernetesPlatform.connect(settings)


def job_options(f):
    """Options shared by every command that selects a template."""
    decorators = [
        click.option("--instance", "-i", required=True, help="Instance label (case-insensitive)"),
        click.option("--config", "-c", "config_name", default="", help="Config label"),
        click.option("--namespace", "-n", default="", help="Namespace (default: from kubeconfig)"),
        click.option("--kubeconfig", type=click.Path(dir_okay=False), help="Path to kubeconfig"),
        click.option("--context", help="Kubeconfig context to use"),
        click.option("--poll-interval", type=float, help="Seconds between pod status polls"),
        click.option("--verbose", "-v", is_flag=True, help="Debug logging"),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _settings(kubeconfig, context, poll_interval) -> Settings:
    return Settings.from_env().override(
        kubeconfig=kubeconfig, context=context, poll_interval=poll_interval
    )


def _fail(error: K8sRunError):
    click.echo(f"✗ {error}", err=True)
    raise SystemExit(error.exit_code)


@click.group()
@click.version_option(version=__version__)
def cli():
    """Run Kubernetes pod templates as one-shot jobs."""
    pass


@cli.command("run", context_settings=PASSTHROUGH)
@job_options
@click.option("--timeout", type=float, help="Cancel the run after this many seconds")
@click.option("--trace", type=click.Path(dir_okay=False), help="Append a JSONL lifecycle trace here")
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def run(
    name: str,
    args: tuple[str, ...],
    instance: str,
    config_name: str,
    namespace: str,
    kubeconfig: str | None,
    context: str | None,
    poll_interval: float | None,
    verbose: bool,
    timeout: float | None,
    trace: str | None,
):
    """Run job NAME with ARGS and exit with the pod's exit code."""
    _setup_logging(verbose)
    job = Job(instance=instance, name=name, config=config_name, args=args, namespace=namespace)

    try:
        settings = _settings(kubeconfig, context, poll_interval)
        platform = connect_platform(settings)
    except K8sRunError as e:
        _fail(e)

    cancel = CancellationToken()
    timer = cancel.cancel_after(timeout) if timeout else None
    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(
            signum,
            lambda sig, frame: cancel.request_cancel(
                f"interrupted by {signal.Signals(sig).name}"
            ),
        )

    trace_logger = None
    if trace:
        trace_logger = TraceLogger(Path(trace))

    try:
        runner = Runner.for_platform(
            platform, poll_interval=settings.poll_interval, trace=trace_logger
        )
        status = runner.run(job, click.get_binary_stream("stdout"), cancel)
    finally:
        if timer:
            timer.cancel()
        for signum, handler in previous.items():
            signal.signal(signum, handler)
        if trace_logger:
            trace_logger.close()

    if status.error is not None:
        click.echo(f"✗ {status.error}", err=True)
    raise SystemExit(status.code)


@cli.command("render", context_settings=PASSTHROUGH)
@job_options
@click.option(
    "--templates-file",
    type=click.Path(exists=True, dir_okay=False),
    help="Resolve against PodTemplate manifests in this YAML file instead of the cluster",
)
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def render(
    name: str,
    args: tuple[str, ...],
    instance: str,
    config_name: str,
    namespace: str,
    kubeconfig: str | None,
    context: str | None,
    poll_interval: float | None,
    verbose: bool,
    templates_file: str | None,
):
    """Print the pod manifest `run` would create, without creating it."""
    _setup_logging(verbose)
    job = Job(instance=instance, name=name, config=config_name, args=args, namespace=namespace)

    try:
        if templates_file:
            from .platform.memory import InMemoryPlatform
            platform = InMemoryPlatform.from_yaml(
                Path(templates_file), namespace=namespace or "default"
            )
        else:
            platform = connect_platform(_settings(kubeconfig, context, poll_interval))

        runner = Runner.for_platform(platform)
        template = runner.resolver.resolve(job)
        manifest = runner.launcher.render(template, job)
    except K8sRunError as e:
        _fail(e)

    click.echo(yaml.safe_dump(manifest, sort_keys=False), nl=False)


if __name__ == "__main__":
    cli()
