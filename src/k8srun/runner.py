"""Runner - runs one job as one pod and reports its exit status."""

import logging
from typing import TYPE_CHECKING, BinaryIO

from .cancel import CancellationToken
from .errors import MACHINERY_EXIT_CODE, K8sRunError
from .execution import CompletionWaiter, Execution, LogStreamer, Reaper
from .launcher import TaskLauncher
from .platform.base import TemplateCatalog, UnitRuntime
from .protocol import ExitStatus, Job
from .resolver import TemplateResolver

if TYPE_CHECKING:
    from .logging import TraceLogger

logger = logging.getLogger(__name__)


class Runner:
    """Resolve -> launch -> stream -> wait, with the pod reaped on exit.

    Each ``run()`` call owns its own execution, so one ``Runner`` may serve
    concurrent calls from different threads.
    """

    def __init__(
        self,
        catalog: TemplateCatalog,
        runtime: UnitRuntime,
        *,
        default_namespace: str = "default",
        poll_interval: float = 1.0,
        trace: "TraceLogger | None" = None,
    ):
        self.trace = trace
        self.resolver = TemplateResolver(catalog, default_namespace)
        self.launcher = TaskLauncher(runtime)
        self.streamer = LogStreamer()
        self.waiter = CompletionWaiter(poll_interval)
        self.reaper = Reaper(trace)

    @classmethod
    def for_platform(cls, platform, **kwargs) -> "Runner":
        """Build a runner over a platform that is both catalog and runtime."""
        kwargs.setdefault("default_namespace", platform.namespace)
        return cls(platform, platform, **kwargs)

    def launch(self, job: Job, cancel: CancellationToken | None = None) -> Execution:
        """Resolve the job's template and create its pod.

        The caller owns the returned execution and must reap it.
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        template = self.resolver.resolve(job)
        if self.trace:
            self.trace.log(
                "template_resolved",
                template=template.name,
                namespace=template.namespace,
            )

        if cancel is not None:
            cancel.raise_if_cancelled()

        execution = self.launcher.launch(template, job)
        if self.trace:
            self.trace.log(
                "unit_created",
                pod=execution.name,
                namespace=execution.namespace,
            )
        return execution

    def run(
        self,
        job: Job,
        sink: BinaryIO,
        cancel: CancellationToken | None = None,
    ) -> ExitStatus:
        """Run *job*, copying the pod's output into *sink*.

        Returns ``ExitStatus(code, None)`` with the container's exit code
        when the pod ran to completion, or ``ExitStatus(128, error)`` when
        the runner could not resolve, launch, stream or wait.  The pod, if
        one was created, is deleted exactly once before this returns.
        """
        cancel = cancel or CancellationToken()

        if self.trace:
            self.trace.log(
                "run_start",
                job=job.name,
                instance=job.instance,
                config=job.config,
                namespace=job.namespace,
                args=list(job.args),
            )

        with self.reaper.scope() as scope:
            try:
                execution = scope.bind(self.launch(job, cancel))
                self._copy_logs(execution, sink, cancel)
                result = self.waiter.wait(execution, cancel)
            except K8sRunError as e:
                return self._failed(job, e)

            if self.trace:
                status = execution.last_status
                self.trace.log(
                    "unit_terminal",
                    pod=execution.name,
                    phase=status.phase if status else None,
                    exit_code=result.code,
                    reason=status.reason if status else None,
                )
                self.trace.log(
                    "run_complete",
                    job=job.name,
                    exit_code=result.code,
                )
            return result

    def _copy_logs(self, execution: Execution, sink: BinaryIO, cancel: CancellationToken) -> None:
        copied = self.streamer.copy(execution, sink, cancel)
        if self.trace:
            self.trace.log("logs_closed", pod=execution.name, bytes=copied)

    def _failed(self, job: Job, error: K8sRunError) -> ExitStatus:
        # Reporting the error is the caller's job; it is in the returned status.
        logger.debug("Job %r failed: %s", job.name, error)
        if self.trace:
            self.trace.log(
                "run_failed",
                job=job.name,
                exit_code=MACHINERY_EXIT_CODE,
                error=str(error),
                error_type=type(error).__name__,
            )
        return ExitStatus(MACHINERY_EXIT_CODE, error)
