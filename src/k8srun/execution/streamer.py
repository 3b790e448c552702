"""LogStreamer - copies a pod's live output to the caller."""

from typing import TYPE_CHECKING, BinaryIO

from ..errors import K8sRunError, RunCancelled, StreamFailure
from .handle import Execution, ExecutionState

if TYPE_CHECKING:
    from ..cancel import CancellationToken


class LogStreamer:
    """Single-pass, byte-for-byte copy of the primary container's log.

    Returns once the platform closes the stream, which happens when the
    container terminates.  It says nothing about *how* it terminated; that
    is the ``CompletionWaiter``'s job.
    """

    def copy(
        self,
        execution: Execution,
        sink: BinaryIO,
        cancel: "CancellationToken | None" = None,
    ) -> int:
        """Copy output into *sink* and return the number of bytes written.

        Raises:
            StreamFailure: the stream could not be opened or broke mid-copy.
                A torn log is reported, never retried.
            RunCancelled: *cancel* fired while copying.
        """
        execution.state = ExecutionState.STREAMING
        flush = getattr(sink, "flush", None)
        stream = None

        try:
            stream = execution.runtime.stream_output(execution.unit, cancel)
            for chunk in stream:
                if cancel is not None:
                    cancel.raise_if_cancelled()
                sink.write(chunk)
                if flush is not None:
                    flush()
                execution.bytes_streamed += len(chunk)
        except K8sRunError:
            raise
        except Exception as e:
            if cancel is not None and cancel.cancelled:
                raise RunCancelled(f"run {cancel.reason} while streaming logs") from e
            raise StreamFailure(
                f"unable to stream logs of pod {execution.unit}: {e}"
            ) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

        # A cancelled stream can also just end early.
        if cancel is not None:
            cancel.raise_if_cancelled()
        return execution.bytes_streamed
