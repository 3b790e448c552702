"""JSONL trace logging - records the lifecycle of each run.

Trace event contract
====================

Every record carries ``timestamp``, ``run_id``, ``type`` and
``elapsed_ms`` (milliseconds since the trace was opened).  ``Runner``
emits, in order:

* ``run_start``          - job identity and arguments
* ``template_resolved``  - template name and namespace
* ``unit_created``       - pod name and namespace
* ``logs_closed``        - bytes copied to the sink
* ``unit_terminal``      - phase, exit code, reason
* ``run_complete`` / ``run_failed``
* ``unit_deleted`` / ``unit_delete_failed`` - always last when a pod exists

Human-readable progress goes through stdlib ``logging``; this file is for
machines.
"""

import json
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class TraceLogger:
    """Appends one run's lifecycle events to a JSONL file.

    Several runs may share a file; ``run_id`` tells them apart.
    """

    output_path: Path
    run_id: str = field(default_factory=new_run_id)
    _file: TextIO = field(init=False, repr=False)
    _started: float = field(init=False, repr=False)
    _closed: bool = field(init=False, default=False)

    def __post_init__(self):
        self.output_path = Path(self.output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, "a")
        self._started = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def log(self, event_type: str, **data: Any) -> None:
        """Log a lifecycle event.  Ignored once the trace is closed."""
        if self._closed:
            return
        record = {
            "timestamp": time.time(),
            "run_id": self.run_id,
            "type": event_type,
            "elapsed_ms": self.elapsed_ms,
            **data,
        }
        # Exceptions and other non-JSON values are stringified.
        self._file.write(json.dumps(record, default=str) + "\n")
        self._file.flush()

    def close(self) -> None:
        if not self._closed:
            self._file.close()
            self._closed = True

    def __enter__(self) -> "TraceLogger":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def read_trace(path: Path, run_id: str | None = None) -> list[dict]:
    """Load the records of a trace file, optionally only those of *run_id*."""
    records = []
    for line in Path(path).read_text().splitlines():
        line = line.strip()
        if not line:
            continue
        record = json.loads(line)
        if run_id is None or record.get("run_id") == run_id:
            records.append(record)
    return records
