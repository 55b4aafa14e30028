"""
Isolated execution of untrusted code.

Each Sandbox owns one worker process started from a spawn context and
talks to it over a pipe. The parent bounds every request with a timeout;
a worker that times out or dies is killed and replaced on the next call,
so a misbehaving submission can never take the grading process down.
"""

import logging
import multiprocessing
import threading
from typing import Any

from ._worker import serve
from .config import RESPONSE_GRACE_SECONDS, WORKER_START_TIMEOUT_SECONDS
from .errors import SandboxError
from .models import ExecutionObservation, ObservationStatus

logger = logging.getLogger(__name__)

_CONTEXT = multiprocessing.get_context("spawn")


class _WorkerDied(Exception):
    pass


class Sandbox:
    """
    Parent-side handle on one isolated worker process.

    Calls are serialized, so a Sandbox may be shared between threads.
    """

    def __init__(self, label: str = "sandbox", start_timeout: float = WORKER_START_TIMEOUT_SECONDS) -> None:
        """
        Initialize the sandbox. The worker starts lazily on first use.

        Args:
            label: Name used in logs and for the worker process.
            start_timeout: Maximum time to wait for a worker to come up.
        """
        self.label = label
        self.start_timeout = start_timeout
        self.restarts = 0
        self._process: Any = None
        self._conn: Any = None
        self._lock = threading.Lock()

    def __enter__(self) -> "Sandbox":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def _start(self) -> None:
        parent_conn, child_conn = _CONTEXT.Pipe(duplex=True)
        process = _CONTEXT.Process(target=serve, args=(child_conn,), name=f"equigrade-{self.label}", daemon=True)
        try:
            process.start()
        except OSError as e:
            raise SandboxError(f"Could not start worker for {self.label}: {e}") from e
        finally:
            child_conn.close()

        try:
            ready = parent_conn.poll(self.start_timeout) and parent_conn.recv()
        except (EOFError, OSError):
            ready = None
        if not ready:
            process.kill()
            process.join()
            parent_conn.close()
            raise SandboxError(f"Worker for {self.label} did not start within {self.start_timeout}s")

        self._process = process
        self._conn = parent_conn
        logger.debug("Started worker pid=%s for %s", process.pid, self.label)

    def _stop(self) -> None:
        if self._process is None:
            return
        if self._process.is_alive():
            self._process.kill()
        self._process.join()
        self._conn.close()
        logger.debug("Stopped worker pid=%s for %s", self._process.pid, self.label)
        self._process = None
        self._conn = None

    def _recycle(self) -> None:
        self._stop()
        self.restarts += 1

    def _request(self, payload: dict[str, Any], timeout: float) -> dict[str, Any] | None:
        """
        Send one request and wait for the reply.

        Returns:
            The reply, or None when the worker did not answer in time.

        Raises:
            _WorkerDied: If the worker exited before replying.
        """
        if not self.alive:
            if self._process is not None:
                self._recycle()
            self._start()
        try:
            self._conn.send(payload)
            if not self._conn.poll(timeout + RESPONSE_GRACE_SECONDS):
                logger.debug("Worker for %s timed out after %.2fs", self.label, timeout)
                self._recycle()
                return None
            return self._conn.recv()
        except (EOFError, OSError) as e:
            self._process.join(RESPONSE_GRACE_SECONDS)
            exitcode = self._process.exitcode
            self._recycle()
            raise _WorkerDied(f"worker exited with code {exitcode}") from e

    def probe(self, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        """
        Load an entry point in the worker and return its shape description.

        Returns:
            The worker's probe reply, or an error reply on timeout or crash.
        """
        with self._lock:
            try:
                reply = self._request({**payload, "action": "probe"}, timeout)
            except _WorkerDied as e:
                return {"ok": False, "error": "construction", "message": f"Loading crashed the interpreter ({e})"}
        if reply is None:
            return {"ok": False, "error": "construction", "message": f"Loading timed out after {timeout}s"}
        return reply

    def invoke(self, payload: dict[str, Any], timeout: float) -> ExecutionObservation:
        """
        Invoke an entry point once in the worker.

        Args:
            payload: Invocation request (source, entry point, arguments, mode, limits).
            timeout: Per-invocation time bound in seconds.

        Returns:
            ExecutionObservation for the call. Timeouts and crashes are
            reported through the observation status, never raised.
        """
        with self._lock:
            try:
                reply = self._request({**payload, "action": "invoke", "timeout": timeout}, timeout)
            except _WorkerDied as e:
                return ExecutionObservation(status=ObservationStatus.CRASHED, error_message=str(e))
            if reply is None:
                return ExecutionObservation(status=ObservationStatus.TIMEOUT)
            if reply.pop("recycle", False):
                # an auto-started thread may still be running
                self._recycle()
        return ExecutionObservation(
            status=ObservationStatus(reply["status"]),
            returned=reply.get("returned"),
            returned_repr=reply.get("returned_repr", "None"),
            returned_type=reply.get("returned_type"),
            transferable=reply.get("transferable", True),
            output=tuple(reply.get("output", ())),
            truncated_lines=reply.get("truncated_lines", 0),
            error_kind=reply.get("error_kind"),
            error_message=reply.get("error_message"),
        )

    def close(self) -> None:
        """Shut the worker down."""
        with self._lock:
            if self._process is not None and self._process.is_alive():
                try:
                    self._conn.send(None)
                except OSError:
                    logger.debug("Worker for %s already gone", self.label)
                self._process.join(1.0)
            self._stop()
