"""
Child side of the sandbox.

Runs inside a spawned worker process. Receives requests over a pipe,
executes the requested source in a fresh namespace for every call, and
answers with plain dictionaries. Nothing beyond the standard library
and the constants module is imported here so that workers start quickly.
"""

import builtins
import inspect
import io
import os
import pickle
import queue
import re
import sys
import threading
from contextlib import redirect_stderr, redirect_stdout
from typing import Any

from .config import MAX_MESSAGE_LENGTH, MAX_REPR_LENGTH, MAX_STRUCTURE_DEPTH


class _ShapeFailure(Exception):
    pass


class _ConstructionFailure(Exception):
    def __init__(self, error: BaseException) -> None:
        super().__init__(str(error))
        self.error = error


class OutputSink(io.TextIOBase):
    """
    Text stream that turns writes into line messages.

    Complete lines are queued in order. At most `limit` lines are kept,
    the rest are only counted.
    """

    def __init__(self, limit: int) -> None:
        super().__init__()
        self.limit = limit
        self.truncated = 0
        self._messages: queue.SimpleQueue[str] = queue.SimpleQueue()
        self._kept = 0
        self._partial = ""
        self._lock = threading.Lock()

    def writable(self) -> bool:
        return True

    def write(self, text: str) -> int:
        if not isinstance(text, str):
            raise TypeError(f"write() argument must be str, not {type(text).__name__}")
        with self._lock:
            *lines, self._partial = (self._partial + text).split("\n")
            for line in lines:
                self._emit(line)
        return len(text)

    def _emit(self, line: str) -> None:
        if self._kept < self.limit:
            self._messages.put(line)
            self._kept += 1
        else:
            self.truncated += 1

    def drain(self) -> list[str]:
        with self._lock:
            if self._partial:
                self._emit(self._partial)
                self._partial = ""
        lines: list[str] = []
        while True:
            try:
                lines.append(self._messages.get_nowait())
            except queue.Empty:
                return lines


_ADDRESS = re.compile(r" at 0x[0-9a-fA-F]+")


def safe_repr(value: Any) -> str:
    """Bounded repr with object addresses removed."""
    try:
        text = _ADDRESS.sub("", repr(value))
    except Exception:
        return f"<unrepresentable {type(value).__name__}>"
    if len(text) > MAX_REPR_LENGTH:
        return text[:MAX_REPR_LENGTH] + "..."
    return text


class StructuredValue:
    """
    Picklable stand-in for a returned object whose class only exists in
    the executed source.

    Attributes:
        type_name: Qualified name of the object's class.
        fields: Attribute values, themselves converted, sorted by name.
        text: Bounded repr of the object.
    """

    def __init__(self, type_name: str, fields: dict[str, Any], text: str) -> None:
        self.type_name = type_name
        self.fields = fields
        self.text = text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructuredValue):
            return NotImplemented
        return (self.type_name, self.fields, self.text) == (other.type_name, other.fields, other.text)

    def __hash__(self) -> int:
        return hash((self.type_name, tuple(self.fields), self.text))

    def __repr__(self) -> str:
        if not self.fields or not self.text.endswith(" object>"):
            return self.text
        values = ", ".join(f"{name}={value!r}" for name, value in self.fields.items())
        return f"{self.type_name}({values})"


def _picklable(value: Any) -> bool:
    try:
        pickle.dumps(value)
    except Exception:
        return False
    return True


def _object_fields(value: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    for klass in reversed(type(value).__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name not in ("__dict__", "__weakref__") and hasattr(value, name):
                fields[name] = getattr(value, name)
    fields.update(getattr(value, "__dict__", None) or {})
    return dict(sorted(fields.items()))


def structure(value: Any, depth: int = 0) -> Any:
    """
    Convert a returned value into something that survives pickling.

    Picklable values come back unchanged. Lists, tuples, dicts and sets
    are rebuilt from converted members; any other object becomes a
    StructuredValue holding its class name and converted attributes.
    """
    if _picklable(value):
        return value
    kind = type(value)
    if depth >= MAX_STRUCTURE_DEPTH:
        return StructuredValue(kind.__qualname__, {}, safe_repr(value))
    if kind in (list, tuple, set, frozenset):
        return kind(structure(item, depth + 1) for item in value)
    if kind is dict:
        return {structure(k, depth + 1): structure(v, depth + 1) for k, v in value.items()}
    fields = {name: structure(field, depth + 1) for name, field in _object_fields(value).items()}
    return StructuredValue(kind.__qualname__, fields, safe_repr(value))


def _error_fields(error: BaseException) -> dict[str, Any]:
    try:
        message = str(error)
    except Exception:
        message = ""
    return {
        "error_kind": type(error).__name__,
        "error_message": message[:MAX_MESSAGE_LENGTH],
    }


def _load(request: dict[str, Any]) -> Any:
    """Execute the module body and return the entry point callable."""
    namespace: dict[str, Any] = {"__name__": "__submission__", "__builtins__": builtins}
    try:
        code = compile(request["source"], request["filename"], "exec")
        exec(code, namespace)
    except BaseException as e:
        raise _ConstructionFailure(e) from e

    entry_point = request["entry_point"]
    klass = request.get("klass")
    if klass:
        owner = namespace.get(klass)
        if not isinstance(owner, type):
            raise _ShapeFailure(f"Could not find class {klass}")
        try:
            instance = owner()
        except BaseException as e:
            raise _ConstructionFailure(e) from e
        target = getattr(instance, entry_point, None)
        where = f"{klass}.{entry_point}"
    else:
        target = namespace.get(entry_point)
        where = entry_point
    if target is None:
        raise _ShapeFailure(f"Could not find {where}")
    if not callable(target):
        raise _ShapeFailure(f"{where} is not callable")
    return target


def probe(request: dict[str, Any]) -> dict[str, Any]:
    """Load the entry point once and report its signature."""
    sink = OutputSink(0)
    with redirect_stdout(sink), redirect_stderr(sink):
        try:
            target = _load(request)
        except _ShapeFailure as e:
            return {"ok": False, "error": "shape", "message": str(e)}
        except _ConstructionFailure as e:
            fields = _error_fields(e.error)
            return {
                "ok": False,
                "error": "construction",
                "message": f"{fields['error_kind']}: {fields['error_message']}",
            }
        try:
            signature = inspect.signature(target)
        except (TypeError, ValueError) as e:
            return {"ok": False, "error": "shape", "message": f"Cannot inspect entry point: {e}"}
    parameters = [
        {
            "name": p.name,
            "kind": p.kind.name,
            "has_default": p.default is not inspect.Parameter.empty,
        }
        for p in signature.parameters.values()
    ]
    return {"ok": True, "parameters": parameters}


def _call_direct(target: Any, arguments: tuple) -> dict[str, Any]:
    try:
        return {"value": target(*arguments)}
    except BaseException as e:
        return {"error": e}


def _call_auto_started(target: Any, arguments: tuple, timeout: float) -> dict[str, Any] | None:
    """Run the entry point on its own thread and wait a bounded time for it."""
    outcome: dict[str, Any] = {}

    def run() -> None:
        try:
            outcome["value"] = target(*arguments)
        except BaseException as e:
            outcome["error"] = e

    thread = threading.Thread(target=run, name="auto-start", daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        return None
    return outcome


def invoke(request: dict[str, Any]) -> dict[str, Any]:
    """Run the entry point once on the request's arguments."""
    sink = OutputSink(request["max_output_lines"])
    errors = OutputSink(0)
    response: dict[str, Any]
    with redirect_stdout(sink), redirect_stderr(errors):
        try:
            target = _load(request)
        except _ShapeFailure as e:
            response = {"status": "construction_failed", "error_kind": "ShapeError", "error_message": str(e)}
        except _ConstructionFailure as e:
            response = {"status": "construction_failed", **_error_fields(e.error)}
        else:
            arguments = tuple(request["arguments"])
            if request["mode"] == "auto_start":
                outcome = _call_auto_started(target, arguments, request["timeout"])
            else:
                outcome = _call_direct(target, arguments)

            if outcome is None:
                response = {"status": "timeout", "recycle": True}
            elif "error" in outcome:
                response = {"status": "threw", **_error_fields(outcome["error"])}
            else:
                value = outcome["value"]
                response = {"status": "returned", "returned_type": type(value).__qualname__}
                try:
                    returned = structure(value)
                    pickle.dumps(returned)
                except Exception:
                    response.update(returned=None, returned_repr=safe_repr(value), transferable=False)
                else:
                    response.update(returned=returned, returned_repr=safe_repr(returned), transferable=True)
    response["output"] = sink.drain()
    response["truncated_lines"] = sink.truncated
    return response


def _silence_streams() -> None:
    """Point the worker's own stdout/stderr at the null device."""
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 1)
    os.dup2(devnull, 2)
    sys.stdout = open(os.devnull, "w")
    sys.stderr = sys.stdout


def serve(conn: Any) -> None:
    """Worker main loop. Exits when the pipe closes or None is received."""
    _silence_streams()
    conn.send({"ready": True})
    while True:
        try:
            request = conn.recv()
        except (EOFError, OSError):
            return
        if request is None:
            return
        if request["action"] == "probe":
            response = probe(request)
        else:
            response = invoke(request)
        conn.send(response)
