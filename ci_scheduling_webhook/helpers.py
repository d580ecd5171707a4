import base64
import json
import logging
import time
from typing import Any

from .errors import PatchSerializationError

log = logging.getLogger("ci-scheduling-webhook")


def escape_path_segment(segment: str) -> str:
    """Escape a single JSON-Patch path segment (RFC 6901: '~' -> '~0', '/' -> '~1')."""
    return segment.replace("~", "~0").replace("/", "~1")


class JsonPatch:
    """
    Ordered list of JSON-Patch entries describing the desired end state of the
    admitted object. Whole sub-objects are written at once (e.g. the complete
    label map) rather than one entry per key.
    """

    def __init__(self) -> None:
        self._entries: list[dict[str, Any]] = []

    def add_entry(self, op: str, path: str, value: Any) -> None:
        self._entries.append({"op": op, "path": path, "value": value})

    def add(self, path: str, value: Any) -> None:
        self.add_entry("add", path, value)

    @property
    def entries(self) -> list[dict[str, Any]]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def serialize(self) -> bytes:
        try:
            return json.dumps(self._entries, allow_nan=False).encode()
        except (TypeError, ValueError) as e:
            log.error("Error marshalling JSON patch from: %s", self._entries)
            raise PatchSerializationError(f"error marshalling jsonpatch: {e}") from e


def make_admission_response(
    uid: str,
    allowed: bool = True,
    patch: JsonPatch | None = None,
    api_version: str = "admission.k8s.io/v1",
    kind: str = "AdmissionReview",
) -> dict[str, Any]:
    """Return the AdmissionReview the webhook sends to K8s to allow and optionally patch an object."""
    resp = {"uid": uid, "allowed": allowed}

    if patch:
        resp["patchType"] = "JSONPatch"
        resp["patch"] = base64.b64encode(patch.serialize()).decode()

    return {
        "apiVersion": api_version,
        "kind": kind,
        "response": resp,
    }


def make_error_response(
    uid: str,
    status_code: int,
    message: str,
    api_version: str = "admission.k8s.io/v1",
    kind: str = "AdmissionReview",
) -> dict[str, Any]:
    """Return a rejecting AdmissionReview carrying a human readable reason and no patch."""
    review = make_admission_response(
        uid, allowed=False, api_version=api_version, kind=kind
    )
    review["response"]["status"] = {
        "code": status_code,
        "message": f"error during mutation operation: {message}",
    }
    return review


class Profiler:
    """Log elapsed milliseconds since the start of a request and since the last step."""

    def __init__(self, operation: str, uid: str) -> None:
        self.operation = operation
        self.uid = uid
        self._start = time.monotonic()
        self._last = self._start

    def __call__(self, action: str) -> None:
        now = time.monotonic()
        log.info(
            "%s [%s] [%s] within (ms): %d [diff %d]",
            self.operation,
            self.uid,
            action,
            (now - self._start) * 1000,
            (now - self._last) * 1000,
        )
        self._last = now
