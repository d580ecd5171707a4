import logging
import math
from decimal import Decimal
from typing import Any, Sequence

from kubernetes.utils import parse_quantity

log = logging.getLogger("ci-scheduling-webhook")

CPU = "cpu"

# Reduced requests end in this millicore digit so a reinvoked webhook can
# recognize them and avoid shrinking the same request twice.
REDUCED_SIGNATURE = 1


def cpu_millis(quantity: Any) -> int:
    """
    Parse a Kubernetes CPU quantity ("500m", "2", 0.5, "1.5k", ...) into millicores.
    Fractional millicores round up, like the API machinery's MilliValue().
    Raises ValueError for anything that is not a quantity.
    """
    if isinstance(quantity, bool):
        raise ValueError(f"{quantity!r} is not a quantity")
    if isinstance(quantity, float):
        if not math.isfinite(quantity):
            raise ValueError(f"{quantity!r} is not a quantity")
        # Decode JSON numbers from their text, as the API machinery does
        quantity = repr(quantity)
    return int(math.ceil(parse_quantity(quantity) * 1000))


def is_reduced(millis: int) -> bool:
    return millis % 10 == REDUCED_SIGNATURE


def reduced_millis(millis: int, factor: float) -> int:
    """Apply the shrink factor, truncate to a multiple of 10 and stamp the signature digit."""
    exact = Decimal(millis) * Decimal(str(factor))
    return int(exact) // 10 * 10 + REDUCED_SIGNATURE


def reduce_cpu_requests(
    patch: Any, container_type: str, containers: Sequence[Any], factor: float
) -> int:
    """
    Add patch entries shrinking the CPU request of each container by `factor`.

    The whole requests object is replaced, so every other request (memory,
    ephemeral-storage) is re-emitted unchanged. Limits are overcommitted and
    never touched. Returns the number of containers patched.
    """
    if factor >= 1.0:
        # Don't allow increases as this might make the pod unschedulable
        return 0

    patched = 0
    for i, c in enumerate(containers):
        millis = c.cpu_millis
        if millis is None:
            continue
        if millis <= 0:
            continue
        if is_reduced(millis):
            log.debug(
                "%s[%d] cpu request %dm already reduced; leaving it",
                container_type,
                i,
                millis,
            )
            continue

        new_requests = {CPU: f"{reduced_millis(millis, factor)}m"}
        new_requests.update((k, v) for k, v in c.requests.items() if k != CPU)
        patch.add(f"/spec/{container_type}/{i}/resources/requests", new_requests)
        patched += 1

    return patched
