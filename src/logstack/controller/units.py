"""Unit conversions for the logging stack controller."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

import bitmath

__all__ = [
    "cpu_to_cores",
    "memory_to_bytes",
    "normalize_resources",
]


def cpu_to_cores(cpu: str) -> Decimal:
    """Convert a Kubernetes CPU quantity to a number of cores.

    Parameters
    ----------
    cpu
        CPU quantity, either in cores (``2``, ``0.5``) or millicores
        (``500m``).

    Returns
    -------
    decimal.Decimal
        Equivalent number of cores.

    Raises
    ------
    ValueError
        Raised if the input string is not a valid CPU quantity.
    """
    try:
        if cpu.endswith("m"):
            return Decimal(cpu[:-1]) / 1000
        return Decimal(cpu)
    except InvalidOperation as e:
        raise ValueError(f"Invalid CPU quantity {cpu}") from e


def memory_to_bytes(memory: str) -> int:
    """Convert a string representation of memory to a number of bytes.

    Parameters
    ----------
    memory
        Amount of memory as a string.

    Returns
    -------
    int
        Equivalent number of bytes.

    Raises
    ------
    ValueError
        Raised if the input string is not a valid byte specification.
    """
    return int(bitmath.parse_string_unsafe(memory).bytes)


def normalize_resources(
    resources: dict[str, Any] | None,
) -> dict[str, dict[str, Decimal | int]]:
    """Convert resource requirements to a comparable form.

    Kubernetes stores quantities in a canonical form, so ``1000m`` comes back
    as ``1`` and ``1024Mi`` as ``1Gi``. Comparing the parsed values instead
    of the strings treats equivalent quantities as equal.

    Parameters
    ----------
    resources
        Resource requirements as the output of ``to_dict`` on a Kubernetes
        ``V1ResourceRequirements`` model.

    Returns
    -------
    dict
        Limits and requests that are set, with each quantity parsed. Unset
        and empty limits or requests are omitted.
    """
    result: dict[str, dict[str, Decimal | int]] = {}
    for section in ("limits", "requests"):
        quantities = (resources or {}).get(section)
        if not quantities:
            continue
        result[section] = {
            k: cpu_to_cores(v) if k == "cpu" else memory_to_bytes(v)
            for k, v in quantities.items()
        }
    return result
