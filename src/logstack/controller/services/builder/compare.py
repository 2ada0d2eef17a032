"""Comparison of desired objects against objects read from Kubernetes."""

from __future__ import annotations

from typing import Any

__all__ = [
    "has_ownership",
    "is_converged",
    "is_equal",
    "merge_ownership",
    "strip_empty",
]


def has_ownership(desired: dict[str, Any], existing: dict[str, Any]) -> bool:
    """Determine whether existing metadata carries the controller's marks.

    Parameters
    ----------
    desired
        Desired metadata in the serialized (camel-case) form.
    existing
        Metadata of the object read from Kubernetes, in the same form.

    Returns
    -------
    bool
        `True` if every desired label has the desired value and every desired
        owner reference is present.
    """
    labels = existing.get("labels") or {}
    for key, value in (desired.get("labels") or {}).items():
        if labels.get(key) != value:
            return False
    owners = {_owner_key(o) for o in existing.get("ownerReferences") or []}
    wanted = desired.get("ownerReferences") or []
    return all(_owner_key(o) in owners for o in wanted)


def is_converged(desired: Any, existing: Any) -> bool:
    """Determine whether an existing object matches the desired object.

    Only fields set in the desired object are compared. Kubernetes fills in
    defaults and status fields on everything it stores, and other controllers
    may add their own fields, so an exact comparison would never match.
    Dictionaries are compared key by key, ignoring keys whose desired value is
    `None`. Lists must have the same length and match element by element.

    This is only suitable for fields the server may add to. Fields wholly
    owned by the controller must be compared with `is_equal`, or removing a
    setting from the desired state would never be noticed.

    Parameters
    ----------
    desired
        Desired object, as the output of ``to_dict`` on a Kubernetes model or
        a custom object dictionary.
    existing
        Corresponding value from the object read from Kubernetes.

    Returns
    -------
    bool
        `True` if every field set in the desired object has the same value in
        the existing object.
    """
    if isinstance(desired, dict):
        if not isinstance(existing, dict):
            return False
        for key, value in desired.items():
            if value is None:
                continue
            if key not in existing:
                return False
            if not is_converged(value, existing[key]):
                return False
        return True
    elif isinstance(desired, list):
        if not isinstance(existing, list) or len(desired) != len(existing):
            return False
        return all(is_converged(d, e) for d, e in zip(desired, existing))
    else:
        return desired == existing


def is_equal(desired: Any, existing: Any) -> bool:
    """Compare two values exactly, treating unset and empty as the same.

    Parameters
    ----------
    desired
        Desired value, as the output of ``to_dict`` on a Kubernetes model.
    existing
        Corresponding value from the object read from Kubernetes.

    Returns
    -------
    bool
        `True` if the values are the same after removing `None` and empty
        containers.
    """
    desired = strip_empty(desired)
    existing = strip_empty(existing)
    if desired in ({}, []):
        desired = None
    if existing in ({}, []):
        existing = None
    return desired == existing


def merge_ownership(
    desired: dict[str, Any], existing: dict[str, Any]
) -> dict[str, Any]:
    """Add the controller's labels and owner references to metadata.

    Labels and owner references set by others are kept.

    Parameters
    ----------
    desired
        Desired metadata in the serialized (camel-case) form.
    existing
        Metadata of the object read from Kubernetes, in the same form.
        This is modified in place.

    Returns
    -------
    dict
        The updated existing metadata.
    """
    existing["labels"] = {
        **(existing.get("labels") or {}),
        **(desired.get("labels") or {}),
    }
    owners = list(existing.get("ownerReferences") or [])
    present = {_owner_key(o) for o in owners}
    for owner in desired.get("ownerReferences") or []:
        if _owner_key(owner) not in present:
            owners.append(owner)
    if owners:
        existing["ownerReferences"] = owners
    return existing


def strip_empty(value: Any) -> Any:
    """Recursively remove `None` values and empty dicts and lists.

    Empty containers nested in lists are kept so that list lengths are
    preserved.
    """
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            stripped = strip_empty(item)
            if stripped is None or stripped in ({}, []):
                continue
            result[key] = stripped
        return result
    elif isinstance(value, list):
        return [strip_empty(v) for v in value]
    else:
        return value


def _owner_key(owner: dict[str, Any]) -> tuple[Any, Any, Any]:
    return (owner.get("kind"), owner.get("name"), owner.get("uid"))
