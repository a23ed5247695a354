"""Conversion of caller parameters into driver-level bound parameters."""

from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

from pydantic import ValidationError

from db_helper.errors import ArgumentError
from db_helper.models.params import ParamItem

ParamsInput = Optional[
    Union[Mapping[str, Any], Sequence[Union[ParamItem, tuple[str, Any]]]]
]


def bind(
    names: Optional[Sequence[str]], values: Optional[Sequence[Any]]
) -> list[ParamItem]:
    """
    Pair names and values positionally.

    Either side being empty or None yields no parameters, which is what
    statements without parameters (DELETE with no WHERE) expect.

    Args:
        names: Parameter names
        values: Parameter values, same length as names

    Returns:
        One ParamItem per position

    Raises:
        ArgumentError: If both sides are non-empty and their lengths differ
    """
    if not names or not values:
        return []
    if len(names) != len(values):
        raise ArgumentError(
            f"Parameter count mismatch: {len(names)} names, {len(values)} values"
        )
    return [_make_param(name, value) for name, value in zip(names, values)]


def normalize_params(params: ParamsInput) -> list[ParamItem]:
    """
    Accept the parameter shapes callers pass and return ParamItems.

    Args:
        params: None, a name-to-value mapping, or a sequence of ParamItem
            objects or (name, value) pairs

    Returns:
        Parameters in input order
    """
    if params is None:
        return []
    if isinstance(params, Mapping):
        return [_make_param(name, value) for name, value in params.items()]
    if isinstance(params, (str, bytes)):
        raise ArgumentError("Parameters must be a mapping or a sequence of pairs")

    items = []
    for item in params:
        if isinstance(item, ParamItem):
            items.append(item)
            continue
        try:
            name, value = item
        except (TypeError, ValueError):
            raise ArgumentError(f"Expected a ParamItem or (name, value) pair, got {item!r}")
        items.append(_make_param(name, value))
    return items


def to_bind_dict(params: Sequence[ParamItem]) -> dict[str, Any]:
    """
    Build the name-to-value mapping handed to the driver.

    Raises:
        ArgumentError: If two parameters share a name
    """
    bound: dict[str, Any] = {}
    for param in params:
        if param.name in bound:
            raise ArgumentError(f"Duplicate parameter name: {param.name}")
        bound[param.name] = param.value
    return bound


def unique_name(base: str, taken: set[str]) -> str:
    """Return ``base``, or ``base_2``, ``base_3``... if already taken."""
    if base not in taken:
        return base
    suffix = 2
    while f"{base}_{suffix}" in taken:
        suffix += 1
    return f"{base}_{suffix}"


def _make_param(name: Any, value: Any) -> ParamItem:
    if not isinstance(name, str):
        raise ArgumentError(f"Parameter name must be a string, got {name!r}")
    try:
        return ParamItem(name=name, value=value)
    except ValidationError as e:
        raise ArgumentError(f"Invalid parameter name {name!r}: {e.errors()[0]['msg']}")
