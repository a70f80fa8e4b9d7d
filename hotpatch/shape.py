"""
Shallow shape classification for replacement checks.

A replacement is accepted only if it has the same Shape as the value it
replaces: a function cannot replace a class instance, a class cannot replace
a module, and so on. Nothing deeper (attributes, signatures) is compared.
"""

from __future__ import annotations

import functools
import inspect
from collections.abc import Mapping
from enum import Enum
from types import ModuleType, SimpleNamespace
from typing import Any

from .errors import IncompatibleReplacementError
from .handle import is_handle, resolve


class Shape(str, Enum):
    """Tagged variants of an implementation value."""

    CLASS = "class"
    FUNCTION = "function"
    MODULE = "module"
    RECORD = "record"
    INSTANCE = "instance"


def classify(value: Any) -> Shape:
    """Return the Shape of value. Handles are classified by what they point at."""
    if is_handle(value):
        value = resolve(value)
    if isinstance(value, type):
        return Shape.CLASS
    if isinstance(value, ModuleType):
        return Shape.MODULE
    if (
        inspect.isroutine(value)
        or isinstance(value, functools.partial)
        or inspect.ismethod(value)
    ):
        return Shape.FUNCTION
    if isinstance(value, (Mapping, SimpleNamespace)):
        return Shape.RECORD
    return Shape.INSTANCE


def check_compatible(name: str, current: Any, candidate: Any) -> Shape:
    """
    Reject candidate if its shape differs from current.

    Returns:
        The shared Shape

    Raises:
        IncompatibleReplacementError: If the shapes differ
    """
    current_shape = classify(current)
    candidate_shape = classify(candidate)
    if current_shape is not candidate_shape:
        raise IncompatibleReplacementError(name, current_shape.value, candidate_shape.value)
    return candidate_shape
