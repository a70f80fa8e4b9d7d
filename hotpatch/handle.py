"""
Indirection handles.

A Handle is what consumers hold instead of an implementation. It keeps no
reference to the implementation itself, only a resolver that asks the
owning registry entry for its current value, and it forwards every access
through that resolver at the moment of access:

    >>> h = registry.register("greeter", Greeter())
    >>> registry.reload_instance("greeter", LoudGreeter())
    >>> h.greet("bob")          # runs LoudGreeter.greet with self = the LoudGreeter

Methods looked up through a handle are bound to the implementation, so
self-references inside them never see the handle. Metadata such as
__name__, __doc__ and __module__ also comes from the implementation, so
help() and functools.wraps describe what the handle points at.
"""

from __future__ import annotations

from typing import Any, Callable

_RESOLVER = "_hotpatch_resolve"
# Found on the Handle class itself, so __getattr__ would never see them
_CLASS_LEVEL = frozenset({"__doc__", "__module__"})


def _target(handle: "Handle") -> Any:
    return object.__getattribute__(handle, _RESOLVER)()


class Handle:
    """Stable proxy that forwards to whatever is current right now."""

    __slots__ = (_RESOLVER, "__weakref__")

    def __init__(self, resolver: Callable[[], Any]):
        object.__setattr__(self, _RESOLVER, resolver)

    # --- attribute access ---

    def __getattribute__(self, name: str) -> Any:
        if name in _CLASS_LEVEL:
            return getattr(_target(self), name)
        return object.__getattribute__(self, name)

    def __getattr__(self, name: str) -> Any:
        return getattr(_target(self), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(_target(self), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(_target(self), name)

    def __dir__(self) -> list[str]:
        return dir(_target(self))

    @property
    def __class__(self) -> type:
        # isinstance(handle, SomeClass) checks the implementation
        return type(_target(self))

    # --- invocation and construction ---

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return _target(self)(*args, **kwargs)

    # --- container protocol ---

    def __getitem__(self, key: Any) -> Any:
        return _target(self)[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        _target(self)[key] = value

    def __delitem__(self, key: Any) -> None:
        del _target(self)[key]

    def __len__(self) -> int:
        return len(_target(self))

    def __iter__(self):
        return iter(_target(self))

    def __next__(self) -> Any:
        return next(_target(self))

    def __contains__(self, item: Any) -> bool:
        return item in _target(self)

    # --- context manager ---

    def __enter__(self) -> Any:
        return _target(self).__enter__()

    def __exit__(self, exc_type, exc, tb) -> Any:
        return _target(self).__exit__(exc_type, exc, tb)

    # --- presentation ---

    def __bool__(self) -> bool:
        return bool(_target(self))

    def __str__(self) -> str:
        return str(_target(self))

    def __repr__(self) -> str:
        return repr(_target(self))


def is_handle(obj: Any) -> bool:
    """True if obj is a Handle (type() is used because __class__ is forwarded)."""
    return type(obj) is Handle


def resolve(obj: Any) -> Any:
    """Return the current implementation behind a handle; other values pass through."""
    if is_handle(obj):
        return object.__getattribute__(obj, _RESOLVER)()
    return obj
