"""
Declared capability tags and the assignability order used by type filters.

An event class's assignable types are, in order:

1. the class itself;
2. its capabilities: non-primary bases in declaration order, then the tags
   given to ``@capabilities``, each expanded recursively. Duplicates are
   dropped across this whole list (first occurrence wins), as is anything
   already reachable through the primary-base chain;
3. the assignable types of its primary base (``__bases__[0]``).

``object`` is never listed. The result is computed once per class.
"""

from functools import lru_cache
from typing import Any, Tuple


def capabilities(*tags: type):
    """
    Class decorator declaring the capability tags an event class satisfies.

    Tags are ordinary classes and may declare capabilities of their own.
    Tags are not inherited through ``__capabilities__``; subclasses pick them
    up through their primary base's assignable types.
    """
    for tag in tags:
        if not isinstance(tag, type):
            raise TypeError(f"capability tag {tag!r} is not a class")

    def decorate(cls: type) -> type:
        cls.__capabilities__ = tuple(tags)
        return cls

    return decorate


def _declared(cls: type) -> Tuple[type, ...]:
    extra_bases = tuple(base for base in cls.__bases__[1:] if base is not object)
    return extra_bases + cls.__dict__.get("__capabilities__", ())


@lru_cache(maxsize=None)
def assignable_types(cls: type) -> Tuple[type, ...]:
    """
    Get every type ``cls`` is assignable to, most specific first.

    Args:
        cls: The class to describe.

    Returns:
        A tuple starting with ``cls`` itself.
    """
    primary = cls.__bases__[0] if cls.__bases__ else object
    parents = assignable_types(primary) if primary is not object else ()

    seen = set(parents)
    seen.add(cls)
    capability_types = []
    for tag in _declared(cls):
        for candidate in assignable_types(tag):
            if candidate not in seen:
                seen.add(candidate)
                capability_types.append(candidate)

    return (cls, *capability_types, *parents)


def is_assignable(event: Any, cls: type) -> bool:
    """Whether ``event`` may be treated as an instance of ``cls``."""
    return cls is object or cls in assignable_types(type(event))
