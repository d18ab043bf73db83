"""Declarative markers read by the metadata scan.

- ``@autowired`` / ``@autowired(required=False)`` on ``__init__``, on an
  alternative constructor (classmethod) or on a regular method.
- ``Annotated[T, Autowired()]`` on a class-level annotation for field injection.
- ``@constructor`` on a classmethod to offer it as a constructor candidate.
- ``@post_construct`` / ``@pre_destroy`` on lifecycle hooks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar, overload


F = TypeVar("F")

AUTOWIRED_ATTR = "__beanwire_autowired__"
CONSTRUCTOR_ATTR = "__beanwire_constructor__"
POST_CONSTRUCT_ATTR = "__beanwire_post_construct__"
PRE_DESTROY_ATTR = "__beanwire_pre_destroy__"


def _mark(target: Any, attr: str, value: object) -> None:
    # staticmethod/classmethod wrappers: mark the underlying function
    func = getattr(target, "__func__", target)
    setattr(func, attr, value)


def _marker(target: Any, attr: str) -> Any:
    func = getattr(target, "__func__", target)
    return getattr(func, attr, None)


@dataclass(frozen=True)
class Autowired:
    """Injection marker.

    Used as ``Annotated`` metadata for fields and parameters, or called on a
    function to mark it as an injection point.
    """

    required: bool = True

    def __call__(self, target: F) -> F:
        _mark(target, AUTOWIRED_ATTR, self)
        return target


@overload
def autowired(target: F, /) -> F: ...


@overload
def autowired(*, required: bool = True) -> Autowired: ...


def autowired(target: Any = None, /, *, required: bool = True) -> Any:
    """Mark a constructor or method as an injection point.

    Example:
      class Service:
          @autowired
          def __init__(self, repo: Repo) -> None: ...

          @autowired(required=False)
          def set_cache(self, cache: Cache) -> None: ...

    """
    marker = Autowired(required=required)
    if target is None:
        return marker
    return marker(target)


def constructor(target: F) -> F:
    """Offer a classmethod as an alternative constructor candidate."""
    _mark(target, CONSTRUCTOR_ATTR, True)  # noqa: FBT003
    return target


def post_construct(target: F) -> F:
    """Run the method once the bean has been populated."""
    _mark(target, POST_CONSTRUCT_ATTR, True)  # noqa: FBT003
    return target


def pre_destroy(target: F) -> F:
    """Run the method when the bean is destroyed."""
    _mark(target, PRE_DESTROY_ATTR, True)  # noqa: FBT003
    return target


def autowired_marker(target: Any) -> Autowired | None:
    marker = _marker(target, AUTOWIRED_ATTR)
    return marker if isinstance(marker, Autowired) else None


def is_constructor(target: Any) -> bool:
    return bool(_marker(target, CONSTRUCTOR_ATTR))


def is_post_construct(target: Any) -> bool:
    return bool(_marker(target, POST_CONSTRUCT_ATTR))


def is_pre_destroy(target: Any) -> bool:
    return bool(_marker(target, PRE_DESTROY_ATTR))
