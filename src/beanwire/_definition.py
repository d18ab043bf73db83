from __future__ import annotations

import functools
import inspect
import logging
import types
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import (
    Annotated,
    Any,
    Generic,
    Protocol,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from ._errors import AmbiguousConstructorError
from ._markers import Autowired, autowired_marker, is_constructor


logger = logging.getLogger(__name__)

_EXCLUDED_TYPES = (object, Generic, Protocol)


class Scope(Enum):
    SINGLETON = "singleton"
    PROTOTYPE = "prototype"

    @classmethod
    def from_value(cls, value: str) -> Scope:
        for scope in cls:
            if scope.value == value:
                return scope
        msg = f"Unknown scope: {value!r}"
        raise ValueError(msg)

    @property
    def is_singleton(self) -> bool:
        return self is Scope.SINGLETON

    @property
    def is_prototype(self) -> bool:
        return self is Scope.PROTOTYPE


@dataclass(frozen=True)
class Dependency:
    """A single injectable parameter or field.

    Attributes:
        parameter_name: Parameter (or field) name on the injected member.
        declared_type: Type looked up in the type index; ``None`` when unannotated.
        required: Whether an unresolved lookup is an error.
        has_default: Whether the member declares a default used when the bean is absent.
        default: The declared default value.
        kind: Parameter kind, used to decide positional vs keyword passing.
    """

    parameter_name: str
    declared_type: Any
    required: bool = True
    has_default: bool = False
    default: Any = field(default=None, compare=False)
    kind: inspect._ParameterKind = inspect.Parameter.POSITIONAL_OR_KEYWORD


@dataclass(frozen=True)
class ConstructorDescriptor:
    """A constructor candidate: ``__init__`` or an alternative classmethod constructor."""

    name: str
    dependencies: tuple[Dependency, ...]
    autowired: bool = False
    required: bool = True

    @property
    def parameter_count(self) -> int:
        return len(self.dependencies)

    @property
    def is_init(self) -> bool:
        return self.name == "__init__"

    def target(self, cls: type) -> Any:
        return cls if self.is_init else getattr(cls, self.name)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    dependency: Dependency


@dataclass(frozen=True)
class MethodDescriptor:
    name: str
    dependencies: tuple[Dependency, ...]
    required: bool = True


@dataclass(frozen=True)
class BeanDefinition:
    """Declarative descriptor of one managed object.

    Only ``bean_type`` is mandatory. Injection metadata left as ``None`` is
    filled once by :meth:`resolved` when the definition is registered with a
    factory; the completed definition is never mutated afterwards.

    Example:
      BeanDefinition(UserService)
      BeanDefinition(Cache, scope=Scope.PROTOTYPE, provides=(CacheLike,))

    """

    bean_type: type
    name: str | None = None
    scope: Scope = Scope.SINGLETON
    constructor: ConstructorDescriptor | None = None
    fields: tuple[FieldDescriptor, ...] | None = None
    methods: tuple[MethodDescriptor, ...] | None = None
    provides: tuple[type, ...] = ()
    lazy_init: bool = False

    @property
    def is_singleton(self) -> bool:
        return self.scope.is_singleton

    @property
    def is_prototype(self) -> bool:
        return self.scope.is_prototype

    @property
    def is_resolved(self) -> bool:
        return self.fields is not None and self.methods is not None

    def resolved(self, name: str | None = None) -> BeanDefinition:
        """Return a copy with every missing piece of injection metadata scanned from ``bean_type``.

        ``name``, when given, is the key the definition is registered under and
        replaces any name set on the definition.
        """
        if self.is_resolved and (name is None or name == self.name):
            return self

        ctor = self.constructor
        if ctor is None:
            try:
                ctor = select_constructor(self.bean_type)
            except AmbiguousConstructorError:
                # reported by the constructor injector when the bean is created
                ctor = None

        return replace(
            self,
            name=name if name is not None else self.name,
            constructor=ctor,
            fields=self.fields if self.fields is not None else scan_autowired_fields(self.bean_type),
            methods=self.methods if self.methods is not None else scan_autowired_methods(self.bean_type),
        )

    def provided_types(self) -> list[type]:
        """All types this bean satisfies: its own ancestry plus every declared capability's ancestry."""
        seen: dict[type, None] = {}
        for root in (self.bean_type, *self.provides):
            for tp in getattr(root, "__mro__", (root,)):
                if tp in _EXCLUDED_TYPES:
                    continue
                seen.setdefault(tp, None)
        return list(seen)

    def dependency_types(self) -> list[Any]:
        """Declared types referenced by the constructor, fields and methods, in that order."""
        ctor = self.constructor or preferred_constructor(self.bean_type)
        deps: list[Dependency] = list(ctor.dependencies) if ctor else []
        deps.extend(f.dependency for f in (self.fields if self.fields is not None else scan_autowired_fields(self.bean_type)))
        for method in self.methods if self.methods is not None else scan_autowired_methods(self.bean_type):
            deps.extend(method.dependencies)

        seen: dict[Any, None] = {}
        for dep in deps:
            if dep.declared_type is not None:
                seen.setdefault(dep.declared_type, None)
        return list(seen)

    def __repr__(self) -> str:
        return (
            f"BeanDefinition(bean_type={self.bean_type.__qualname__}, name={self.name!r}, "
            f"scope={self.scope.value}, lazy_init={self.lazy_init}, "
            f"fields={len(self.fields or ())}, methods={len(self.methods or ())})"
        )


def generate_bean_name(cls: type) -> str:
    """``UserService`` -> ``userService``."""
    short = cls.__name__
    return short[:1].lower() + short[1:]


# --- metadata scan -----------------------------------------------------------


def _get_type_hints(target: Any) -> dict[str, Any]:
    try:
        hints = get_type_hints(target, include_extras=True)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning(
            "'%s' name error retrieving %s type hints", exc.name, getattr(target, "__qualname__", target)
        )
        hints = {}

    return hints


def _strip_annotated(annotation: Any) -> tuple[Any, Autowired | None]:
    if get_origin(annotation) is Annotated:
        base, *metadata = get_args(annotation)
        return base, next((m for m in metadata if isinstance(m, Autowired)), None)
    return annotation, None


def _strip_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = get_args(annotation)
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1 and len(args) == 2:  # noqa: PLR2004
            return non_none[0], True
    return annotation, False


def split_annotation(annotation: Any) -> tuple[Any, Autowired | None, bool]:
    """Split an annotation into ``(declared_type, marker, optional)``.

    ``Annotated[Repo, Autowired()]`` -> ``(Repo, Autowired(), False)``
    ``Optional[Repo]`` -> ``(Repo, None, True)``
    """
    annotation, marker = _strip_annotated(annotation)
    annotation, optional = _strip_optional(annotation)
    if marker is None:
        annotation, marker = _strip_annotated(annotation)
    return annotation, marker, optional


def _parameter_dependencies(func: Any, *, required: bool) -> tuple[Dependency, ...]:
    """Dependencies of a function's parameters, skipping the bound first one and variadics."""
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        logger.warning("Unable to read the signature of %s, treating it as parameterless", func)
        return ()

    hints = _get_type_hints(func)
    deps = []
    for p in list(sig.parameters.values())[1:]:
        if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        declared_type, marker, optional = None, None, False
        if p.name in hints:
            declared_type, marker, optional = split_annotation(hints[p.name])

        has_default = p.default is not inspect.Parameter.empty
        dep_required = (marker.required if marker else required) and not optional and not has_default
        deps.append(
            Dependency(
                parameter_name=p.name,
                declared_type=declared_type,
                required=dep_required,
                has_default=has_default,
                default=p.default if has_default else None,
                kind=p.kind,
            )
        )
    return tuple(deps)


def _constructor_descriptor(name: str, func: Any) -> ConstructorDescriptor:
    marker = autowired_marker(func)
    required = marker.required if marker else True
    if func is object.__init__:
        return ConstructorDescriptor(name, (), autowired=marker is not None, required=required)
    return ConstructorDescriptor(
        name,
        _parameter_dependencies(func, required=required),
        autowired=marker is not None,
        required=required,
    )


@functools.cache
def scan_constructors(cls: type) -> tuple[ConstructorDescriptor, ...]:
    """Constructor candidates in declaration order.

    ``__init__`` (own or inherited) plus every classmethod marked with
    ``@constructor`` or ``@autowired``. An inherited ``__init__`` is listed first.
    """
    own = vars(cls)
    candidates: list[ConstructorDescriptor] = []
    if "__init__" not in own:
        candidates.append(_constructor_descriptor("__init__", inspect.getattr_static(cls, "__init__")))

    for name, attr in own.items():
        if name == "__init__":
            candidates.append(_constructor_descriptor(name, attr))
        elif isinstance(attr, classmethod) and (autowired_marker(attr) or is_constructor(attr)):
            candidates.append(_constructor_descriptor(name, attr.__func__))

    return tuple(candidates)


def select_constructor(cls: type) -> ConstructorDescriptor:
    """Pick the constructor to invoke.

    1. the single ``@autowired`` candidate (more than one is an error)
    2. a candidate without parameters
    3. the candidate with the fewest parameters, first declared wins ties
    """
    candidates = scan_constructors(cls)

    marked = [c for c in candidates if c.autowired]
    if len(marked) > 1:
        raise AmbiguousConstructorError(cls, [c.name for c in marked])
    if marked:
        return marked[0]

    for candidate in candidates:
        if candidate.parameter_count == 0:
            return candidate

    return min(candidates, key=lambda c: c.parameter_count)


def preferred_constructor(cls: type) -> ConstructorDescriptor:
    """Like :func:`select_constructor`, but returns the first marked candidate instead of failing."""
    candidates = scan_constructors(cls)
    marked = next((c for c in candidates if c.autowired), None)
    if marked is not None:
        return marked
    for candidate in candidates:
        if candidate.parameter_count == 0:
            return candidate
    return min(candidates, key=lambda c: c.parameter_count)


@functools.cache
def scan_autowired_fields(cls: type) -> tuple[FieldDescriptor, ...]:
    """Class-level annotations carrying an :class:`Autowired` marker, across the MRO."""
    fields = []
    for name, annotation in _get_type_hints(cls).items():
        declared_type, marker, optional = split_annotation(annotation)
        if marker is None:
            continue

        has_default = hasattr(cls, name)
        fields.append(
            FieldDescriptor(
                name,
                Dependency(
                    parameter_name=name,
                    declared_type=declared_type,
                    required=marker.required and not optional,
                    has_default=has_default,
                    default=getattr(cls, name, None),
                ),
            )
        )
    return tuple(fields)


@functools.cache
def scan_autowired_methods(cls: type) -> tuple[MethodDescriptor, ...]:
    """Instance methods marked ``@autowired`` across the MRO, most derived definition first."""
    seen: set[str] = set()
    methods = []
    for klass in cls.__mro__:
        if klass in _EXCLUDED_TYPES:
            continue
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if name == "__init__" or not inspect.isfunction(attr):
                continue

            marker = autowired_marker(attr)
            if marker is None:
                continue
            methods.append(
                MethodDescriptor(name, _parameter_dependencies(attr, required=marker.required), marker.required)
            )
    return tuple(methods)
