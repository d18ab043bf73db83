from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Protocol

from . import _definition
from ._errors import AmbiguousBeanError, DependencyInjectionError, NoSuchBeanDefinitionError
from ._markers import autowired_marker


if TYPE_CHECKING:
    from ._definition import BeanDefinition, ConstructorDescriptor, Dependency, FieldDescriptor, MethodDescriptor
    from ._registry import BeanRegistry


logger = logging.getLogger(__name__)

# Marks a dependency that resolved to nothing and is allowed to.
ABSENT = inspect.Parameter.empty


def _type_name(tp: Any) -> str:
    return getattr(tp, "__qualname__", None) or repr(tp)


class _BeanSource(Protocol):
    def get(self, name: str) -> Any: ...


class _DependencyResolver:
    """Resolution rule shared by the constructor, field and method injectors.

    Given a declared type:
    1. no bean of that type: error if required, else absent
    2. several beans: always an error (no implicit default)
    3. one bean: the cached singleton, else created through the bean factory
    """

    def __init__(self, registry: BeanRegistry, bean_factory: _BeanSource | None = None) -> None:
        if registry is None:
            msg = "BeanRegistry must not be None"
            raise ValueError(msg)
        self._registry = registry
        self.bean_factory = bean_factory

    def find_bean_name(self, declared_type: Any, *, required: bool) -> str | None:
        """Name of the single bean satisfying ``declared_type``, or None when absent and optional."""
        names = self._registry.get_names_for_type(declared_type)
        if not names:
            if required:
                raise NoSuchBeanDefinitionError(bean_type=declared_type)
            return None
        if len(names) > 1:
            raise AmbiguousBeanError(declared_type, names)
        return names[0]

    def obtain_bean(self, name: str, *, required: bool) -> Any:
        instance = self._registry.get_singleton(name)
        if instance is not None:
            return instance
        if self.bean_factory is None:
            if required:
                msg = f"Bean '{name}' is not instantiated yet and no bean factory is available to create it"
                raise NoSuchBeanDefinitionError(name, msg=msg)
            return ABSENT
        return self.bean_factory.get(name)

    def _resolve_dependency(
        self,
        dependency: Dependency,
        member: str,
        index: int | None = None,
    ) -> Any:
        """Resolve one dependency, converting lookup failures into :class:`DependencyInjectionError`.

        Errors raised while *creating* the dependency propagate untouched.
        """
        where = f"parameter #{index + 1} '{dependency.parameter_name}'" if index is not None else (
            f"field '{dependency.parameter_name}'"
        )

        if dependency.declared_type is None:
            if not dependency.required:
                return ABSENT
            msg = f"Cannot inject {where} of {member}: it has no type annotation"
            raise DependencyInjectionError(
                msg, member=member, parameter=dependency.parameter_name, parameter_index=index
            )

        try:
            name = self.find_bean_name(dependency.declared_type, required=dependency.required)
        except (NoSuchBeanDefinitionError, AmbiguousBeanError) as exc:
            msg = (
                f"Cannot inject {where} of {member}: "
                f"no unique bean of type '{_type_name(dependency.declared_type)}' ({exc})"
            )
            raise DependencyInjectionError(
                msg,
                member=member,
                parameter=dependency.parameter_name,
                parameter_index=index,
                declared_type=dependency.declared_type,
            ) from exc

        if name is None:
            return ABSENT

        if self.bean_factory is None and not self._registry.contains_singleton(name):
            if not dependency.required:
                return ABSENT
            msg = f"Cannot inject {where} of {member}: bean '{name}' is not instantiated and no bean factory is available"
            raise DependencyInjectionError(
                msg,
                member=member,
                parameter=dependency.parameter_name,
                parameter_index=index,
                declared_type=dependency.declared_type,
            )

        return self.obtain_bean(name, required=dependency.required)

    def _resolve_arguments(
        self, dependencies: tuple[Dependency, ...], member: str
    ) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for index, dependency in enumerate(dependencies):
            value = self._resolve_dependency(dependency, member, index)
            if value is ABSENT:
                value = dependency.default if dependency.has_default else None

            if dependency.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[dependency.parameter_name] = value

        return args, kwargs


class ConstructorInjector(_DependencyResolver):
    """Chooses a constructor and calls it with resolved dependencies."""

    def create_instance(self, definition: BeanDefinition) -> object:
        cls = definition.bean_type
        if cls is None:
            msg = "Bean type must not be None"
            raise ValueError(msg)

        descriptor = definition.constructor or self.select_constructor(cls)
        member = f"{cls.__qualname__}.{descriptor.name}"
        target = descriptor.target(cls)

        if descriptor.parameter_count == 0:
            logger.debug("Instantiating %s via %s()", cls.__qualname__, descriptor.name)
            return target()

        args, kwargs = self._resolve_arguments(descriptor.dependencies, member)
        logger.debug(
            "Instantiating %s via %s with %d dependencies", cls.__qualname__, descriptor.name, len(args) + len(kwargs)
        )
        return target(*args, **kwargs)

    @staticmethod
    def select_constructor(bean_type: type) -> ConstructorDescriptor:
        return _definition.select_constructor(bean_type)

    @staticmethod
    def preferred_constructor(bean_type: type) -> ConstructorDescriptor | None:
        if bean_type is None:
            return None
        return _definition.preferred_constructor(bean_type)

    @staticmethod
    def has_autowired_constructor(bean_type: type) -> bool:
        if bean_type is None:
            return False
        return any(c.autowired for c in _definition.scan_constructors(bean_type))

    @staticmethod
    def requires_dependency_injection(descriptor: ConstructorDescriptor | None) -> bool:
        if descriptor is None:
            return False
        return descriptor.autowired or descriptor.parameter_count > 0


class FieldInjector(_DependencyResolver):
    """Sets ``Annotated[T, Autowired()]`` fields on an already constructed bean."""

    def inject_fields(self, instance: object, definition: BeanDefinition) -> None:
        if instance is None:
            msg = "Bean instance must not be None"
            raise ValueError(msg)
        if definition is None:
            msg = "Bean definition must not be None"
            raise ValueError(msg)

        fields = definition.fields
        if fields is None:
            fields = self.scan_autowired_fields(definition.bean_type)

        for descriptor in fields:
            self._inject_field(instance, descriptor)

    def _inject_field(self, instance: object, descriptor: FieldDescriptor) -> None:
        member = f"{type(instance).__qualname__}.{descriptor.name}"
        value = self._resolve_dependency(descriptor.dependency, member)
        if value is ABSENT:
            return

        try:
            setattr(instance, descriptor.name, value)
        except AttributeError as exc:
            msg = f"Cannot set field '{descriptor.name}' on {type(instance).__qualname__}: {exc}"
            raise DependencyInjectionError(msg, member=member, parameter=descriptor.name) from exc

    @staticmethod
    def scan_autowired_fields(bean_type: type) -> tuple[FieldDescriptor, ...]:
        if bean_type is None:
            msg = "Bean type must not be None"
            raise ValueError(msg)
        return _definition.scan_autowired_fields(bean_type)

    @staticmethod
    def is_autowired_field(bean_type: type, name: str) -> bool:
        return any(f.name == name for f in _definition.scan_autowired_fields(bean_type))


class MethodInjector(_DependencyResolver):
    """Invokes ``@autowired`` methods on an already constructed bean."""

    def inject_methods(self, instance: object, definition: BeanDefinition) -> None:
        if instance is None:
            msg = "Bean instance must not be None"
            raise ValueError(msg)
        if definition is None:
            msg = "Bean definition must not be None"
            raise ValueError(msg)

        methods = definition.methods
        if methods is None:
            methods = self.scan_autowired_methods(definition.bean_type)

        for descriptor in methods:
            self._inject_method(instance, descriptor)

    def _inject_method(self, instance: object, descriptor: MethodDescriptor) -> None:
        member = f"{type(instance).__qualname__}.{descriptor.name}"
        method = getattr(instance, descriptor.name)

        # Resolve everything first: a required parameter that fails means the method is never called.
        args, kwargs = self._resolve_arguments(descriptor.dependencies, member)
        logger.debug("Invoking injection method %s", member)
        method(*args, **kwargs)

    @staticmethod
    def scan_autowired_methods(bean_type: type) -> tuple[MethodDescriptor, ...]:
        if bean_type is None:
            msg = "Bean type must not be None"
            raise ValueError(msg)
        return _definition.scan_autowired_methods(bean_type)

    @staticmethod
    def is_autowired_method(func: Any) -> bool:
        return func is not None and autowired_marker(func) is not None

    @staticmethod
    def is_setter_method(func: Any) -> bool:
        """``set_xxx(self, value)`` style setter."""
        if func is None or not callable(func):
            return False
        name = getattr(func, "__name__", "")
        if not name.startswith("set_") or len(name) <= len("set_"):
            return False
        try:
            params = list(inspect.signature(func).parameters.values())
        except (TypeError, ValueError):
            return False
        if params and params[0].name == "self":
            params = params[1:]
        return len(params) == 1
