from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._definition import BeanDefinition, Scope, generate_bean_name
from ._detector import CircularDependencyDetector
from ._errors import (
    AmbiguousBeanError,
    BeanCreationError,
    BeanNotOfRequiredTypeError,
    BeansError,
    CircularDependencyError,
    NoSuchBeanDefinitionError,
)
from ._injectors import ConstructorInjector, FieldInjector, MethodInjector
from ._lifecycle import BeanPostProcessor, LifecycleProcessor
from ._registry import BeanRegistry


if TYPE_CHECKING:
    from types import TracebackType


logger = logging.getLogger(__name__)

T = TypeVar("T")


class CreationPolicy(Enum):
    """What a thread does when another thread is already creating the same singleton."""

    FAIL_FAST = "fail_fast"
    WAIT = "wait"


class BeanFactory:
    """Inversion-of-control container.

    - register bean definitions (or classes, or ready-made instances)
    - resolve beans by name or by type; dependencies are injected by declared type
    - scopes: singleton (cached) / prototype (new instance per request)
    - lifecycle hooks and post-processors around initialization
    - static cycle detection before anything is built

    Example:
      factory = BeanFactory()
      factory.register(Repo)
      factory.register(Service)
      factory.validate_dependencies()
      service = factory.get(Service)

    """

    def __init__(
        self,
        *,
        creation_policy: CreationPolicy = CreationPolicy.FAIL_FAST,
        creation_timeout: float | None = None,
        register_lifecycle_processor: bool = True,
    ) -> None:
        self._registry = BeanRegistry()
        self._constructor_injector = ConstructorInjector(self._registry, self)
        self._field_injector = FieldInjector(self._registry, self)
        self._method_injector = MethodInjector(self._registry, self)
        self._detector = CircularDependencyDetector(self._registry)
        self._lifecycle_processor = LifecycleProcessor()
        self._post_processors: list[BeanPostProcessor] = []
        self._creation_policy = creation_policy
        self._creation_timeout = creation_timeout
        self._lock = threading.RLock()
        self._local = threading.local()
        self._closed = False

        if register_lifecycle_processor:
            self.add_post_processor(self._lifecycle_processor)

    # --- registration --------------------------------------------------------

    def register_bean_definition(self, name: str, definition: BeanDefinition) -> None:
        """Register a definition under ``name``; its injection metadata is scanned once here."""
        if not name:
            msg = "Bean name must not be empty"
            raise ValueError(msg)
        if definition is None:
            msg = "Bean definition must not be None"
            raise ValueError(msg)
        if not isinstance(definition, BeanDefinition):
            msg = f"Expected a BeanDefinition, got {type(definition).__name__}"
            raise TypeError(msg)

        self._registry.register_definition(name, definition.resolved(name))
        logger.debug("Registered bean definition '%s' (%s)", name, definition.bean_type.__qualname__)

    def register(
        self,
        bean_type: type,
        *,
        name: str | None = None,
        scope: Scope = Scope.SINGLETON,
        provides: tuple[type, ...] = (),
        lazy_init: bool = False,
    ) -> str:
        """Register ``bean_type`` and return the bean name (``UserService`` -> ``userService`` by default)."""
        bean_name = name or generate_bean_name(bean_type)
        self.register_bean_definition(
            bean_name,
            BeanDefinition(bean_type, bean_name, scope=scope, provides=tuple(provides), lazy_init=lazy_init),
        )
        return bean_name

    def register_singleton(self, name: str, instance: object) -> None:
        """Register a pre-built instance; it is also indexed by its type unless a definition exists."""
        self._registry.register_singleton(name, instance)
        if not self._registry.contains_definition(name):
            self._registry.register_definition(name, BeanDefinition(type(instance), name).resolved())

    def remove_bean_definition(self, name: str) -> None:
        self.destroy(name)
        self._registry.remove_definition(name)

    # --- lookup ----------------------------------------------------------------

    @overload
    def get(self, key: type[T]) -> T: ...

    @overload
    def get(self, key: str) -> Any: ...

    @overload
    def get(self, key: str, required_type: type[T]) -> T: ...

    def get(self, key: str | type[T], required_type: type[T] | None = None) -> Any:
        """Return the bean named ``key``, or the single bean satisfying type ``key``.

        Raises:
            NoSuchBeanDefinitionError: nothing matches.
            AmbiguousBeanError: more than one bean satisfies the requested type.
            BeanNotOfRequiredTypeError: the bean is not an instance of ``required_type``.

        """
        if key is None:
            msg = "Bean name or type must not be None"
            raise ValueError(msg)

        if isinstance(key, str):
            name = key
            bean = self._get_by_name(key)
        else:
            name, bean = self._get_by_type(key)

        if required_type is not None and not isinstance(bean, required_type):
            raise BeanNotOfRequiredTypeError(name, required_type, type(bean))
        return bean

    def _get_by_type(self, bean_type: type) -> tuple[str, Any]:
        names = self._registry.get_names_for_type(bean_type)
        if not names:
            raise NoSuchBeanDefinitionError(bean_type=bean_type)
        if len(names) > 1:
            raise AmbiguousBeanError(bean_type, names)
        return names[0], self._get_by_name(names[0])

    def _get_by_name(self, name: str) -> Any:
        if not name:
            msg = "Bean name must not be empty"
            raise ValueError(msg)

        singleton = self._registry.get_singleton(name)
        if singleton is not None:
            return singleton

        definition = self._registry.get_definition(name)
        if definition is None:
            raise NoSuchBeanDefinitionError(name)

        return self._create_bean(name, definition)

    # --- creation ------------------------------------------------------------

    def _creation_path(self) -> list[str]:
        path = getattr(self._local, "path", None)
        if path is None:
            path = self._local.path = []
        return path

    def _create_bean(self, name: str, definition: BeanDefinition) -> Any:
        path = self._creation_path()
        if name in path:
            cycle = [*path[path.index(name) :], name]
            msg = f"Requested bean '{name}' is currently in creation"
            raise CircularDependencyError(msg, bean_name=name, path=cycle)

        if not definition.is_singleton:
            return self._do_create_bean(name, definition, path)

        wait = self._creation_policy is CreationPolicy.WAIT
        with self._registry.creating(name, wait=wait, timeout=self._creation_timeout):
            # another thread may have finished this bean while we were waiting
            existing = self._registry.get_singleton(name)
            if existing is not None:
                return existing

            bean = self._do_create_bean(name, definition, path)
            self._registry.register_singleton(name, bean)
            logger.debug("Cached singleton bean '%s'", name)
            return bean

    def _do_create_bean(self, name: str, definition: BeanDefinition, path: list[str]) -> Any:
        path.append(name)
        try:
            logger.debug("Creating bean '%s'", name)
            bean = self._constructor_injector.create_instance(definition)
            if bean is None:
                msg = "constructor returned None"
                raise BeanCreationError(name, msg)

            self._field_injector.inject_fields(bean, definition)
            self._method_injector.inject_methods(bean, definition)

            return self._initialize_bean(bean, name)
        except BeansError:
            raise
        except Exception as exc:
            raise BeanCreationError(name, str(exc) or type(exc).__name__) from exc
        finally:
            path.pop()

    def _initialize_bean(self, bean: Any, name: str) -> Any:
        processors = self.post_processors

        result = bean
        for processor in processors:
            current = processor.before_init(result, name)
            if current is None:
                break
            result = current

        for processor in processors:
            current = processor.after_init(result, name)
            if current is None:
                break
            result = current

        return result

    def pre_instantiate_singletons(self) -> None:
        """Validate the graph, then create every non-lazy singleton in registration order."""
        self.validate_dependencies()
        for name in self._registry.definition_names():
            definition = self._registry.get_definition(name)
            if definition is not None and definition.is_singleton and not definition.lazy_init:
                self.get(name)

    # --- post-processors -----------------------------------------------------

    def add_post_processor(self, processor: BeanPostProcessor) -> None:
        if processor is None:
            msg = "Post-processor must not be None"
            raise ValueError(msg)
        if not isinstance(processor, BeanPostProcessor):
            msg = f"{type(processor).__name__} does not implement before_init/after_init"
            raise TypeError(msg)

        with self._lock:
            if processor not in self._post_processors:
                self._post_processors.append(processor)

    def remove_post_processor(self, processor: BeanPostProcessor) -> None:
        with self._lock:
            if processor in self._post_processors:
                self._post_processors.remove(processor)

    @property
    def post_processors(self) -> list[BeanPostProcessor]:
        with self._lock:
            return list(self._post_processors)

    # --- diagnostics -----------------------------------------------------------

    def detect_circular_dependencies(self) -> list[list[str]]:
        self._detector.build_dependency_graph()
        return self._detector.detect_circular_dependencies()

    def validate_dependencies(self) -> None:
        """Fail fast if the registered definitions contain any dependency cycle.

        Raises:
            CircularDependencyError: ``path`` holds the first cycle, ``cycles`` all of them.

        """
        cycles = self.detect_circular_dependencies()
        if cycles:
            msg = f"Found {len(cycles)} circular dependency chain(s)"
            raise CircularDependencyError(msg, bean_name=cycles[0][0], path=cycles[0], cycles=cycles)

    def has_circular_dependency(self, name: str) -> bool:
        self._detector.build_dependency_graph()
        return self._detector.has_circular_dependency(name)

    @property
    def dependency_detector(self) -> CircularDependencyDetector:
        return self._detector

    # --- introspection -------------------------------------------------------

    def contains_bean(self, name: str) -> bool:
        return self._registry.contains_definition(name) or self._registry.contains_singleton(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.contains_bean(name)

    def _require_definition(self, name: str) -> BeanDefinition:
        definition = self._registry.get_definition(name)
        if definition is None:
            raise NoSuchBeanDefinitionError(name)
        return definition

    def is_singleton(self, name: str) -> bool:
        return self._require_definition(name).is_singleton

    def is_prototype(self, name: str) -> bool:
        return self._require_definition(name).is_prototype

    def get_type(self, name: str) -> type | None:
        return self._registry.get_type(name)

    def get_bean_definition(self, name: str) -> BeanDefinition | None:
        return self._registry.get_definition(name)

    def bean_definition_names(self) -> list[str]:
        return self._registry.definition_names()

    @property
    def bean_definition_count(self) -> int:
        return self._registry.definition_count()

    @property
    def registry(self) -> BeanRegistry:
        return self._registry

    @property
    def lifecycle_processor(self) -> LifecycleProcessor:
        return self._lifecycle_processor

    # --- teardown --------------------------------------------------------------

    def destroy(self, name: str) -> None:
        """Run the bean's pre-destroy hooks, then drop it from the singleton cache."""
        bean = self._registry.get_singleton(name)
        if bean is None:
            return
        self._lifecycle_processor.invoke_pre_destroy(bean, name)
        self._registry.remove_singleton(name)
        logger.debug("Destroyed bean '%s'", name)

    def destroy_all(self) -> None:
        """Destroy every cached singleton, most recently created first."""
        for name in reversed(self._registry.singleton_names()):
            self.destroy(name)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Destroy all singletons and forget every definition."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self.destroy_all()
        self._registry.clear()
        self._detector.clear()
        self._lifecycle_processor.clear_cache()
        logger.debug("Bean factory closed")

    def __enter__(self) -> BeanFactory:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
