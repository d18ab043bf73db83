"""Inversion-of-control bean container.

Beans are described by definitions (type, name, scope) and built on demand by
a factory that injects their dependencies by declared type, through the
constructor, annotated fields and ``@autowired`` methods, then runs their
lifecycle hooks.

Exports:
- `BeanFactory`: Registers definitions and resolves beans by name or type.
- `BeanDefinition` / `Scope`: Declarative description of a bean; singleton or prototype.
- `autowired`, `Autowired`, `constructor`, `post_construct`, `pre_destroy`:
  Markers read by the metadata scan.
- `BeanPostProcessor` / `LifecycleProcessor`: Hooks around bean initialization.
- `CircularDependencyDetector`: Static cycle detection over registered definitions.
- `BeansError` and its subclasses: The container's error taxonomy.
"""

from ._definition import (
    BeanDefinition,
    ConstructorDescriptor,
    Dependency,
    FieldDescriptor,
    MethodDescriptor,
    Scope,
    generate_bean_name,
)
from ._detector import CircularDependencyDetector
from ._errors import (
    AmbiguousBeanError,
    AmbiguousConstructorError,
    BeanCreationError,
    BeanNotOfRequiredTypeError,
    BeansError,
    CircularDependencyError,
    DependencyInjectionError,
    DuplicateRegistrationError,
    InvalidLifecycleMethodError,
    NoSuchBeanDefinitionError,
)
from ._factory import BeanFactory, CreationPolicy
from ._injectors import ConstructorInjector, FieldInjector, MethodInjector
from ._lifecycle import BeanPostProcessor, LifecycleProcessor
from ._markers import Autowired, autowired, constructor, post_construct, pre_destroy
from ._registry import BeanRegistry


__all__ = [
    "AmbiguousBeanError",
    "AmbiguousConstructorError",
    "Autowired",
    "BeanCreationError",
    "BeanDefinition",
    "BeanFactory",
    "BeanNotOfRequiredTypeError",
    "BeanPostProcessor",
    "BeanRegistry",
    "BeansError",
    "CircularDependencyDetector",
    "CircularDependencyError",
    "ConstructorDescriptor",
    "ConstructorInjector",
    "CreationPolicy",
    "Dependency",
    "DependencyInjectionError",
    "DuplicateRegistrationError",
    "FieldDescriptor",
    "FieldInjector",
    "InvalidLifecycleMethodError",
    "LifecycleProcessor",
    "MethodDescriptor",
    "MethodInjector",
    "NoSuchBeanDefinitionError",
    "Scope",
    "autowired",
    "constructor",
    "generate_bean_name",
    "post_construct",
    "pre_destroy",
]
