from __future__ import annotations

import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ._errors import BeanCreationError, BeansError, InvalidLifecycleMethodError
from ._markers import is_post_construct, is_pre_destroy


logger = logging.getLogger(__name__)


@runtime_checkable
class BeanPostProcessor(Protocol):
    """Hook into bean initialization.

    Called for every bean the factory creates, in registration order:
    - ``before_init``: after injection, before any ``after_init``
    - ``after_init``: last step before the bean is cached/returned

    Either may return a replacement (e.g. a wrapping proxy); returning ``None``
    keeps the current bean.
    """

    def before_init(self, bean: Any, bean_name: str) -> Any: ...

    def after_init(self, bean: Any, bean_name: str) -> Any: ...


@dataclass(frozen=True)
class _Hook:
    owner: type
    name: str
    func: Any
    static: bool

    @property
    def qualname(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}"


class LifecycleProcessor:
    """Runs ``@post_construct`` hooks after initialization and ``@pre_destroy`` hooks on destroy.

    Hooks are collected once per type over the MRO and validated lazily, the
    first time one would be invoked.
    """

    def __init__(self) -> None:
        self._post_construct_cache: dict[type, tuple[_Hook, ...]] = {}
        self._pre_destroy_cache: dict[type, tuple[_Hook, ...]] = {}
        self._lock = threading.Lock()

    def before_init(self, bean: Any, bean_name: str) -> Any:  # noqa: ARG002
        return bean

    def after_init(self, bean: Any, bean_name: str) -> Any:
        self.invoke_post_construct(bean, bean_name)
        return bean

    def invoke_post_construct(self, bean: Any, bean_name: str) -> None:
        for hook in self._post_construct_hooks(type(bean)):
            self._validate(hook, "post_construct")
            logger.debug("Invoking post-construct hook %s of bean '%s'", hook.qualname, bean_name)
            try:
                getattr(bean, hook.name)()
            except BeansError:
                raise
            except Exception as exc:
                msg = f"post-construct hook '{hook.qualname}' failed: {exc}"
                raise BeanCreationError(bean_name, msg) from exc

    def invoke_pre_destroy(self, bean: Any, bean_name: str) -> None:
        """Run stop hooks. Failures are logged and never propagate."""
        for hook in self._pre_destroy_hooks(type(bean)):
            try:
                self._validate(hook, "pre_destroy")
                logger.debug("Invoking pre-destroy hook %s of bean '%s'", hook.qualname, bean_name)
                getattr(bean, hook.name)()
            except Exception:
                logger.warning(
                    "Pre-destroy hook '%s' failed for bean '%s'", hook.qualname, bean_name, exc_info=True
                )

    def has_post_construct_methods(self, cls: type) -> bool:
        return bool(self._post_construct_hooks(cls))

    def has_pre_destroy_methods(self, cls: type) -> bool:
        return bool(self._pre_destroy_hooks(cls))

    def clear_cache(self) -> None:
        with self._lock:
            self._post_construct_cache.clear()
            self._pre_destroy_cache.clear()

    def _post_construct_hooks(self, cls: type) -> tuple[_Hook, ...]:
        with self._lock:
            hooks = self._post_construct_cache.get(cls)
            if hooks is None:
                hooks = self._post_construct_cache[cls] = _scan_hooks(cls, post_construct=True)
            return hooks

    def _pre_destroy_hooks(self, cls: type) -> tuple[_Hook, ...]:
        with self._lock:
            hooks = self._pre_destroy_cache.get(cls)
            if hooks is None:
                hooks = self._pre_destroy_cache[cls] = _scan_hooks(cls, post_construct=False)
            return hooks

    @staticmethod
    def _validate(hook: _Hook, kind: str) -> None:
        if hook.static:
            raise InvalidLifecycleMethodError(hook.qualname, f"@{kind} methods must not be static or class methods")

        params = list(inspect.signature(hook.func).parameters.values())[1:]
        if params:
            names = ", ".join(p.name for p in params)
            raise InvalidLifecycleMethodError(hook.qualname, f"@{kind} methods must not take parameters (got {names})")


def _scan_hooks(cls: type, *, post_construct: bool) -> tuple[_Hook, ...]:
    """Hooks declared anywhere in the MRO, most derived class first; overrides shadow their bases."""
    matches = is_post_construct if post_construct else is_pre_destroy
    seen: set[str] = set()
    hooks = []
    for klass in cls.__mro__:
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            if name in seen:
                continue
            seen.add(name)
            if not inspect.isfunction(getattr(attr, "__func__", attr)) or not matches(attr):
                continue
            static = isinstance(attr, (staticmethod, classmethod))
            hooks.append(_Hook(klass, name, getattr(attr, "__func__", attr), static))
    return tuple(hooks)
