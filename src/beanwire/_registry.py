from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from ._errors import CircularDependencyError, DuplicateRegistrationError


if TYPE_CHECKING:
    from collections.abc import Iterator

    from ._definition import BeanDefinition


logger = logging.getLogger(__name__)


class BeanRegistry:
    """Definitions, singleton instances and the type index of one container.

    - name -> definition
    - name -> singleton instance (write-once)
    - type -> names satisfying it (declared type, every ancestor, declared capabilities)
    - name -> thread currently creating it, thread -> name it is waiting for

    Every map is guarded by a single re-entrant lock; read methods return copies.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, BeanDefinition] = {}
        self._singletons: dict[str, object] = {}
        self._types: dict[str, type] = {}
        self._names_by_type: dict[Any, dict[str, None]] = {}
        self._in_creation: dict[str, int] = {}
        self._waiting: dict[int, str] = {}
        self._lock = threading.RLock()
        self._creation_finished = threading.Condition(self._lock)

    # --- definitions ---------------------------------------------------------

    def register_definition(self, name: str, definition: BeanDefinition) -> None:
        if not name:
            msg = "Bean name must not be empty"
            raise ValueError(msg)
        if definition is None:
            msg = "Bean definition must not be None"
            raise ValueError(msg)

        with self._lock:
            if name in self._definitions:
                raise DuplicateRegistrationError(name)

            self._definitions[name] = definition
            self._types[name] = definition.bean_type
            for tp in definition.provided_types():
                self._names_by_type.setdefault(tp, {})[name] = None

    def get_definition(self, name: str) -> BeanDefinition | None:
        with self._lock:
            return self._definitions.get(name)

    def contains_definition(self, name: str) -> bool:
        with self._lock:
            return name in self._definitions

    def definition_names(self) -> list[str]:
        """Registered names, in registration order."""
        with self._lock:
            return list(self._definitions)

    def definition_count(self) -> int:
        with self._lock:
            return len(self._definitions)

    def get_type(self, name: str) -> type | None:
        with self._lock:
            return self._types.get(name)

    def get_names_for_type(self, tp: Any) -> list[str]:
        if tp is None:
            return []
        with self._lock:
            try:
                return list(self._names_by_type.get(tp, ()))
            except TypeError:
                # unhashable annotation, nothing can be registered under it
                return []

    def remove_definition(self, name: str) -> None:
        with self._lock:
            definition = self._definitions.pop(name, None)
            if definition is None:
                return
            self._types.pop(name, None)
            for tp in definition.provided_types():
                names = self._names_by_type.get(tp)
                if names is None:
                    continue
                names.pop(name, None)
                if not names:
                    del self._names_by_type[tp]
            self._in_creation.pop(name, None)
            self._creation_finished.notify_all()

    # --- singletons ----------------------------------------------------------

    def register_singleton(self, name: str, instance: object) -> None:
        if not name:
            msg = "Bean name must not be empty"
            raise ValueError(msg)
        if instance is None:
            msg = f"Singleton instance for '{name}' must not be None"
            raise ValueError(msg)

        with self._lock:
            if name in self._singletons:
                raise DuplicateRegistrationError(name, "singleton")
            self._singletons[name] = instance

    def get_singleton(self, name: str) -> object | None:
        with self._lock:
            return self._singletons.get(name)

    def contains_singleton(self, name: str) -> bool:
        with self._lock:
            return name in self._singletons

    def singleton_names(self) -> list[str]:
        with self._lock:
            return list(self._singletons)

    def remove_singleton(self, name: str) -> object | None:
        with self._lock:
            return self._singletons.pop(name, None)

    # --- creation guard ------------------------------------------------------

    def is_currently_in_creation(self, name: str) -> bool:
        with self._lock:
            return name in self._in_creation

    def before_creation(self, name: str, *, wait: bool = False, timeout: float | None = None) -> None:
        """Mark ``name`` as being created by the calling thread.

        With ``wait``, block while another thread holds the marker, up to
        ``timeout`` seconds.

        Raises:
            CircularDependencyError: if the name is already being created and
                ``wait`` is off, if the wait timed out, or if the thread holding
                the marker is itself (transitively) waiting on the calling thread.

        """
        me = threading.get_ident()
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._lock:
            while name in self._in_creation:
                if not wait:
                    msg = f"Bean '{name}' is currently in creation"
                    raise CircularDependencyError(msg, bean_name=name)

                chain = self._wait_chain(name, me)
                if chain is not None:
                    msg = f"Bean '{name}' is being created by a thread that is waiting on this one"
                    raise CircularDependencyError(msg, bean_name=name, path=chain)

                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    msg = f"Timed out waiting for bean '{name}' to be created by another thread"
                    raise CircularDependencyError(msg, bean_name=name)

                self._waiting[me] = name
                try:
                    self._creation_finished.wait(remaining)
                finally:
                    self._waiting.pop(me, None)

            self._in_creation[name] = me

    def _wait_chain(self, name: str, me: int) -> list[str] | None:
        """Names along the wait-for chain starting at ``name``, if it leads back to thread ``me``."""
        chain = [name]
        owner = self._in_creation.get(name)
        seen: set[int] = set()
        while owner is not None and owner not in seen:
            if owner == me:
                return [*chain, name]
            seen.add(owner)
            waited = self._waiting.get(owner)
            if waited is None:
                return None
            chain.append(waited)
            owner = self._in_creation.get(waited)
        return None

    def after_creation(self, name: str) -> None:
        with self._lock:
            self._in_creation.pop(name, None)
            self._creation_finished.notify_all()

    def creating_thread(self, name: str) -> int | None:
        with self._lock:
            return self._in_creation.get(name)

    def waiting_for(self, thread_id: int) -> str | None:
        """Name the given thread is blocked on in :meth:`before_creation`, if any."""
        with self._lock:
            return self._waiting.get(thread_id)

    @contextmanager
    def creating(self, name: str, *, wait: bool = False, timeout: float | None = None) -> Iterator[None]:
        """Hold the creation marker for ``name`` for the duration of the block."""
        self.before_creation(name, wait=wait, timeout=timeout)
        try:
            yield
        finally:
            self.after_creation(name)

    # --- teardown ------------------------------------------------------------

    def clear(self) -> None:
        with self._lock:
            self._singletons.clear()
            self._definitions.clear()
            self._types.clear()
            self._names_by_type.clear()
            self._in_creation.clear()
            self._creation_finished.notify_all()
        logger.debug("Bean registry cleared")
