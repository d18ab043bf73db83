from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def _type_name(tp: object) -> str:
    return getattr(tp, "__qualname__", None) or getattr(tp, "__name__", None) or repr(tp)


class BeansError(RuntimeError):
    """Base class for every error raised by the container."""


class NoSuchBeanDefinitionError(BeansError, LookupError):
    def __init__(self, bean_name: str | None = None, bean_type: type | None = None, msg: str | None = None) -> None:
        self.bean_name = bean_name
        self.bean_type = bean_type
        if msg is None:
            if bean_name is not None:
                msg = f"No bean named '{bean_name}' is defined"
            else:
                msg = f"No qualifying bean of type '{_type_name(bean_type)}' is defined"
        super().__init__(msg)


class AmbiguousBeanError(BeansError, LookupError):
    """More than one bean satisfies a lookup by type."""

    def __init__(self, bean_type: type | None, candidates: Iterable[str]) -> None:
        self.bean_type = bean_type
        self.candidates = sorted(candidates)
        msg = (
            f"Expected a single bean of type '{_type_name(bean_type)}' "
            f"but found {len(self.candidates)}: {', '.join(self.candidates)}"
        )
        super().__init__(msg)


class DuplicateRegistrationError(BeansError):
    def __init__(self, bean_name: str, what: str = "bean definition") -> None:
        self.bean_name = bean_name
        super().__init__(f"A {what} named '{bean_name}' is already registered")


class DependencyInjectionError(BeansError):
    """A constructor, field or method dependency could not be resolved.

    ``member`` names the constructor/field/method being injected (``Repo.__init__``),
    ``parameter`` the parameter or field name and ``parameter_index`` its
    position (``None`` for fields).
    """

    def __init__(
        self,
        msg: str,
        *,
        member: str | None = None,
        parameter: str | None = None,
        parameter_index: int | None = None,
        declared_type: object = None,
    ) -> None:
        self.member = member
        self.parameter = parameter
        self.parameter_index = parameter_index
        self.declared_type = declared_type
        super().__init__(msg)


class AmbiguousConstructorError(DependencyInjectionError):
    def __init__(self, bean_type: type, candidates: Sequence[str]) -> None:
        self.candidates = list(candidates)
        msg = (
            f"Class '{_type_name(bean_type)}' marks {len(self.candidates)} constructors with "
            f"@autowired ({', '.join(self.candidates)}); only one is allowed"
        )
        super().__init__(msg, member=_type_name(bean_type))


class InvalidLifecycleMethodError(BeansError, TypeError):
    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        super().__init__(f"Invalid lifecycle method '{method}': {reason}")


class CircularDependencyError(BeansError):
    """A dependency cycle was found.

    Raised either by the static detector (``path`` is the full cycle with its
    first element repeated at the end) or by the runtime creation guard
    (``path`` holds the in-thread creation chain that led back to ``bean_name``).
    """

    def __init__(
        self,
        msg: str,
        *,
        bean_name: str | None = None,
        path: Sequence[str] | None = None,
        cycles: Sequence[Sequence[str]] | None = None,
    ) -> None:
        self.bean_name = bean_name
        self.path = list(path or [])
        self.cycles = [list(c) for c in cycles] if cycles else ([self.path] if self.path else [])
        self._base_msg = msg
        super().__init__(msg)

    @property
    def formatted_path(self) -> str:
        return " -> ".join(self.path)

    def __str__(self) -> str:
        if self.path:
            return f"{self._base_msg} (cycle: {self.formatted_path})"
        return self._base_msg


class BeanCreationError(BeansError):
    def __init__(self, bean_name: str, msg: str) -> None:
        self.bean_name = bean_name
        super().__init__(f"Error creating bean '{bean_name}': {msg}")


class BeanNotOfRequiredTypeError(BeansError, TypeError):
    def __init__(self, bean_name: str, required_type: type, actual_type: type) -> None:
        self.bean_name = bean_name
        self.required_type = required_type
        self.actual_type = actual_type
        msg = (
            f"Bean '{bean_name}' is expected to be of type '{_type_name(required_type)}' "
            f"but was actually of type '{_type_name(actual_type)}'"
        )
        super().__init__(msg)
