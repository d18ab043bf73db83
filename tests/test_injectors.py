import unittest
from typing import Annotated, Optional
from unittest.mock import Mock

import pytest

from beanwire import (
    AmbiguousBeanError,
    Autowired,
    BeanDefinition,
    BeanRegistry,
    ConstructorInjector,
    DependencyInjectionError,
    FieldInjector,
    MethodInjector,
    NoSuchBeanDefinitionError,
    autowired,
)


class Repo: ...


class Cache: ...


class InjectorTestCase(unittest.TestCase):
    registry: BeanRegistry

    def setUp(self):
        self.registry = BeanRegistry()

    def add_singleton(self, name, instance):
        self.registry.register_definition(name, BeanDefinition(type(instance)).resolved(name))
        self.registry.register_singleton(name, instance)
        return instance


class TestConstructorInjector(InjectorTestCase):
    def test_injects_constructor_parameters_by_type(self):
        class Service:
            def __init__(self, repo: Repo, cache: Cache):
                self.repo = repo
                self.cache = cache

        repo = self.add_singleton("repo", Repo())
        cache = self.add_singleton("cache", Cache())

        service = ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        assert service.repo is repo
        assert service.cache is cache

    def test_calls_alternative_constructor(self):
        class Service:
            def __init__(self):
                self.repo = None

            @autowired
            @classmethod
            def create(cls, repo: Repo):
                service = cls()
                service.repo = repo
                return service

        repo = self.add_singleton("repo", Repo())

        service = ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        assert service.repo is repo

    def test_positional_only_parameters(self):
        class Service:
            def __init__(self, repo: Repo, /):
                self.repo = repo

        repo = self.add_singleton("repo", Repo())

        service = ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        assert service.repo is repo

    def test_missing_required_dependency(self):
        class Service:
            def __init__(self, repo: Repo):
                self.repo = repo

        with pytest.raises(DependencyInjectionError) as exc_info:
            ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        error = exc_info.value
        assert error.member.endswith("Service.__init__")
        assert error.parameter == "repo"
        assert error.parameter_index == 0
        assert error.declared_type is Repo
        assert isinstance(error.__cause__, NoSuchBeanDefinitionError)

    def test_ambiguous_dependency(self):
        class Service:
            def __init__(self, repo: Repo):
                self.repo = repo

        self.add_singleton("repo1", Repo())
        self.add_singleton("repo2", Repo())

        with pytest.raises(DependencyInjectionError) as exc_info:
            ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        cause = exc_info.value.__cause__
        assert isinstance(cause, AmbiguousBeanError)
        assert cause.candidates == ["repo1", "repo2"]

    def test_optional_and_default_parameters_fall_back(self):
        class Service:
            def __init__(self, repo: Optional[Repo], cache: Cache = "fallback"):
                self.repo = repo
                self.cache = cache

        service = ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

        assert service.repo is None
        assert service.cache == "fallback"

    def test_unannotated_required_parameter(self):
        class Service:
            def __init__(self, repo):
                self.repo = repo

        with pytest.raises(DependencyInjectionError, match="no type annotation"):
            ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

    def test_uninstantiated_dependency_is_created_through_bean_factory(self):
        class Service:
            def __init__(self, repo: Repo):
                self.repo = repo

        repo = Repo()
        self.registry.register_definition("repo", BeanDefinition(Repo).resolved("repo"))
        factory = Mock()
        factory.get.return_value = repo

        service = ConstructorInjector(self.registry, factory).create_instance(BeanDefinition(Service).resolved())

        factory.get.assert_called_once_with("repo")
        assert service.repo is repo

    def test_uninstantiated_dependency_without_bean_factory(self):
        class Service:
            def __init__(self, repo: Repo):
                self.repo = repo

        self.registry.register_definition("repo", BeanDefinition(Repo).resolved("repo"))

        with pytest.raises(DependencyInjectionError, match="not instantiated"):
            ConstructorInjector(self.registry).create_instance(BeanDefinition(Service).resolved())

    def test_static_helpers(self):
        class Plain: ...

        class Wired:
            @autowired
            def __init__(self, repo: Repo):
                self.repo = repo

        assert not ConstructorInjector.has_autowired_constructor(Plain)
        assert ConstructorInjector.has_autowired_constructor(Wired)
        assert not ConstructorInjector.has_autowired_constructor(None)

        assert not ConstructorInjector.requires_dependency_injection(ConstructorInjector.select_constructor(Plain))
        assert ConstructorInjector.requires_dependency_injection(ConstructorInjector.select_constructor(Wired))
        assert not ConstructorInjector.requires_dependency_injection(None)
        assert ConstructorInjector.preferred_constructor(None) is None


class TestFieldInjector(InjectorTestCase):
    def test_injects_annotated_fields(self):
        class Service:
            repo: Annotated[Repo, Autowired()]
            cache: Annotated[Optional[Cache], Autowired()]

        repo = self.add_singleton("repo", Repo())
        service = Service()

        FieldInjector(self.registry).inject_fields(service, BeanDefinition(Service).resolved())

        assert service.repo is repo
        assert not hasattr(service, "cache")

    def test_missing_required_field(self):
        class Service:
            repo: Annotated[Repo, Autowired()]

        with pytest.raises(DependencyInjectionError) as exc_info:
            FieldInjector(self.registry).inject_fields(Service(), BeanDefinition(Service).resolved())

        assert exc_info.value.parameter == "repo"
        assert exc_info.value.parameter_index is None

    def test_optional_field_keeps_class_default(self):
        class Service:
            cache: Annotated[Cache, Autowired(required=False)] = None

        service = Service()
        FieldInjector(self.registry).inject_fields(service, BeanDefinition(Service).resolved())

        assert service.cache is None

    def test_read_only_field(self):
        class Service:
            __slots__ = ()
            repo: Annotated[Repo, Autowired()]

        self.add_singleton("repo", Repo())

        with pytest.raises(DependencyInjectionError, match="Cannot set field"):
            FieldInjector(self.registry).inject_fields(Service(), BeanDefinition(Service).resolved())

    def test_invalid_arguments(self):
        injector = FieldInjector(self.registry)
        with pytest.raises(ValueError):
            injector.inject_fields(None, BeanDefinition(Repo))
        with pytest.raises(ValueError):
            injector.inject_fields(Repo(), None)

    def test_is_autowired_field(self):
        class Service:
            repo: Annotated[Repo, Autowired()]
            name: str

        assert FieldInjector.is_autowired_field(Service, "repo")
        assert not FieldInjector.is_autowired_field(Service, "name")


class TestMethodInjector(InjectorTestCase):
    def test_invokes_autowired_methods(self):
        class Service:
            @autowired
            def wire(self, repo: Repo, cache: Cache):
                self.repo = repo
                self.cache = cache

        repo = self.add_singleton("repo", Repo())
        cache = self.add_singleton("cache", Cache())
        service = Service()

        MethodInjector(self.registry).inject_methods(service, BeanDefinition(Service).resolved())

        assert service.repo is repo
        assert service.cache is cache

    def test_method_not_invoked_when_required_parameter_fails(self):
        calls = []

        class Service:
            @autowired
            def wire(self, cache: Optional[Cache], repo: Repo):
                calls.append((cache, repo))

        with pytest.raises(DependencyInjectionError) as exc_info:
            MethodInjector(self.registry).inject_methods(Service(), BeanDefinition(Service).resolved())

        assert exc_info.value.parameter_index == 1
        assert calls == []

    def test_optional_method_receives_none(self):
        class Service:
            @autowired(required=False)
            def set_cache(self, cache: Cache):
                self.cache = cache

        service = Service()
        MethodInjector(self.registry).inject_methods(service, BeanDefinition(Service).resolved())

        assert service.cache is None

    def test_is_autowired_method(self):
        class Service:
            @autowired
            def wire(self, repo: Repo): ...

            def other(self, repo: Repo): ...

        assert MethodInjector.is_autowired_method(Service.wire)
        assert not MethodInjector.is_autowired_method(Service.other)
        assert not MethodInjector.is_autowired_method(None)

    def test_is_setter_method(self):
        class Service:
            def set_repo(self, repo): ...

            def set_(self, value): ...

            def set_two(self, a, b): ...

            def get_repo(self): ...

        assert MethodInjector.is_setter_method(Service.set_repo)
        assert MethodInjector.is_setter_method(Service().set_repo)
        assert not MethodInjector.is_setter_method(Service.set_)
        assert not MethodInjector.is_setter_method(Service.set_two)
        assert not MethodInjector.is_setter_method(Service.get_repo)
        assert not MethodInjector.is_setter_method(None)
