import unittest
from typing import Annotated, Optional, Protocol

import pytest

from beanwire import (
    AmbiguousConstructorError,
    Autowired,
    BeanDefinition,
    Scope,
    autowired,
    constructor,
    generate_bean_name,
)
from beanwire._definition import (
    scan_autowired_fields,
    scan_autowired_methods,
    scan_constructors,
    select_constructor,
    split_annotation,
)


class Repo: ...


class Cache: ...


class Closeable(Protocol):
    def close(self) -> None: ...


def test_generate_bean_name_lowercases_first_letter():
    assert generate_bean_name(Repo) == "repo"

    class UserService: ...

    assert generate_bean_name(UserService) == "userService"


def test_scope_from_value():
    assert Scope.from_value("singleton") is Scope.SINGLETON
    assert Scope.from_value("prototype") is Scope.PROTOTYPE
    with pytest.raises(ValueError, match="Unknown scope"):
        Scope.from_value("request")


def test_split_annotation_handles_annotated_and_optional():
    assert split_annotation(Repo) == (Repo, None, False)
    assert split_annotation(Optional[Repo]) == (Repo, None, True)
    assert split_annotation(Annotated[Repo, Autowired()]) == (Repo, Autowired(), False)
    assert split_annotation(Annotated[Optional[Repo], Autowired(required=False)]) == (
        Repo,
        Autowired(required=False),
        True,
    )
    assert split_annotation(Optional[Annotated[Repo, Autowired()]]) == (Repo, Autowired(), True)


class TestBeanDefinition(unittest.TestCase):
    def test_defaults(self):
        definition = BeanDefinition(Repo)

        assert definition.scope is Scope.SINGLETON
        assert definition.is_singleton
        assert not definition.is_prototype
        assert not definition.lazy_init
        assert not definition.is_resolved

    def test_resolved_fills_metadata_and_name_once(self):
        definition = BeanDefinition(Repo, scope=Scope.PROTOTYPE).resolved("myRepo")

        assert definition.is_resolved
        assert definition.name == "myRepo"
        assert definition.scope is Scope.PROTOTYPE
        assert definition.constructor is not None
        assert definition.constructor.is_init
        assert definition.fields == ()
        assert definition.methods == ()
        assert definition.resolved("myRepo") is definition
        assert definition.resolved() is definition

    def test_registration_key_replaces_explicit_name(self):
        definition = BeanDefinition(Repo, name="explicit")

        assert definition.resolved().name == "explicit"
        renamed = definition.resolved("registered")
        assert renamed.name == "registered"
        assert renamed.resolved("registered") is renamed

    def test_provided_types_cover_ancestry_and_capabilities(self):
        class Base: ...

        class Impl(Base): ...

        types = BeanDefinition(Impl, provides=(Closeable,)).provided_types()

        assert types[:2] == [Impl, Base]
        assert Closeable in types
        assert object not in types
        assert Protocol not in types

    def test_dependency_types_are_ordered_and_deduplicated(self):
        class Service:
            field_repo: Annotated[Repo, Autowired()]

            def __init__(self, repo: Repo, cache: Cache):
                self.repo = repo
                self.cache = cache

            @autowired
            def set_cache(self, cache: Cache) -> None: ...

        assert BeanDefinition(Service).dependency_types() == [Repo, Cache]

    def test_repr_mentions_type_and_scope(self):
        text = repr(BeanDefinition(Repo, name="repo").resolved())
        assert "Repo" in text
        assert "singleton" in text


class TestConstructorSelection(unittest.TestCase):
    def test_autowired_constructor_wins(self):
        class Service:
            def __init__(self):
                pass

            @autowired
            @classmethod
            def create(cls, repo: Repo):
                return cls()

        selected = select_constructor(Service)
        assert selected.name == "create"
        assert selected.autowired
        assert [d.declared_type for d in selected.dependencies] == [Repo]

    def test_parameterless_candidate_preferred_without_marker(self):
        class Service:
            def __init__(self, repo: Repo):
                self.repo = repo

            @constructor
            @classmethod
            def empty(cls):
                return cls(Repo())

        assert select_constructor(Service).name == "empty"

    def test_fewest_parameters_without_marker(self):
        class Service:
            def __init__(self, repo: Repo, cache: Cache):
                pass

            @constructor
            @classmethod
            def with_repo(cls, repo: Repo):
                return cls(repo, Cache())

        selected = select_constructor(Service)
        assert selected.name == "with_repo"
        assert selected.parameter_count == 1

    def test_first_declared_wins_ties(self):
        class Service:
            def __init__(self, repo: Repo):
                pass

            @constructor
            @classmethod
            def from_cache(cls, cache: Cache):
                return cls(Repo())

        assert select_constructor(Service).is_init

    def test_two_autowired_constructors_are_ambiguous(self):
        class Service:
            @autowired
            def __init__(self, repo: Repo):
                pass

            @autowired
            @classmethod
            def create(cls, cache: Cache):
                return cls(Repo())

        with pytest.raises(AmbiguousConstructorError) as exc_info:
            select_constructor(Service)
        assert exc_info.value.candidates == ["__init__", "create"]

        # resolution defers the error to creation time
        assert BeanDefinition(Service).resolved().constructor is None

    def test_inherited_init_is_listed_first(self):
        class Base:
            def __init__(self, repo: Repo):
                self.repo = repo

        class Child(Base):
            @constructor
            @classmethod
            def build(cls, repo: Repo):
                return cls(repo)

        assert [c.name for c in scan_constructors(Child)] == ["__init__", "build"]

    def test_default_object_init_has_no_parameters(self):
        (candidate,) = scan_constructors(Repo)
        assert candidate.is_init
        assert candidate.parameter_count == 0

    def test_variadic_parameters_are_ignored(self):
        class Service:
            def __init__(self, repo: Repo, *args, **kwargs):
                pass

        (candidate,) = scan_constructors(Service)
        assert [d.parameter_name for d in candidate.dependencies] == ["repo"]

    def test_defaults_and_optionals_are_not_required(self):
        class Service:
            def __init__(self, repo: Repo, cache: Optional[Cache], name: str = "svc"):
                pass

        deps = {d.parameter_name: d for d in scan_constructors(Service)[0].dependencies}
        assert deps["repo"].required
        assert not deps["cache"].required
        assert not deps["name"].required
        assert deps["name"].has_default
        assert deps["name"].default == "svc"


class TestMemberScan(unittest.TestCase):
    def test_scan_autowired_fields(self):
        class Service:
            repo: Annotated[Repo, Autowired()]
            cache: Annotated[Cache, Autowired(required=False)]
            maybe: Annotated[Optional[Cache], Autowired()]
            plain: str = "not injected"

        fields = {f.name: f.dependency for f in scan_autowired_fields(Service)}

        assert set(fields) == {"repo", "cache", "maybe"}
        assert fields["repo"].declared_type is Repo
        assert fields["repo"].required
        assert not fields["cache"].required
        assert not fields["maybe"].required

    def test_scan_autowired_fields_includes_base_classes(self):
        class Base:
            repo: Annotated[Repo, Autowired()]

        class Child(Base):
            cache: Annotated[Cache, Autowired()]

        assert {f.name for f in scan_autowired_fields(Child)} == {"repo", "cache"}

    def test_scan_autowired_methods(self):
        class Service:
            @autowired
            def set_repo(self, repo: Repo) -> None: ...

            @autowired(required=False)
            def set_cache(self, cache: Cache) -> None: ...

            def set_other(self, repo: Repo) -> None: ...

        methods = {m.name: m for m in scan_autowired_methods(Service)}

        assert set(methods) == {"set_repo", "set_cache"}
        assert methods["set_repo"].required
        assert not methods["set_cache"].required
        assert not methods["set_cache"].dependencies[0].required

    def test_overriding_method_without_marker_shadows_base(self):
        class Base:
            @autowired
            def set_repo(self, repo: Repo) -> None: ...

        class Child(Base):
            def set_repo(self, repo: Repo) -> None: ...

        assert scan_autowired_methods(Base)
        assert scan_autowired_methods(Child) == ()
