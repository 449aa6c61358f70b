from enum import Enum
from typing import Any

import pytest

from tests.conftest import execute, field_type, introspect, type_signature
from typegraph import (
    ID,
    ProblemKind,
    SchemaGenerationError,
    arg,
    build_schema,
    field,
    object_type,
    query,
    register_enum_type,
)
from typegraph.metadata.registry import MetadataRegistry


class Course(Enum):
    STARTER = "starter"
    MAIN = "main"
    DESSERT = "dessert"


def test_root_fields_with_builtin_scalars(registry: MetadataRegistry) -> None:
    class GreetingResolver:
        @query(str)
        def hello(self) -> str:
            return "hi"

        @query(int)
        def answer(self) -> int:
            return 42

        @query(float)
        def ratio(self) -> float:
            return 0.5

        @query(bool)
        def ready(self) -> bool:
            return True

        @query(ID)
        def key(self) -> str:
            return "k1"

    schema = build_schema([GreetingResolver])
    result = execute(schema, "{ hello answer ratio ready key }")

    assert result.errors is None
    assert result.data == {"hello": "hi", "answer": 42, "ratio": 0.5, "ready": True, "key": "k1"}
    assert type_signature(field_type(introspect(schema, "Query"), "hello")) == "String!"


def test_enum_members_are_the_internal_values(registry: MetadataRegistry) -> None:
    register_enum_type(Course)

    class MenuResolver:
        @query(Course, arguments=[arg("course", Course, default=Course.MAIN)])
        def echo(self, course: Course) -> Course:
            assert isinstance(course, Course)
            return course

        @query([Course])
        def courses(self) -> list[Course]:
            return list(Course)

    schema = build_schema([MenuResolver])

    assert execute(schema, "{ echo courses }").data == {
        "echo": "MAIN",
        "courses": ["STARTER", "MAIN", "DESSERT"],
    }
    assert execute(schema, "{ echo(course: DESSERT) }").data == {"echo": "DESSERT"}
    assert execute(schema, "query ($c: Course!) { echo(course: $c) }", {"c": "STARTER"}).data == {
        "echo": "STARTER"
    }


def test_mutually_referencing_types_through_thunks(registry: MetadataRegistry) -> None:
    @object_type
    class Author:
        name = field(str)
        recipes = field([lambda: Recipe])

    @object_type
    class Recipe:
        title = field(str)
        author = field(lambda: Author)

    ada = Author()
    soup = Recipe()
    ada.name, ada.recipes = "Ada", [soup]
    soup.title, soup.author = "Soup", ada

    class RecipeResolver:
        @query(Recipe)
        def recipe(self) -> Any:
            return soup

    schema = build_schema([RecipeResolver])
    result = execute(schema, "{ recipe { title author { name recipes { title author { name } } } } }")

    assert result.errors is None
    assert result.data == {
        "recipe": {
            "title": "Soup",
            "author": {"name": "Ada", "recipes": [{"title": "Soup", "author": {"name": "Ada"}}]},
        }
    }


def test_mutually_referencing_types_through_string_annotations(registry: MetadataRegistry) -> None:
    @object_type
    class Author:
        name: str = field()
        recipes: "list[Recipe]" = field()

    @object_type
    class Recipe:
        title: str = field()
        author: "Author | None" = field()

    class RecipeResolver:
        @query([Author])
        def authors(self) -> list[Any]:
            return []

    schema = build_schema([RecipeResolver])

    assert type_signature(field_type(introspect(schema, "Author"), "recipes")) == "[Recipe!]!"
    assert type_signature(field_type(introspect(schema, "Recipe"), "author")) == "Author"


def test_cyclic_extension_fails_the_build(registry: MetadataRegistry) -> None:
    @object_type
    class Base:
        name = field(str)

    @object_type
    class Derived(Base):
        title = field(str)

    registry.register_extends(Base, Derived)

    class RecipeResolver:
        @query(Derived)
        def derived(self) -> Any:
            return Derived()

    with pytest.raises(SchemaGenerationError) as exc_info:
        build_schema([RecipeResolver])

    cycles = [problem for problem in exc_info.value.details if problem.kind == ProblemKind.CYCLE]
    assert len(cycles) == 1
    assert "Cyclic extension chain detected" in cycles[0].message
    assert "Base" in cycles[0].message and "Derived" in cycles[0].message
    assert "Cyclic" in str(exc_info.value)


def test_build_without_query_is_rejected(registry: MetadataRegistry) -> None:
    class EmptyResolver:
        pass

    with pytest.raises(SchemaGenerationError, match="at least one query"):
        build_schema([EmptyResolver])
