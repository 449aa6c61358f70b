from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
from ariadne import gql
from faker import Faker
from graphql import ExecutionResult, GraphQLSchema, graphql_sync, introspection_from_schema
from hypothesis import strategies as st
from hypothesis.strategies import composite

from typegraph.metadata.registry import MetadataRegistry, get_metadata_registry

TESTS_DATA = Path(__file__).parent / "data"
RECIPES_APP = TESTS_DATA / "recipes_app.py"
BROKEN_APP = TESTS_DATA / "broken_app.py"


@pytest.fixture(autouse=True)
def registry() -> Iterator[MetadataRegistry]:
    """Every test starts and ends with an empty process-wide registry."""
    registry = get_metadata_registry()
    registry.clear()
    yield registry
    registry.clear()


def execute(schema: GraphQLSchema, query: str, variables: dict[str, Any] | None = None) -> ExecutionResult:
    """Validate a query document and run it against a built schema."""
    return graphql_sync(schema, gql(query), variable_values=variables)


def introspect(schema: GraphQLSchema, type_name: str) -> dict[str, Any]:
    """Introspection result of a single named type."""
    types = introspection_from_schema(schema)["__schema"]["types"]
    return next(t for t in types if t["name"] == type_name)


def field_names(type_info: dict[str, Any]) -> list[str]:
    return [f["name"] for f in type_info.get("fields") or type_info.get("inputFields") or []]


def inner_type_name(type_ref: dict[str, Any]) -> str:
    """Named type at the bottom of a possibly wrapped introspection type reference."""
    while type_ref.get("ofType"):
        type_ref = type_ref["ofType"]
    return type_ref["name"]


def field_type(type_info: dict[str, Any], name: str) -> dict[str, Any]:
    members = type_info.get("fields") or type_info.get("inputFields") or []
    return next(f for f in members if f["name"] == name)["type"]


def type_signature(type_ref: dict[str, Any]) -> str:
    """Render an introspection type reference in SDL notation, e.g. ``[String]!``."""
    kind = type_ref["kind"]
    if kind == "NON_NULL":
        return f"{type_signature(type_ref['ofType'])}!"
    if kind == "LIST":
        return f"[{type_signature(type_ref['ofType'])}]"
    return type_ref["name"]


@composite
def type_names_strategy(
    draw: Callable[[st.SearchStrategy[Any]], Any],
    min_size: int = 2,
    max_size: int = 6,
) -> list[str]:
    """Distinct, valid type names generated from random words."""
    faker = Faker()
    faker.seed_instance(draw(st.integers(min_value=0, max_value=10_000)))
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    names: list[str] = []
    while len(names) < size:
        name = "".join(word.capitalize() for word in faker.words(2) if word.isalpha())
        if name and name not in names:
            names.append(name)
    return names
