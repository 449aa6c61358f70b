from pathlib import Path

from graphql import GraphQLSchema, introspection_from_schema, lexicographic_sort_schema, print_schema

from typegraph import log


def print_type_graph(schema: GraphQLSchema, sort: bool = False) -> str:
    """Print a built schema as SDL, optionally with types and fields sorted by name."""
    if sort:
        schema = lexicographic_sort_schema(schema)
    return print_schema(schema)


def introspect_type_graph(schema: GraphQLSchema) -> dict:
    """Introspection result of a built schema, as returned by an introspection query."""
    return dict(introspection_from_schema(schema))


def emit_schema_file(schema: GraphQLSchema, path: Path, sort: bool = False) -> Path:
    """Write the SDL of a built schema to ``path``, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(print_type_graph(schema, sort) + "\n", encoding="utf-8")
    log.info(f"Schema written to {path}")
    return path
