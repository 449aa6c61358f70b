import importlib
import importlib.util
import json
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, NoReturn

import rich_click as click
from graphql import (
    GraphQLEnumType,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
)
from pydantic import ValidationError
from rich.traceback import install

from typegraph import __version__, log
from typegraph.config import load_build_config
from typegraph.errors import SchemaGenerationError
from typegraph.metadata.registry import reset_metadata_registry
from typegraph.schema.builder import build_schema
from typegraph.schema.graphql_type import is_builtin_scalar_type, is_introspection_type
from typegraph.schema.printer import introspect_type_graph, print_type_graph


class ResolverLoadError(Exception):
    pass


class ResolverReferenceOption(click.Option):
    """Splits ``module:Class`` and ``path/to/file.py:Class`` references."""

    def process_value(self, ctx: click.Context, value: Any) -> list[tuple[str, str]] | None:
        value = super().process_value(ctx, value)
        if not value:
            return None
        references = []
        for reference in value:
            source, _, class_name = reference.rpartition(":")
            if not source or not class_name:
                raise click.BadParameter(
                    f"'{reference}' is not of the form 'module:Class' or 'file.py:Class'", ctx=ctx, param=self
                )
            references.append((source, class_name))
        return references


resolver_option = click.option(
    "--resolver",
    "-r",
    "resolvers",
    type=str,
    cls=ResolverReferenceOption,
    required=True,
    multiple=True,
    help="Resolver class as 'module:Class' or 'path/to/file.py:Class'. Can be specified multiple times.",
)


config_option = click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file containing build options",
)


optional_output_option = click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    required=False,
    help="Output file, standard output by default",
)


def _load_module(source: str, loaded: dict[str, ModuleType]) -> ModuleType:
    if source in loaded:
        return loaded[source]

    if source.endswith(".py"):
        path = Path(source)
        if not path.is_file():
            raise ResolverLoadError(f"Resolver file '{source}' does not exist")
        module_name = f"_typegraph_resolvers_{len(loaded)}_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ResolverLoadError(f"Cannot load resolver file '{source}'")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
    elif source in sys.modules:
        # the registry was cleared, so the declarations have to run again
        module = importlib.reload(sys.modules[source])
    else:
        try:
            module = importlib.import_module(source)
        except ModuleNotFoundError as e:
            raise ResolverLoadError(f"Cannot import resolver module '{source}': {e}") from e

    loaded[source] = module
    return module


def load_resolvers(references: list[tuple[str, str]]) -> list[type]:
    """Import the resolver classes, starting from an empty registry."""
    reset_metadata_registry()
    loaded: dict[str, ModuleType] = {}
    resolvers = []
    for source, class_name in references:
        module = _load_module(source, loaded)
        resolver = getattr(module, class_name, None)
        if not isinstance(resolver, type):
            raise ResolverLoadError(f"'{source}' does not define a resolver class named '{class_name}'")
        resolvers.append(resolver)
    log.debug(f"Loaded {len(resolvers)} resolver class(es)")
    return resolvers


def build_from_options(references: list[tuple[str, str]], config_path: Path | None) -> GraphQLSchema:
    config = load_build_config(config_path)
    return build_schema(load_resolvers(references), config=config)


def report_problems(error: SchemaGenerationError) -> None:
    log.error("Schema generation failed:")
    log.report_problems(error.details)
    log.error(f"Found {len(error.details)} problem(s). Please fix the declarations before building the schema.")


def _fail_on_known_errors(e: Exception) -> NoReturn:
    if isinstance(e, SchemaGenerationError):
        report_problems(e)
    elif isinstance(e, ValidationError):
        log.error(f"Invalid build configuration: {e}")
    else:
        log.error(f"{e}")
    sys.exit(1)


@click.group(context_settings={"auto_envvar_prefix": "typegraph"})
@click.option(
    "-l",
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="INFO",
    help="Log level",
    show_default=True,
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Log file",
)
@click.version_option(__version__)
def cli(log_level: str, log_file: Path | None) -> None:
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setFormatter(logging.Formatter("%(asctime)s:%(levelname)s:%(message)s"))
        log.addHandler(file_handler)

    log.setLevel(log_level.upper())
    if log_level.upper() == "DEBUG":
        _ = install(show_locals=True)


@cli.command
@resolver_option
@config_option
@optional_output_option
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["sdl", "introspection"], case_sensitive=False),
    default="sdl",
    help="Output format",
    show_default=True,
)
@click.option(
    "--sort",
    is_flag=True,
    default=False,
    help="Sort types and fields by name",
)
def emit(
    resolvers: list[tuple[str, str]],
    config: Path | None,
    output: Path | None,
    output_format: str,
    sort: bool,
) -> None:
    """Build the schema served by the resolver classes and print it."""
    try:
        schema = build_from_options(resolvers, config)
    except (SchemaGenerationError, ResolverLoadError, ValidationError, TypeError) as e:
        _fail_on_known_errors(e)

    if output_format.lower() == "introspection":
        result = json.dumps(introspect_type_graph(schema), indent=2)
    else:
        result = print_type_graph(schema, sort=sort)

    if output is None:
        click.echo(result)
        return
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result + "\n", encoding="utf-8")
    except OSError as e:
        log.error(f"File I/O error: {e}")
        sys.exit(1)
    log.success(f"Schema written to {output}")


@cli.command
@resolver_option
@config_option
def check(resolvers: list[tuple[str, str]], config: Path | None) -> None:
    """Build the schema and report every problem found in the declarations."""
    try:
        schema = build_from_options(resolvers, config)
    except (SchemaGenerationError, ResolverLoadError, ValidationError, TypeError) as e:
        _fail_on_known_errors(e)

    named_types = [name for name in schema.type_map if not is_introspection_type(name)]
    log.success(f"Schema is valid ({len(named_types)} named types)")


@cli.command
@resolver_option
@config_option
def stats(resolvers: list[tuple[str, str]], config: Path | None) -> None:
    """Count the types of the built schema by kind."""
    try:
        schema = build_from_options(resolvers, config)
    except (SchemaGenerationError, ResolverLoadError, ValidationError, TypeError) as e:
        _fail_on_known_errors(e)

    type_counts: dict[str, Any] = {
        "object": 0,
        "interface": 0,
        "input_object": 0,
        "enum": 0,
        "scalar": 0,
        "custom_scalars": [],
    }
    for name, named_type in schema.type_map.items():
        if is_introspection_type(name):
            continue
        if isinstance(named_type, GraphQLObjectType):
            type_counts["object"] += 1
        elif isinstance(named_type, GraphQLInterfaceType):
            type_counts["interface"] += 1
        elif isinstance(named_type, GraphQLInputObjectType):
            type_counts["input_object"] += 1
        elif isinstance(named_type, GraphQLEnumType):
            type_counts["enum"] += 1
        elif isinstance(named_type, GraphQLScalarType):
            type_counts["scalar"] += 1
            if not is_builtin_scalar_type(name):
                type_counts["custom_scalars"].append(name)

    log.rule("Schema Type Counts")
    log.print_dict(type_counts)


if __name__ == "__main__":
    cli()
