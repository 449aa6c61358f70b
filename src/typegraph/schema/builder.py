"""
Schema synthesis.

Turns the declarations recorded in a ``MetadataRegistry`` into a
``graphql.GraphQLSchema``. Each step is a precondition for the next one:

1. flatten every type's extension chain
2. validate interface conformance
3. resolve every field and argument type
4. assemble the root query and mutation types from the resolver classes
5. create the graphql types, installing a type discriminator on every interface

Problems are collected along the way and raised together as a
``SchemaGenerationError``; there is no partially built schema.
"""

import copy
from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import partial
from typing import Any

from graphql import (
    GraphQLArgument,
    GraphQLEnumType,
    GraphQLError,
    GraphQLField,
    GraphQLInputField,
    GraphQLInputObjectType,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLResolveInfo,
    GraphQLSchema,
    GraphQLType,
    Undefined,
    assert_name,
    validate_schema,
)

from typegraph import log
from typegraph.config import BuildSchemaConfig
from typegraph.errors import (
    ProblemKind,
    SchemaGenerationError,
    SchemaProblem,
    TypeExpressionError,
    TypeGraphError,
    UnresolvedTypeError,
)
from typegraph.metadata.definitions import (
    ArgumentSetReference,
    ArgumentSpec,
    FieldDefinition,
    OperationKind,
    ResolverDefinition,
    TypeDefinition,
    TypeExpression,
    TypeKind,
    dereference,
)
from typegraph.metadata.registry import MetadataRegistry, get_metadata_registry
from typegraph.schema.conformance import InterfaceConformanceValidator
from typegraph.schema.discriminator import make_type_discriminator
from typegraph.schema.graphql_type import is_reserved_type_name
from typegraph.schema.inheritance import ArgumentSlot, InheritanceResolver, describe_target
from typegraph.schema.printer import emit_schema_file
from typegraph.schema.type_reference import BUILTIN_SCALARS, TypeReferenceResolver

_FATAL_KINDS = {ProblemKind.DECLARATION, ProblemKind.CYCLE, ProblemKind.UNRESOLVED_REFERENCE}

ROOT_TYPE_NAMES = {
    OperationKind.QUERY: "Query",
    OperationKind.MUTATION: "Mutation",
}


def build_instance(target: type, slots: Iterable[ArgumentSlot], values: Mapping[str, Any]) -> Any:
    """Create an instance of an input or args class without calling its constructor.

    Omitted values fall back to the slot default, or None.
    """
    instance = target.__new__(target)
    for slot in slots:
        if slot.name in values:
            value = values[slot.name]
        elif slot.default is not Undefined:
            value = copy.copy(slot.default)
        else:
            value = None
        attribute_name = getattr(slot, "attribute_name", slot.name)
        setattr(instance, attribute_name, value)
    return instance


def resolve_attribute(
    attribute_name: str, field_name: str, source: Any, info: GraphQLResolveInfo, /, **_: Any
) -> Any:
    if isinstance(source, Mapping):
        return source.get(attribute_name, source.get(field_name))
    return getattr(source, attribute_name, None)


class SchemaSynthesizer:
    """Builds one schema from the current state of a registry."""

    def __init__(self, registry: MetadataRegistry, config: BuildSchemaConfig) -> None:
        self.registry = registry
        self.config = config
        self.inheritance = InheritanceResolver(registry)
        self.type_resolver = TypeReferenceResolver(
            registry,
            scalars_map=config.scalars_map,
            nullable_by_default=config.nullable_by_default,
        )
        self.problems: list[SchemaProblem] = []
        self.named_types: dict[str, GraphQLNamedType] = {}

    def synthesize(self, resolvers: Sequence[type]) -> GraphQLSchema:
        """Build the schema served by ``resolvers``.

        Raises:
            SchemaGenerationError: With every problem found, if any step fails
        """
        log.info(f"Building schema from {len(self.registry)} registered type(s) and {len(resolvers)} resolver(s)")

        self.inheritance.resolve()
        self._check_type_names()
        self._merge(self.inheritance.problems)
        self._raise_if(lambda problem: problem.kind in _FATAL_KINDS)
        log.debug("Flattened all extension chains")

        self.problems.extend(InterfaceConformanceValidator(self.inheritance, self.type_resolver).validate())
        log.debug("Validated interface conformance")

        self._resolve_type_fields()
        roots = self._collect_root_fields(resolvers)
        self._merge(self.inheritance.problems)
        self._raise_if()
        log.debug("Resolved every field and argument type")

        schema = self._create_schema(roots)
        self._raise_if()

        log.info(f"Built schema with {len(self.named_types)} named type(s)")
        if self.config.emit_schema_file is not None:
            emit_schema_file(schema, self.config.emit_schema_file, sort=self.config.sort_schema)
        return schema

    def _merge(self, problems: Iterable[SchemaProblem]) -> None:
        for problem in problems:
            if problem not in self.problems:
                self.problems.append(problem)

    def _raise_if(self, predicate: Callable[[SchemaProblem], bool] | None = None) -> None:
        if any(predicate is None or predicate(problem) for problem in self.problems):
            for problem in self.problems:
                log.debug(f"Schema problem: {problem.message}")
            raise SchemaGenerationError(self.problems)

    def _check_type_names(self) -> None:
        owners: dict[str, str] = {}
        named: list[tuple[str, str]] = [
            (definition.name, str(definition))
            for definition in self.registry.types()
            if definition.kind != TypeKind.ARGS
        ]
        named += [(definition.name, f"enum '{definition.name}'") for definition in self.registry.enums()]

        for name, description in named:
            try:
                assert_name(name)
            except GraphQLError as e:
                self._add(ProblemKind.DECLARATION, f"Invalid name for {description}: {e.message}", type_name=name)
                continue
            if is_reserved_type_name(name):
                self._add(
                    ProblemKind.DECLARATION,
                    f"The name '{name}' of {description} is reserved by the schema builder",
                    type_name=name,
                )
            elif name in owners:
                self._add(
                    ProblemKind.DECLARATION,
                    f"Type name '{name}' is used by both {owners[name]} and {description}",
                    type_name=name,
                )
            else:
                owners[name] = description

    def _resolve_type_fields(self) -> None:
        for definition in self.registry.types():
            if definition.kind == TypeKind.ARGS:
                # args types are only emitted flattened into the fields using them
                for slot in self.inheritance.effective_fields(definition.target).values():
                    self._check_plain_field(definition, slot)
                    self._resolve(slot.type_expression, definition.name, slot.name, is_input=True)
                continue

            is_input = definition.kind == TypeKind.INPUT
            for field in self.inheritance.effective_fields(definition.target).values():
                if is_input:
                    self._check_plain_field(definition, field)
                self._resolve(field.type_expression, definition.name, field.name, is_input=is_input)
                self._resolve_arguments(field.arguments, f"{definition.name}.{field.name}")

    def _check_plain_field(self, definition: TypeDefinition, field: FieldDefinition) -> None:
        if field.handler is not None or field.arguments:
            self._add(
                ProblemKind.DECLARATION,
                f"Field '{field.name}' of the {definition.kind.label} '{definition.name}' "
                f"cannot have a resolver or arguments",
                type_name=definition.name,
                field_name=field.name,
            )

    def _resolve_arguments(self, arguments: tuple[ArgumentSpec, ...], owner: str) -> list[ArgumentSlot]:
        slots = self.inheritance.expand_arguments(arguments, owner)
        type_name, _, field_name = owner.rpartition(".")
        for slot in slots:
            self._resolve(slot.type_expression, type_name, f"{field_name}({slot.name})", is_input=True)
        return slots

    def _resolve(self, expression: TypeExpression | None, type_name: str, field_name: str, is_input: bool) -> None:
        if expression is None:
            self._add(
                ProblemKind.DECLARATION,
                f"Field '{field_name}' of type '{type_name}' has no declared type",
                type_name=type_name,
                field_name=field_name,
            )
            return
        try:
            self.type_resolver.resolve(expression, is_input=is_input)
        except UnresolvedTypeError as e:
            self._add(
                ProblemKind.UNRESOLVED_REFERENCE,
                f"Cannot resolve the type of field '{field_name}' on type '{type_name}': {e}",
                type_name=type_name,
                field_name=field_name,
            )
        except TypeExpressionError as e:
            self._add(
                ProblemKind.DECLARATION,
                f"Invalid type for field '{field_name}' on type '{type_name}': {e}",
                type_name=type_name,
                field_name=field_name,
            )

    def _collect_root_fields(self, resolvers: Sequence[type]) -> dict[OperationKind, list[tuple[ResolverDefinition, Any]]]:
        roots: dict[OperationKind, list[tuple[ResolverDefinition, Any]]] = {kind: [] for kind in OperationKind}
        seen: dict[tuple[OperationKind, str], str] = {}

        for resolver_class in resolvers:
            instance = resolver_class()
            definitions: dict[str, ResolverDefinition] = {}
            # methods declared on base resolver classes are inherited
            for base in reversed(resolver_class.__mro__):
                for definition in self.registry.resolvers_of(base):
                    definitions[definition.method_name] = definition

            for definition in definitions.values():
                root_name = ROOT_TYPE_NAMES[definition.operation]
                owner = f"{describe_target(resolver_class)}.{definition.method_name}"
                key = (definition.operation, definition.name)
                if key in seen:
                    self._add(
                        ProblemKind.DECLARATION,
                        f"{root_name} field '{definition.name}' is declared by both {seen[key]} and {owner}",
                        type_name=root_name,
                        field_name=definition.name,
                    )
                    continue
                seen[key] = owner
                self._resolve(definition.returns, root_name, definition.name, is_input=False)
                self._resolve_arguments(definition.arguments, f"{root_name}.{definition.name}")
                roots[definition.operation].append((definition, instance))

        if not roots[OperationKind.QUERY]:
            self._add(
                ProblemKind.DECLARATION,
                "Schema must contain at least one query, but none of the given resolvers declares one",
                type_name="Query",
            )
        return roots

    def _create_schema(self, roots: dict[OperationKind, list[tuple[ResolverDefinition, Any]]]) -> GraphQLSchema:
        self.named_types.update(BUILTIN_SCALARS)
        for enum_definition in self.registry.enums():
            self.named_types[enum_definition.name] = GraphQLEnumType(
                enum_definition.name,
                enum_definition.enum_class,
                names_as_values=None,
                description=enum_definition.description,
            )
        for definition in self.registry.types():
            graphql_type = self._create_named_type(definition)
            if graphql_type is not None:
                self.named_types[definition.name] = graphql_type
        self.named_types.update(self.type_resolver.custom_scalars)

        try:
            query_type = self._create_root_type(OperationKind.QUERY, roots[OperationKind.QUERY])
            mutation_type = self._create_root_type(OperationKind.MUTATION, roots[OperationKind.MUTATION])
            schema = GraphQLSchema(
                query=query_type,
                mutation=mutation_type,
                types=list(self.named_types.values()),
            )
        except (TypeError, GraphQLError) as e:
            self._add(ProblemKind.VALIDATION, f"Invalid schema: {e}")
            raise SchemaGenerationError(self.problems) from e

        for error in validate_schema(schema):
            self._add(ProblemKind.VALIDATION, error.message)
        return schema

    def _create_named_type(self, definition: TypeDefinition) -> GraphQLNamedType | None:
        if definition.kind == TypeKind.OBJECT:
            return GraphQLObjectType(
                definition.name,
                fields=partial(self._output_fields, definition),
                interfaces=partial(self._interfaces, definition),
                is_type_of=definition.is_type_of,
                description=definition.description,
            )
        if definition.kind == TypeKind.INTERFACE:
            return GraphQLInterfaceType(
                definition.name,
                fields=partial(self._output_fields, definition),
                interfaces=partial(self._interfaces, definition),
                resolve_type=make_type_discriminator(definition.name, definition.resolve_type),
                description=definition.description,
            )
        if definition.kind == TypeKind.INPUT:
            return GraphQLInputObjectType(
                definition.name,
                fields=partial(self._input_fields, definition),
                description=definition.description,
                out_type=partial(self._build_input_value, definition.target),
            )
        return None

    def _graphql_type(self, expression: TypeExpression | None, is_input: bool) -> GraphQLType:
        if expression is None:
            raise TypeGraphError("Cannot build a graphql type for a field without a declared type")
        reference = self.type_resolver.resolve(expression, is_input=is_input)
        return self.type_resolver.to_graphql_type(reference, self.named_types)

    def _interfaces(self, definition: TypeDefinition) -> list[GraphQLInterfaceType]:
        return [
            self.named_types[interface.name]  # type: ignore[misc]
            for interface in self.inheritance.interfaces_of(definition.target)
        ]

    def _output_fields(self, definition: TypeDefinition) -> dict[str, GraphQLField]:
        fields: dict[str, GraphQLField] = {}
        for name, field in self.inheritance.effective_fields(definition.target).items():
            slots = self.inheritance.expand_arguments(field.arguments, f"{definition.name}.{name}")
            if field.handler is not None:
                resolve = partial(self._call_field_handler, field)
            else:
                resolve = partial(resolve_attribute, field.attribute_name, field.name)
            fields[name] = GraphQLField(
                self._graphql_type(field.type_expression, is_input=False),
                args=self._graphql_arguments(slots),
                resolve=resolve,
                description=field.description,
                deprecation_reason=field.deprecation_reason,
            )
        return fields

    def _input_fields(self, definition: TypeDefinition) -> dict[str, GraphQLInputField]:
        return {
            name: GraphQLInputField(
                self._graphql_type(field.type_expression, is_input=True),
                default_value=field.default,
                description=field.description,
                deprecation_reason=field.deprecation_reason,
            )
            for name, field in self.inheritance.effective_fields(definition.target).items()
        }

    def _graphql_arguments(self, slots: list[ArgumentSlot]) -> dict[str, GraphQLArgument]:
        return {
            slot.name: GraphQLArgument(
                self._graphql_type(slot.type_expression, is_input=True),
                default_value=slot.default,
                description=slot.description,
            )
            for slot in slots
        }

    def _create_root_type(
        self, operation: OperationKind, definitions: list[tuple[ResolverDefinition, Any]]
    ) -> GraphQLObjectType | None:
        if not definitions:
            return None
        root_name = ROOT_TYPE_NAMES[operation]
        fields: dict[str, GraphQLField] = {}
        for definition, instance in definitions:
            slots = self.inheritance.expand_arguments(definition.arguments, f"{root_name}.{definition.name}")
            fields[definition.name] = GraphQLField(
                self._graphql_type(definition.returns, is_input=False),
                args=self._graphql_arguments(slots),
                resolve=partial(self._call_root_handler, definition, instance),
                description=definition.description,
                deprecation_reason=definition.deprecation_reason,
            )
        return GraphQLObjectType(root_name, fields)

    def _build_input_value(self, target: Any, values: dict[str, Any]) -> Any:
        return build_instance(target, self.inheritance.effective_fields(target).values(), values)

    def _handler_arguments(self, arguments: tuple[ArgumentSpec, ...], values: Mapping[str, Any]) -> list[Any]:
        """Positional handler arguments, in declaration order."""
        handler_arguments: list[Any] = []
        for spec in arguments:
            if isinstance(spec, ArgumentSetReference):
                target = dereference(spec.target)
                slots = self.inheritance.effective_fields(target).values()
                handler_arguments.append(build_instance(target, slots, values))
            elif spec.name in values:
                handler_arguments.append(values[spec.name])
            else:
                handler_arguments.append(None if spec.default is Undefined else spec.default)
        return handler_arguments

    def _call_root_handler(
        self,
        definition: ResolverDefinition,
        instance: Any,
        source: Any,
        info: GraphQLResolveInfo,
        /,
        **values: Any,
    ) -> Any:
        return definition.handler(instance, *self._handler_arguments(definition.arguments, values))

    def _call_field_handler(
        self, field: FieldDefinition, source: Any, info: GraphQLResolveInfo, /, **values: Any
    ) -> Any:
        if field.handler is None:
            raise TypeGraphError(f"Field '{field.name}' of '{describe_target(field.owner)}' has no resolver")
        return field.handler(source, *self._handler_arguments(field.arguments, values))

    def _add(self, kind: ProblemKind, message: str, **context: str | None) -> None:
        self._merge([SchemaProblem(kind=kind, message=message, **context)])


def build_schema(
    resolvers: Sequence[type],
    *,
    registry: MetadataRegistry | None = None,
    config: BuildSchemaConfig | None = None,
) -> GraphQLSchema:
    """Build a schema from the registered metadata and the given resolver classes.

    Args:
        resolvers: Resolver classes whose query and mutation methods make up the root types
        registry: Registry to read declarations from, the process-wide one by default
        config: Build options

    Returns:
        The built schema, ready to execute queries with graphql-core

    Raises:
        SchemaGenerationError: With the complete list of problems, if the metadata is inconsistent
    """
    synthesizer = SchemaSynthesizer(registry or get_metadata_registry(), config or BuildSchemaConfig())
    return synthesizer.synthesize(list(resolvers))
