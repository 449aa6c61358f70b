"""Resolution of declared type expressions into schema type references."""

import types
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, ForwardRef, Union, get_args, get_origin

from graphql import (
    GraphQLBoolean,
    GraphQLFloat,
    GraphQLID,
    GraphQLInt,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLScalarType,
    GraphQLString,
    GraphQLType,
)

from typegraph.errors import TypeExpressionError, UnresolvedTypeError
from typegraph.metadata.definitions import (
    NULLABLE_ITEMS,
    NULLABLE_ITEMS_AND_LIST,
    AnnotationReference,
    NullableOption,
    TypeExpression,
    TypeKind,
    dereference,
    is_thunk,
)
from typegraph.metadata.registry import MetadataRegistry

DEFAULT_SCALARS_MAP: dict[Any, GraphQLScalarType] = {
    str: GraphQLString,
    int: GraphQLInt,
    float: GraphQLFloat,
    bool: GraphQLBoolean,
}

BUILTIN_SCALARS: dict[str, GraphQLScalarType] = {
    scalar.name: scalar for scalar in (GraphQLString, GraphQLInt, GraphQLFloat, GraphQLBoolean, GraphQLID)
}

_OUTPUT_KINDS = {TypeKind.OBJECT, TypeKind.INTERFACE}
_INPUT_KINDS = {TypeKind.INPUT}

_LIST_ORIGINS = {list, Sequence, Iterable}

# annotations written as strings, e.g. under "from __future__ import annotations"
_PYTHON_TYPE_NAMES: dict[str, Any] = {"str": str, "int": int, "float": float, "bool": bool}
_STRING_LIST_PREFIXES = ("list[", "List[", "Sequence[", "Iterable[")


@dataclass(frozen=True)
class ResolvedTypeRef:
    """A fully resolved type signature.

    Args:
        type_name: Name of the innermost named type
        nullability: One flag per level, outermost first; the last one belongs to the named type
    """

    type_name: str
    nullability: tuple[bool, ...]

    @property
    def list_depth(self) -> int:
        return len(self.nullability) - 1

    def __str__(self) -> str:
        rendered = self.type_name if self.nullability[-1] else f"{self.type_name}!"
        for nullable in reversed(self.nullability[:-1]):
            rendered = f"[{rendered}]" if nullable else f"[{rendered}]!"
        return rendered


def expand_nullability(option: NullableOption, list_depth: int, nullable_by_default: bool) -> tuple[bool, ...]:
    """Turn a ``nullable`` option into one flag per level, outermost first.

    Raises:
        TypeExpressionError: If the option does not fit the list depth of the type
    """
    levels = list_depth + 1
    if option is None:
        option = nullable_by_default

    if option is True:
        return (True,) + (False,) * list_depth
    if option is False:
        return (False,) * levels
    if option in (NULLABLE_ITEMS, NULLABLE_ITEMS_AND_LIST):
        if list_depth == 0:
            raise TypeExpressionError(f"Nullable option '{option}' can only be used with list types")
        return (option == NULLABLE_ITEMS_AND_LIST,) + (True,) * list_depth
    if isinstance(option, tuple):
        if len(option) != levels:
            raise TypeExpressionError(
                f"Nullable option {option} has {len(option)} level(s) but the type has {levels}"
            )
        return option
    raise TypeExpressionError(f"Invalid nullable option: {option!r}")


def _strip_optional(annotation: Any) -> tuple[Any, bool]:
    if get_origin(annotation) in (Union, types.UnionType):
        members = [member for member in get_args(annotation) if member is not type(None)]
        if len(members) == 1 and len(members) < len(get_args(annotation)):
            return members[0], True
    return annotation, False


def split_annotation(annotation: Any) -> tuple[Any, tuple[bool, ...] | None]:
    """Translate a Python type annotation into a declared type and its nullability.

    ``list[X]`` (or any sequence) becomes the list literal ``[X]`` and
    ``X | None`` marks that level as nullable. The nullability is None when no
    level is optional, so the configured default applies.

    Raises:
        TypeExpressionError: If the annotation is a union of several types or a bare list
    """
    levels: list[bool] = []
    current = annotation
    while True:
        current, nullable = _strip_optional(current)
        levels.append(nullable)
        if get_origin(current) in _LIST_ORIGINS:
            items = get_args(current)
            if len(items) != 1:
                raise TypeExpressionError(f"Cannot infer the item type of '{annotation}'")
            current = items[0]
            continue
        if get_origin(current) in (Union, types.UnionType):
            raise TypeExpressionError(f"Union annotations are not supported: '{annotation}'")
        break

    if isinstance(current, ForwardRef):
        current = current.__forward_arg__
    return _wrap_levels(current, levels)


def _wrap_levels(current: Any, levels: list[bool]) -> tuple[Any, tuple[bool, ...] | None]:
    declared: Any = current
    for _ in levels[1:]:
        declared = [declared]
    return declared, (tuple(levels) if any(levels) else None)


def _split_union(annotation: str) -> list[str]:
    members: list[str] = []
    depth = start = 0
    for index, char in enumerate(annotation):
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        elif char == "|" and depth == 0:
            members.append(annotation[start:index].strip())
            start = index + 1
    members.append(annotation[start:].strip())
    return members


def split_string_annotation(annotation: str) -> tuple[Any, tuple[bool, ...] | None]:
    """Same as ``split_annotation`` for annotations that could not be evaluated.

    Understands ``Optional[X]``, ``X | None`` and ``list[X]``; anything else is
    taken as the name of a schema type.
    """
    levels: list[bool] = []
    current = annotation.strip().strip("\"'")
    while True:
        if current.startswith("Optional[") and current.endswith("]"):
            current, nullable = current[len("Optional[") : -1].strip(), True
        else:
            members = _split_union(current)
            named = [member for member in members if member != "None"]
            if len(named) != 1:
                raise TypeExpressionError(f"Union annotations are not supported: '{annotation}'")
            current, nullable = named[0], len(named) < len(members)
        levels.append(nullable)
        prefix = next((prefix for prefix in _STRING_LIST_PREFIXES if current.startswith(prefix)), None)
        if prefix is None or not current.endswith("]"):
            break
        current = current[len(prefix) : -1].strip()

    return _wrap_levels(_PYTHON_TYPE_NAMES.get(current, current), levels)


class TypeReferenceResolver:
    """Resolves type expressions against a registry.

    Resolution is memoized per expression, so repeated lookups during one
    schema build are cheap and always agree with each other.
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        scalars_map: Mapping[Any, GraphQLScalarType] | None = None,
        nullable_by_default: bool = False,
    ) -> None:
        self.registry = registry
        self.scalars_map = {**DEFAULT_SCALARS_MAP, **(scalars_map or {})}
        self.nullable_by_default = nullable_by_default
        self.custom_scalars: dict[str, GraphQLScalarType] = {}
        self._cache: dict[tuple[int, bool], ResolvedTypeRef] = {}
        # expressions are kept alive so their ids stay unique while cached
        self._seen: list[TypeExpression] = []

    def resolve(self, expression: TypeExpression, is_input: bool = False) -> ResolvedTypeRef:
        """Resolve a type expression.

        Args:
            expression: The declared type expression
            is_input: Whether the type is used for input (arguments and input fields)

        Returns:
            The resolved type reference

        Raises:
            UnresolvedTypeError: If the named type cannot be found or has the wrong category
            TypeExpressionError: If the expression is malformed
        """
        key = (id(expression), is_input)
        if key in self._cache:
            return self._cache[key]

        declared, nullable = expression.declared, expression.nullable
        if isinstance(declared, AnnotationReference):
            declared = declared.resolve()
            if isinstance(declared, str):
                declared, inferred = split_string_annotation(declared)
                if nullable is None:
                    nullable = inferred
        if get_origin(declared) is not None:
            declared, inferred = split_annotation(declared)
            if nullable is None:
                nullable = inferred

        target = self._unwrap(declared)
        list_depth = 0
        while isinstance(target, list):
            if len(target) != 1:
                raise TypeExpressionError(f"List type expressions must hold exactly one item, got {target!r}")
            target = self._unwrap(target[0])
            list_depth += 1

        resolved = ResolvedTypeRef(
            type_name=self.named_type_name(target, is_input),
            nullability=expand_nullability(nullable, list_depth, self.nullable_by_default),
        )
        self._cache[key] = resolved
        self._seen.append(expression)
        return resolved

    def _unwrap(self, value: Any) -> Any:
        value = dereference(value)
        while is_thunk(value):
            value = dereference(value())
        return value

    def named_type_name(self, target: Any, is_input: bool = False) -> str:
        if isinstance(target, GraphQLScalarType):
            if target.name not in BUILTIN_SCALARS:
                self.custom_scalars[target.name] = target
            return target.name
        if isinstance(target, GraphQLNamedType):
            raise UnresolvedTypeError(
                target.name, f"Only scalar types can be referenced directly, got '{target.name}'"
            )
        if isinstance(target, str):
            return self._name_from_string(target, is_input)

        try:
            scalar = self.scalars_map.get(target)
        except TypeError:
            scalar = None
        if scalar is not None:
            return self.named_type_name(scalar, is_input)

        enum_definition = self.registry.get_enum(target)
        if enum_definition is not None:
            return enum_definition.name

        definition = self.registry.get_type(target)
        if definition is None:
            if isinstance(target, type) and issubclass(target, Enum):
                raise UnresolvedTypeError(
                    target.__name__, f"Enum '{target.__name__}' is used as a type but was never registered"
                )
            reference = getattr(target, "__name__", repr(target))
            raise UnresolvedTypeError(reference, f"Cannot resolve type reference '{reference}'")
        self._check_category(definition.name, definition.kind, is_input)
        return definition.name

    def _name_from_string(self, name: str, is_input: bool) -> str:
        if name in BUILTIN_SCALARS or name in self.custom_scalars:
            return name
        for scalar in self.scalars_map.values():
            if scalar.name == name:
                return self.named_type_name(scalar)
        if self.registry.find_enum_by_name(name) is not None:
            return name
        definition = self.registry.find_type_by_name(name)
        if definition is None:
            raise UnresolvedTypeError(name, f"Cannot resolve type reference '{name}': no such type is registered")
        self._check_category(name, definition.kind, is_input)
        return name

    @staticmethod
    def _check_category(name: str, kind: TypeKind, is_input: bool) -> None:
        allowed = _INPUT_KINDS if is_input else _OUTPUT_KINDS
        if kind not in allowed:
            usage = "an argument or input field" if is_input else "an output field"
            raise UnresolvedTypeError(name, f"The {kind.label} '{name}' cannot be used as the type of {usage}")

    @staticmethod
    def to_graphql_type(reference: ResolvedTypeRef, named_types: Mapping[str, GraphQLNamedType]) -> GraphQLType:
        """Build the wrapped graphql type for a resolved reference."""
        graphql_type: GraphQLType = named_types[reference.type_name]
        if not reference.nullability[-1]:
            graphql_type = GraphQLNonNull(graphql_type)
        for nullable in reversed(reference.nullability[:-1]):
            graphql_type = GraphQLList(graphql_type)
            if not nullable:
                graphql_type = GraphQLNonNull(graphql_type)
        return graphql_type
