import inspect
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, get_origin

from graphql import GraphQLNamedType, Undefined

NullableOption = bool | str | Sequence[bool] | None

NULLABLE_ITEMS = "items"
NULLABLE_ITEMS_AND_LIST = "items_and_list"


class LazyReference:
    """A thunk resolved on first read and memoized afterwards.

    Used for forward references to types that may not be declared yet.
    """

    def __init__(self, thunk: Callable[[], Any]) -> None:
        self._thunk = thunk
        self._resolved = False
        self._value: Any = None

    def resolve(self) -> Any:
        if not self._resolved:
            self._value = self._thunk()
            self._resolved = True
        return self._value

    def __repr__(self) -> str:
        if self._resolved:
            return f"LazyReference({self._value!r})"
        return f"LazyReference({getattr(self._thunk, '__qualname__', self._thunk)!r})"


class AnnotationReference(LazyReference):
    """Lazy reference to a type annotation, read only when the schema is built."""


def is_thunk(value: Any) -> bool:
    return (
        callable(value)
        and not inspect.isclass(value)
        and not isinstance(value, GraphQLNamedType)
        and get_origin(value) is None
    )


def as_reference(value: Any) -> Any:
    """Wrap thunks into memoized lazy references, leave everything else untouched."""
    if isinstance(value, LazyReference) or not is_thunk(value):
        return value
    return LazyReference(value)


def dereference(value: Any) -> Any:
    while isinstance(value, LazyReference):
        value = value.resolve()
    return value


@dataclass(frozen=True)
class TypeExpression:
    """A declared field or argument type, kept unresolved until schema synthesis.

    Args:
        declared: The declared target, a list literal or a lazy reference to either
        nullable: The nullability option as given by the caller
    """

    declared: Any
    nullable: NullableOption = None

    @classmethod
    def of(cls, declared: Any, nullable: NullableOption = None) -> "TypeExpression":
        if isinstance(nullable, Sequence) and not isinstance(nullable, str):
            nullable = tuple(bool(level) for level in nullable)
        return cls(as_reference(declared), nullable)


class TypeKind(str, Enum):
    OBJECT = "object"
    INTERFACE = "interface"
    INPUT = "input"
    ARGS = "args"

    @property
    def label(self) -> str:
        return {
            TypeKind.OBJECT: "object type",
            TypeKind.INTERFACE: "interface type",
            TypeKind.INPUT: "input type",
            TypeKind.ARGS: "args type",
        }[self]


class OperationKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"


@dataclass(frozen=True)
class ArgumentDefinition:
    """A single named argument of a resolver or resolver-backed field."""

    name: str
    type_expression: TypeExpression
    default: Any = Undefined
    description: str | None = None


@dataclass(frozen=True)
class ArgumentSetReference:
    """Reference to an args type whose effective fields become arguments."""

    target: Any


ArgumentSpec = ArgumentDefinition | ArgumentSetReference


@dataclass(frozen=True)
class FieldDefinition:
    """A field declared directly on a type.

    Args:
        name: Name of the field in the schema
        attribute_name: Python attribute the value is read from (or written to, for inputs)
        owner: The class the field was declared on
        type_expression: Declared type, None when it was never given
        default: Default value, only meaningful for input and args types
        handler: Resolver function for resolver-backed fields
        arguments: Declared arguments of a resolver-backed field
    """

    name: str
    attribute_name: str
    owner: Any
    type_expression: TypeExpression | None
    default: Any = Undefined
    description: str | None = None
    deprecation_reason: str | None = None
    handler: Callable[..., Any] | None = None
    arguments: tuple[ArgumentSpec, ...] = ()


@dataclass
class TypeDefinition:
    kind: TypeKind
    name: str
    target: Any
    description: str | None = None
    resolve_type: Callable[..., Any] | None = None
    is_type_of: Callable[..., Any] | None = None

    def __str__(self) -> str:
        return f"{self.kind.label} '{self.name}'"


@dataclass(frozen=True)
class EnumDefinition:
    name: str
    enum_class: type[Enum]
    description: str | None = None


@dataclass(frozen=True)
class ResolverDefinition:
    """A root query or mutation field backed by a method of a resolver class."""

    target: Any
    operation: OperationKind
    name: str
    method_name: str
    handler: Callable[..., Any]
    returns: TypeExpression
    arguments: tuple[ArgumentSpec, ...] = ()
    description: str | None = None
    deprecation_reason: str | None = None


@dataclass
class TypeLinks:
    """Extension and implementation edges recorded for one target."""

    parents: list[Any] = field(default_factory=list)
    interfaces: list[Any] = field(default_factory=list)
