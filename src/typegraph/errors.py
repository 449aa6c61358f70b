from dataclasses import dataclass
from enum import Enum

from graphql import GraphQLError


class ProblemKind(str, Enum):
    DECLARATION = "declaration"
    CYCLE = "cycle"
    CONFORMANCE = "conformance"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    VALIDATION = "validation"


@dataclass(frozen=True)
class SchemaProblem:
    """A single problem found while generating a schema.

    Args:
        kind: Category of the problem
        message: Human readable description, always naming the offending elements
        type_name: Name of the type the problem was found on
        field_name: Name of the field involved, if any
        interface_name: Name of the interface involved, if any
    """

    kind: ProblemKind
    message: str
    type_name: str | None = None
    field_name: str | None = None
    interface_name: str | None = None

    def __str__(self) -> str:
        return self.message


class TypeGraphError(Exception):
    """Base class for all typegraph errors."""


class SchemaGenerationError(TypeGraphError):
    """Raised when the registered metadata cannot be turned into a schema.

    Every problem found during the build is collected in ``details``, in the
    order it was found.
    """

    def __init__(self, details: list[SchemaProblem]) -> None:
        self.details = list(details)
        lines = "\n".join(f"  - {problem.message}" for problem in self.details)
        super().__init__(f"Generating schema failed with {len(self.details)} error(s):\n{lines}")


class UnresolvedTypeError(TypeGraphError):
    """Raised when a type reference cannot be mapped to a known type."""

    def __init__(self, reference: str, message: str | None = None) -> None:
        self.reference = reference
        super().__init__(message or f"Cannot resolve type reference '{reference}'")


class TypeDiscriminationError(GraphQLError):
    """Raised at execution time when a value of an interface type matches no implementer."""

    def __init__(self, interface_name: str, parent_type_name: str, field_name: str, value_description: str) -> None:
        self.interface_name = interface_name
        self.field_name = field_name
        super().__init__(
            f"Cannot determine GraphQL output type for '{field_name}' of '{parent_type_name}' "
            f"which returns the '{interface_name}' interface (got {value_description}). "
            f"Make sure the resolver returns an instance of one of the object types implementing "
            f"'{interface_name}', or provide an explicit 'resolve_type' ('resolveType') function on the interface "
            f"or an 'is_type_of' ('isTypeOf') function on each implementing object type."
        )


class TypeExpressionError(TypeGraphError):
    """Raised when a declared type expression is malformed."""
