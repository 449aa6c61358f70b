"""
Process-wide metadata registry.

Declarations are recorded as they are made (usually by the decorators in
``typegraph.decorators``) and replayed by the schema builder. The registry is
append-only until it is cleared; references to other types are kept as given,
lazy references included, and only dereferenced during schema synthesis.

Example:
    >>> registry = get_metadata_registry()
    >>> registry.register_type(TypeDefinition(TypeKind.OBJECT, "Recipe", Recipe))
    >>> registry.register_field(Recipe, FieldDefinition("title", "title", Recipe, TypeExpression.of(str)))
"""

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from typegraph import log
from typegraph.metadata.definitions import (
    ArgumentSpec,
    EnumDefinition,
    FieldDefinition,
    OperationKind,
    ResolverDefinition,
    TypeDefinition,
    TypeExpression,
    TypeKind,
    TypeLinks,
    as_reference,
)


class MetadataRegistry:
    """Side table of every type, field, edge and resolver declaration.

    Declarations are keyed by the identity of the program element (normally the
    decorated class). Any of them may arrive before the type they belong to is
    declared.
    """

    def __init__(self) -> None:
        self._types: dict[Any, TypeDefinition] = {}
        self._fields: dict[Any, list[FieldDefinition]] = {}
        self._links: dict[Any, TypeLinks] = {}
        self._resolvers: dict[Any, list[ResolverDefinition]] = {}
        self._enums: dict[Any, EnumDefinition] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of times the registry has been cleared."""
        return self._generation

    def clear(self) -> None:
        """Discard every registration."""
        self._types.clear()
        self._fields.clear()
        self._links.clear()
        self._resolvers.clear()
        self._enums.clear()
        self._generation += 1
        log.debug(f"Cleared metadata registry (generation {self._generation})")

    def register_type(self, definition: TypeDefinition) -> None:
        if definition.target in self._types:
            previous = self._types[definition.target]
            log.warning(f"Replacing {previous} with {definition}")
        self._types[definition.target] = definition
        log.debug(f"Registered {definition}")

    def register_field(self, target: Any, field: FieldDefinition) -> None:
        fields = self._fields.setdefault(target, [])
        fields[:] = [existing for existing in fields if existing.attribute_name != field.attribute_name]
        fields.append(field)

    def register_implements(self, target: Any, interfaces: Iterable[Any]) -> None:
        links = self._links.setdefault(target, TypeLinks())
        for interface in interfaces:
            links.interfaces.append(as_reference(interface))

    def register_extends(self, target: Any, parent: Any) -> None:
        self._links.setdefault(target, TypeLinks()).parents.append(as_reference(parent))

    def register_resolver_method(
        self,
        target: Any,
        field_name: str,
        handler: Callable[..., Any],
        arguments: Iterable[ArgumentSpec] = (),
        *,
        operation: OperationKind,
        returns: TypeExpression,
        method_name: str | None = None,
        description: str | None = None,
        deprecation_reason: str | None = None,
    ) -> None:
        definition = ResolverDefinition(
            target=target,
            operation=operation,
            name=field_name,
            method_name=method_name or getattr(handler, "__name__", field_name),
            handler=handler,
            returns=returns,
            arguments=tuple(arguments),
            description=description,
            deprecation_reason=deprecation_reason,
        )
        self._resolvers.setdefault(target, []).append(definition)
        log.debug(f"Registered {operation.value} '{field_name}' on {getattr(target, '__name__', target)}")

    def register_enum(self, definition: EnumDefinition) -> None:
        self._enums[definition.enum_class] = definition

    def get_type(self, target: Any) -> TypeDefinition | None:
        return self._types.get(target)

    def find_type_by_name(self, name: str) -> TypeDefinition | None:
        return next((definition for definition in self._types.values() if definition.name == name), None)

    def get_enum(self, enum_class: Any) -> EnumDefinition | None:
        return self._enums.get(enum_class)

    def find_enum_by_name(self, name: str) -> EnumDefinition | None:
        return next((definition for definition in self._enums.values() if definition.name == name), None)

    def types(self, kind: TypeKind | None = None) -> list[TypeDefinition]:
        """Registered types in registration order, optionally of a single kind."""
        return [definition for definition in self._types.values() if kind is None or definition.kind == kind]

    def enums(self) -> list[EnumDefinition]:
        return list(self._enums.values())

    def fields_of(self, target: Any) -> list[FieldDefinition]:
        """Fields declared directly on ``target``, in registration order."""
        return list(self._fields.get(target, []))

    def links_of(self, target: Any) -> TypeLinks:
        links = self._links.get(target)
        return TypeLinks(list(links.parents), list(links.interfaces)) if links else TypeLinks()

    def resolvers_of(self, target: Any) -> list[ResolverDefinition]:
        return list(self._resolvers.get(target, []))

    def __iter__(self) -> Iterator[TypeDefinition]:
        return iter(list(self._types.values()))

    def __len__(self) -> int:
        return len(self._types)


_global_registry: MetadataRegistry | None = None


def get_metadata_registry() -> MetadataRegistry:
    """Get the process-wide registry, creating it on first use."""
    global _global_registry
    if _global_registry is None:
        _global_registry = MetadataRegistry()
    return _global_registry


def reset_metadata_registry() -> None:
    """Clear the process-wide registry, e.g. between independent schema builds."""
    get_metadata_registry().clear()
