"""
Runtime type discrimination for interface-typed fields.

Object types stamp their classes with an explicit type name tag when they are
declared. At execution time the discriminator reads that tag from the value and
checks it against the implementers graphql knows for the interface, so it only
depends on the value and the schema and is safe to call concurrently.
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from graphql import GraphQLAbstractType, GraphQLNamedType, GraphQLObjectType, GraphQLResolveInfo

from typegraph.errors import TypeDiscriminationError

TYPENAME_ATTRIBUTE = "__typegraph_typename__"
TYPENAME_KEY = "__typename"

TypeResolver = Callable[[Any, GraphQLResolveInfo, GraphQLAbstractType], str]


def tag_class(cls: type, type_name: str) -> None:
    setattr(cls, TYPENAME_ATTRIBUTE, type_name)


def get_type_tag(value: Any) -> str | None:
    """Explicit type name carried by a value, if any."""
    if isinstance(value, Mapping):
        tag = value.get(TYPENAME_KEY)
        return tag if isinstance(tag, str) else None
    tag = getattr(type(value), TYPENAME_ATTRIBUTE, None)
    return tag if isinstance(tag, str) else None


def describe_value(value: Any) -> str:
    if isinstance(value, Mapping):
        return f"a plain mapping without a '{TYPENAME_KEY}' key"
    if value.__class__.__module__ == "builtins":
        return f"a value of builtin type '{type(value).__name__}'"
    return f"an instance of '{type(value).__name__}', which is not a declared object type"


def _name_of(resolved: Any) -> str | None:
    if resolved is None or isinstance(resolved, str):
        return resolved
    if isinstance(resolved, GraphQLNamedType):
        return resolved.name
    if inspect.isclass(resolved):
        tag = getattr(resolved, TYPENAME_ATTRIBUTE, None)
        return tag if isinstance(tag, str) else None
    return None


def make_type_discriminator(
    interface_name: str,
    resolve_type: Callable[..., Any] | None = None,
) -> TypeResolver:
    """Create the ``resolve_type`` callback installed on an interface type.

    Args:
        interface_name: Name of the interface the callback belongs to
        resolve_type: Optional explicit strategy, called as ``resolve_type(value, info)``
            and returning a type name, a declared class or a graphql object type

    Returns:
        A callback following graphql-core's ``resolve_type`` signature
    """

    def discriminate(value: Any, info: GraphQLResolveInfo, abstract_type: GraphQLAbstractType) -> str:
        implementers: list[GraphQLObjectType] = list(info.schema.get_possible_types(abstract_type))
        names = {implementer.name for implementer in implementers}

        if resolve_type is not None:
            explicit = _name_of(resolve_type(value, info))
            if explicit in names:
                return explicit

        tag = get_type_tag(value)
        if tag in names:
            return tag

        matches = [
            implementer.name
            for implementer in implementers
            if implementer.is_type_of is not None and implementer.is_type_of(value, info)
        ]
        if len(matches) == 1:
            return matches[0]

        if tag is not None:
            description = f"a value tagged as '{tag}', which does not implement '{interface_name}'"
        elif len(matches) > 1:
            description = f"a value matched by several 'is_type_of' checks: {', '.join(matches)}"
        else:
            description = describe_value(value)
        raise TypeDiscriminationError(
            interface_name=interface_name,
            parent_type_name=info.parent_type.name,
            field_name=info.field_name,
            value_description=description,
        )

    return discriminate
