"""
Declaration decorators.

Classes and methods declare themselves by calling into the process-wide
``MetadataRegistry``. Field and resolver descriptors register through
``__set_name__``, that is while the class body is being created and before the
class decorator runs, so every declaration may reference a type that has not
been declared yet.

Example:
    >>> @interface_type
    ... class Node:
    ...     id = field(ID)
    ...
    >>> @object_type
    ... class Recipe(Node):
    ...     title = field(str)
    ...     tags = field([str], nullable="items")
    ...
    >>> class RecipeResolver:
    ...     @query([Recipe])
    ...     def recipes(self):
    ...         return load_recipes()
"""

import inspect
from collections.abc import Callable, Iterable
from enum import Enum
from functools import partial
from typing import Any

from graphql import Undefined

from typegraph.errors import TypeExpressionError
from typegraph.metadata.definitions import (
    AnnotationReference,
    ArgumentDefinition,
    ArgumentSetReference,
    ArgumentSpec,
    EnumDefinition,
    FieldDefinition,
    NullableOption,
    OperationKind,
    TypeDefinition,
    TypeExpression,
    TypeKind,
    as_reference,
)
from typegraph.metadata.registry import get_metadata_registry
from typegraph.schema.discriminator import tag_class


def _read_annotation(owner: Any, key: str, description: str) -> Any:
    """Annotation ``key`` of ``owner``, evaluated when the schema is built."""
    annotations = inspect.get_annotations(owner)
    if key not in annotations:
        raise TypeExpressionError(f"{description} has neither an explicit type nor a type annotation")
    annotation = annotations[key]
    if isinstance(annotation, str):
        try:
            return inspect.get_annotations(owner, eval_str=True)[key]
        except NameError:
            # names local to a function cannot be evaluated, resolve them by schema name
            return annotation
    return annotation


def _type_expression(
    type_: Any, nullable: NullableOption, owner: Any, key: str, description: str
) -> TypeExpression:
    if type_ is None:
        return TypeExpression(AnnotationReference(partial(_read_annotation, owner, key, description)), nullable)
    return TypeExpression.of(type_, nullable)


class FieldDescriptor:
    """A field declared in a class body, or a resolver-backed field when decorating a method.

    Instances read the value stored on them, falling back to the field default.
    """

    def __init__(
        self,
        type_: Any = None,
        *,
        name: str | None = None,
        nullable: NullableOption = None,
        default: Any = Undefined,
        description: str | None = None,
        deprecation_reason: str | None = None,
        arguments: Iterable[ArgumentSpec] = (),
    ) -> None:
        self.type_ = type_
        self.name = name
        self.nullable = nullable
        self.default = default
        self.description = description
        self.deprecation_reason = deprecation_reason
        self.arguments = tuple(arguments)
        self.handler: Callable[..., Any] | None = None
        self.attribute_name: str | None = None

    def __call__(self, handler: Callable[..., Any]) -> "FieldDescriptor":
        self.handler = handler
        if self.description is None:
            self.description = inspect.getdoc(handler)
        return self

    def __set_name__(self, owner: type, attribute_name: str) -> None:
        self.attribute_name = attribute_name
        field_name = self.name or attribute_name
        label = f"Field '{field_name}' of '{owner.__qualname__}'"
        if self.handler is not None:
            type_expression = _type_expression(self.type_, self.nullable, self.handler, "return", label)
        else:
            type_expression = _type_expression(self.type_, self.nullable, owner, attribute_name, label)

        get_metadata_registry().register_field(
            owner,
            FieldDefinition(
                name=field_name,
                attribute_name=attribute_name,
                owner=owner,
                type_expression=type_expression,
                default=self.default,
                description=self.description,
                deprecation_reason=self.deprecation_reason,
                handler=self.handler,
                arguments=self.arguments,
            ),
        )

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        if self.handler is not None:
            return self.handler.__get__(instance, owner)
        return None if self.default is Undefined else self.default


def field(
    type_: Any = None,
    *,
    name: str | None = None,
    nullable: NullableOption = None,
    default: Any = Undefined,
    description: str | None = None,
    deprecation_reason: str | None = None,
    arguments: Iterable[ArgumentSpec] = (),
) -> FieldDescriptor:
    """Declare a field in the body of a decorated class.

    Used as ``@field(...)`` on a method of an object or interface type, the
    method becomes the field resolver and is called as
    ``method(source, *arguments)``.

    Args:
        type_: Type expression of the field, inferred from the annotation when omitted
        name: Schema name of the field, the attribute name by default
        nullable: Nullability option, see ``typegraph.metadata.definitions.NullableOption``
        default: Default value for input and args type fields
        description: Field description
        deprecation_reason: Marks the field as deprecated
        arguments: Arguments of a resolver-backed field, built with ``arg`` and ``args``
    """
    return FieldDescriptor(
        type_,
        name=name,
        nullable=nullable,
        default=default,
        description=description,
        deprecation_reason=deprecation_reason,
        arguments=arguments,
    )


def arg(
    name: str,
    type_: Any,
    *,
    nullable: NullableOption = None,
    default: Any = Undefined,
    description: str | None = None,
) -> ArgumentDefinition:
    return ArgumentDefinition(
        name=name,
        type_expression=TypeExpression.of(type_, nullable),
        default=default,
        description=description,
    )


def args(args_class: Any) -> ArgumentSetReference:
    """Use the effective fields of an args type as arguments.

    The handler receives one instance of the args class in place of the
    flattened values.
    """
    return ArgumentSetReference(as_reference(args_class))


class ResolverMethod:
    """A resolver class method exposed as a root query or mutation field."""

    def __init__(
        self,
        operation: OperationKind,
        returns: Any = None,
        *,
        name: str | None = None,
        nullable: NullableOption = None,
        arguments: Iterable[ArgumentSpec] = (),
        description: str | None = None,
        deprecation_reason: str | None = None,
    ) -> None:
        self.operation = operation
        self.returns = returns
        self.name = name
        self.nullable = nullable
        self.arguments = tuple(arguments)
        self.description = description
        self.deprecation_reason = deprecation_reason
        self.handler: Callable[..., Any] | None = None

    def __call__(self, handler: Callable[..., Any]) -> "ResolverMethod":
        self.handler = handler
        return self

    def __set_name__(self, owner: type, method_name: str) -> None:
        if self.handler is None:
            raise TypeError(f"@{self.operation.value}(...) must decorate a method, got '{method_name}'")
        field_name = self.name or method_name
        get_metadata_registry().register_resolver_method(
            owner,
            field_name,
            self.handler,
            self.arguments,
            operation=self.operation,
            returns=_type_expression(
                self.returns,
                self.nullable,
                self.handler,
                "return",
                f"{self.operation.value.capitalize()} '{field_name}' of '{owner.__qualname__}'",
            ),
            method_name=method_name,
            description=self.description or inspect.getdoc(self.handler),
            deprecation_reason=self.deprecation_reason,
        )

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        if self.handler is None:
            raise TypeError(f"@{self.operation.value}(...) was never applied to a method")
        return self.handler.__get__(instance, owner)


def query(returns: Any = None, **options: Any) -> ResolverMethod:
    """Expose a resolver class method as a field of the ``Query`` root type.

    Accepts the options of ``ResolverMethod``: ``name``, ``nullable``,
    ``arguments``, ``description`` and ``deprecation_reason``.
    """
    return ResolverMethod(OperationKind.QUERY, returns, **options)


def mutation(returns: Any = None, **options: Any) -> ResolverMethod:
    """Expose a resolver class method as a field of the ``Mutation`` root type."""
    return ResolverMethod(OperationKind.MUTATION, returns, **options)


def _class_doc(cls: type) -> str | None:
    # only the docstring written on the class itself, base classes document themselves
    doc = cls.__dict__.get("__doc__")
    return inspect.cleandoc(doc) if isinstance(doc, str) else None


def _register_type(cls: type, definition: TypeDefinition) -> None:
    registry = get_metadata_registry()
    registry.register_type(definition)
    for base in cls.__bases__:
        if base is not object:
            registry.register_extends(cls, base)


def object_type(
    name: Any = None,
    *,
    implements: Iterable[Any] = (),
    description: str | None = None,
    is_type_of: Callable[..., bool] | None = None,
) -> Any:
    """Declare a class as an object type.

    Registered interface types among the base classes are implemented, any
    other registered base class is extended. ``implements`` lists further
    interfaces, as classes, names or thunks.
    """
    if inspect.isclass(name):
        return object_type()(name)

    def decorate(cls: type) -> type:
        type_name = name or cls.__name__
        _register_type(
            cls,
            TypeDefinition(
                TypeKind.OBJECT,
                type_name,
                cls,
                description=description or _class_doc(cls),
                is_type_of=is_type_of,
            ),
        )
        if implements:
            interfaces = implements if isinstance(implements, list | tuple | set) else [implements]
            get_metadata_registry().register_implements(cls, interfaces)
        tag_class(cls, type_name)
        return cls

    return decorate


def interface_type(
    name: Any = None,
    *,
    description: str | None = None,
    resolve_type: Callable[..., Any] | None = None,
) -> Any:
    """Declare a class as an interface type.

    ``resolve_type(value, info)`` may return the implementer as a class, a
    type name or a graphql object type; values it does not recognize fall back
    to the type tag of the value.
    """
    if inspect.isclass(name):
        return interface_type()(name)

    def decorate(cls: type) -> type:
        _register_type(
            cls,
            TypeDefinition(
                TypeKind.INTERFACE,
                name or cls.__name__,
                cls,
                description=description or _class_doc(cls),
                resolve_type=resolve_type,
            ),
        )
        return cls

    return decorate


def input_type(name: Any = None, *, description: str | None = None) -> Any:
    if inspect.isclass(name):
        return input_type()(name)

    def decorate(cls: type) -> type:
        _register_type(
            cls,
            TypeDefinition(TypeKind.INPUT, name or cls.__name__, cls, description=description or _class_doc(cls)),
        )
        return cls

    return decorate


def args_type(name: Any = None) -> Any:
    if inspect.isclass(name):
        return args_type()(name)

    def decorate(cls: type) -> type:
        _register_type(cls, TypeDefinition(TypeKind.ARGS, name or cls.__name__, cls))
        return cls

    return decorate


def register_enum_type(
    enum_class: type[Enum], name: str | None = None, description: str | None = None
) -> type[Enum]:
    """Expose a Python enum as a schema enum type; resolvers return the enum members."""
    get_metadata_registry().register_enum(
        EnumDefinition(name or enum_class.__name__, enum_class, description)
    )
    return enum_class
