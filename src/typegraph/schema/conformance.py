from typegraph.errors import ProblemKind, SchemaProblem, TypeExpressionError, UnresolvedTypeError
from typegraph.metadata.definitions import FieldDefinition, TypeDefinition, TypeExpression, TypeKind
from typegraph.schema.inheritance import ArgumentSlot, InheritanceResolver
from typegraph.schema.type_reference import ResolvedTypeRef, TypeReferenceResolver


class InterfaceConformanceValidator:
    """Checks every object type against the complete set of interfaces it implements.

    Conformance is checked on effective field sets: an implementer satisfies an
    interface field when its effective field of the same name has an identical
    signature (nullability, list depth and named type), and declares the same
    arguments with identical signatures.
    """

    def __init__(self, inheritance: InheritanceResolver, type_resolver: TypeReferenceResolver) -> None:
        self.inheritance = inheritance
        self.type_resolver = type_resolver

    def validate(self) -> list[SchemaProblem]:
        problems: list[SchemaProblem] = []
        for object_type in self.inheritance.registry.types(TypeKind.OBJECT):
            for interface in self.inheritance.interfaces_of(object_type.target):
                problems.extend(self.check(object_type, interface))
        return problems

    def check(self, object_type: TypeDefinition, interface: TypeDefinition) -> list[SchemaProblem]:
        problems: list[SchemaProblem] = []
        object_fields = self.inheritance.effective_fields(object_type.target)

        for name, interface_field in self.inheritance.effective_fields(interface.target).items():
            object_field = object_fields.get(name)
            if object_field is None:
                problems.append(
                    SchemaProblem(
                        kind=ProblemKind.CONFORMANCE,
                        message=(
                            f"Object type '{object_type.name}' does not provide field '{name}' "
                            f"required by interface '{interface.name}'"
                        ),
                        type_name=object_type.name,
                        field_name=name,
                        interface_name=interface.name,
                    )
                )
                continue
            if object_field is interface_field:
                continue

            expected = self._signature(interface_field.type_expression)
            actual = self._signature(object_field.type_expression)
            if expected is not None and actual is not None and expected != actual:
                problems.append(
                    SchemaProblem(
                        kind=ProblemKind.CONFORMANCE,
                        message=(
                            f"Field '{name}' of object type '{object_type.name}' has type '{actual}', "
                            f"which does not match type '{expected}' of field '{name}' "
                            f"in interface '{interface.name}'"
                        ),
                        type_name=object_type.name,
                        field_name=name,
                        interface_name=interface.name,
                    )
                )

            problems.extend(self._check_arguments(object_type, interface, object_field, interface_field))
        return problems

    def _check_arguments(
        self,
        object_type: TypeDefinition,
        interface: TypeDefinition,
        object_field: FieldDefinition,
        interface_field: FieldDefinition,
    ) -> list[SchemaProblem]:
        problems: list[SchemaProblem] = []
        object_arguments = self._argument_signatures(
            self.inheritance.expand_arguments(object_field.arguments, f"{object_type.name}.{object_field.name}")
        )
        interface_arguments = self._argument_signatures(
            self.inheritance.expand_arguments(interface_field.arguments, f"{interface.name}.{interface_field.name}")
        )

        for argument_name, expected in interface_arguments.items():
            if argument_name not in object_arguments:
                reason = "does not declare it"
            elif expected is not None and object_arguments[argument_name] not in (None, expected):
                reason = f"declares it with type '{object_arguments[argument_name]}' instead of '{expected}'"
            else:
                continue
            problems.append(
                SchemaProblem(
                    kind=ProblemKind.CONFORMANCE,
                    message=(
                        f"Interface '{interface.name}' declares argument '{argument_name}' on field "
                        f"'{interface_field.name}', but object type '{object_type.name}' {reason}"
                    ),
                    type_name=object_type.name,
                    field_name=interface_field.name,
                    interface_name=interface.name,
                )
            )
        return problems

    def _argument_signatures(self, slots: list[ArgumentSlot]) -> dict[str, ResolvedTypeRef | None]:
        return {slot.name: self._signature(slot.type_expression, is_input=True) for slot in slots}

    def _signature(self, expression: TypeExpression | None, is_input: bool = False) -> ResolvedTypeRef | None:
        # unresolvable types are reported once, when the field types are finalized
        if expression is None:
            return None
        try:
            return self.type_resolver.resolve(expression, is_input=is_input)
        except (UnresolvedTypeError, TypeExpressionError):
            return None
