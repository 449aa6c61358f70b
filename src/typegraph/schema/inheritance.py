"""
Inheritance flattening.

Every registered type gets an effective field set: the effective fields of its
parent, then (for object types) the fields of the interfaces it declares that
are not inherited already, then its own fields. An own field replaces an
inherited field of the same name completely and takes its place after all
inherited fields, so inherited fields always come first and own fields keep
their declaration order.
"""

from typing import Any

from typegraph import log
from typegraph.errors import ProblemKind, SchemaProblem
from typegraph.metadata.definitions import (
    ArgumentDefinition,
    ArgumentSetReference,
    ArgumentSpec,
    FieldDefinition,
    TypeDefinition,
    TypeKind,
    dereference,
)
from typegraph.metadata.registry import MetadataRegistry

ArgumentSlot = ArgumentDefinition | FieldDefinition


def describe_target(target: Any) -> str:
    if isinstance(target, str):
        return target
    return getattr(target, "__qualname__", None) or getattr(target, "__name__", None) or repr(target)


class InheritanceResolver:
    """Computes effective field sets and derived interface sets for one schema build.

    Results are a pure function of the registry state the resolver was created
    with; create a new resolver for every build.
    """

    def __init__(self, registry: MetadataRegistry) -> None:
        self.registry = registry
        self.problems: list[SchemaProblem] = []
        self._parents: dict[Any, TypeDefinition | None] = {}
        self._declared_interfaces: dict[Any, list[TypeDefinition]] = {}
        self._effective: dict[Any, dict[str, FieldDefinition]] = {}
        self._cyclic: set[Any] = set()
        self._linked = False

    def resolve(self) -> dict[Any, dict[str, FieldDefinition]]:
        """Link every type to its parent and flatten all field sets.

        Returns:
            Mapping from registered target to its effective field set
        """
        self.link()
        for definition in self.registry.types():
            self.effective_fields(definition.target)
        return {target: dict(fields) for target, fields in self._effective.items()}

    def link(self) -> None:
        if self._linked:
            return
        self._linked = True

        for definition in self.registry.types():
            links = self.registry.links_of(definition.target)
            parents: list[TypeDefinition] = []
            interfaces: list[TypeDefinition] = []

            for reference in links.parents:
                for ancestor in self._registered_ancestors(reference, definition):
                    if ancestor.kind == definition.kind:
                        parents.append(ancestor)
                    elif definition.kind == TypeKind.OBJECT and ancestor.kind == TypeKind.INTERFACE:
                        interfaces.append(ancestor)
                    else:
                        self._problem(
                            ProblemKind.DECLARATION,
                            f"The {definition.kind.label} '{definition.name}' cannot extend "
                            f"the {ancestor.kind.label} '{ancestor.name}': "
                            f"a type can only extend a type of the same kind",
                            type_name=definition.name,
                        )

            for reference in links.interfaces:
                interface = self._lookup(reference, definition, "implemented interface")
                if interface is None:
                    continue
                if interface.kind != TypeKind.INTERFACE:
                    self._problem(
                        ProblemKind.DECLARATION,
                        f"The {definition.kind.label} '{definition.name}' declares that it implements "
                        f"'{interface.name}', which is an {interface.kind.label} and not an interface type",
                        type_name=definition.name,
                    )
                elif definition.kind != TypeKind.OBJECT:
                    self._problem(
                        ProblemKind.DECLARATION,
                        f"Only object types can implement interfaces, but the {definition.kind.label} "
                        f"'{definition.name}' declares that it implements '{interface.name}'",
                        type_name=definition.name,
                        interface_name=interface.name,
                    )
                else:
                    interfaces.append(interface)

            unique_parents = list({parent.name: parent for parent in parents}.values())
            if len(unique_parents) > 1:
                names = ", ".join(f"'{parent.name}'" for parent in unique_parents)
                self._problem(
                    ProblemKind.DECLARATION,
                    f"The {definition.kind.label} '{definition.name}' can extend only one type, got {names}",
                    type_name=definition.name,
                )
            self._parents[definition.target] = unique_parents[0] if unique_parents else None
            self._declared_interfaces[definition.target] = list(
                {interface.target: interface for interface in interfaces}.values()
            )

        self._detect_cycles()

    def _registered_ancestors(self, reference: Any, owner: TypeDefinition) -> list[TypeDefinition]:
        """Nearest registered type for a parent reference, walking through plain classes."""
        try:
            target = dereference(reference)
        except Exception as e:
            self._problem(
                ProblemKind.UNRESOLVED_REFERENCE,
                f"Cannot resolve the parent of {owner}: {e}",
                type_name=owner.name,
            )
            return []

        if isinstance(target, str):
            definition = self._lookup(target, owner, "parent type")
            return [definition] if definition else []

        definition = self.registry.get_type(target)
        if definition is not None:
            return [definition]

        if isinstance(target, type):
            for base in target.__mro__[1:]:
                definition = self.registry.get_type(base)
                if definition is not None:
                    return [definition]
            # extending a plain Python class is allowed
            log.debug(f"{owner} extends plain class '{describe_target(target)}'")
            return []

        self._problem(
            ProblemKind.UNRESOLVED_REFERENCE,
            f"Cannot resolve the parent '{target!r}' of {owner}",
            type_name=owner.name,
        )
        return []

    def _lookup(self, reference: Any, owner: TypeDefinition, role: str) -> TypeDefinition | None:
        try:
            target = dereference(reference)
        except Exception as e:
            self._problem(
                ProblemKind.UNRESOLVED_REFERENCE,
                f"Cannot resolve the {role} of {owner}: {e}",
                type_name=owner.name,
            )
            return None

        if isinstance(target, str):
            definition = self.registry.find_type_by_name(target)
        else:
            definition = self.registry.get_type(target)
        if definition is None:
            self._problem(
                ProblemKind.UNRESOLVED_REFERENCE,
                f"The {role} '{describe_target(target)}' of {owner} is not a registered type",
                type_name=owner.name,
            )
        return definition

    def _detect_cycles(self) -> None:
        reported: set[frozenset[Any]] = set()
        for definition in self.registry.types():
            chain: list[TypeDefinition] = [definition]
            current = self._parents.get(definition.target)
            while current is not None:
                if any(member.target == current.target for member in chain):
                    start = next(i for i, member in enumerate(chain) if member.target == current.target)
                    cycle = chain[start:]
                    members = frozenset(member.target for member in cycle)
                    self._cyclic.update(members)
                    if members not in reported:
                        reported.add(members)
                        path = " -> ".join(member.name for member in [*cycle, current])
                        self._problem(
                            ProblemKind.CYCLE,
                            f"Cyclic extension chain detected: {path}",
                            type_name=current.name,
                        )
                    break
                chain.append(current)
                current = self._parents.get(current.target)

    def parent_of(self, target: Any) -> TypeDefinition | None:
        self.link()
        if target in self._cyclic:
            return None
        return self._parents.get(target)

    def ancestors(self, target: Any) -> list[TypeDefinition]:
        """Extension chain of ``target``, nearest parent first."""
        chain: list[TypeDefinition] = []
        current = self.parent_of(target)
        while current is not None and all(member.target != current.target for member in chain):
            chain.append(current)
            current = self.parent_of(current.target)
        return chain

    def effective_fields(self, target: Any) -> dict[str, FieldDefinition]:
        """Effective field set of a registered type, keyed by schema field name."""
        self.link()
        if target in self._effective:
            return self._effective[target]

        definition = self.registry.get_type(target)
        fields: dict[str, FieldDefinition] = {}
        # placeholder guards against re-entry while computing
        self._effective[target] = fields

        parent = self.parent_of(target)
        if parent is not None:
            fields.update(self.effective_fields(parent.target))

        if definition is not None and definition.kind == TypeKind.OBJECT:
            for interface in self._declared_interfaces.get(target, []):
                for name, interface_field in self.effective_fields(interface.target).items():
                    fields.setdefault(name, interface_field)

        own_names: set[str] = set()
        type_name = definition.name if definition else describe_target(target)
        for own_field in self.registry.fields_of(target):
            if own_field.name in own_names:
                self._problem(
                    ProblemKind.DECLARATION,
                    f"Field '{own_field.name}' is declared more than once on type '{type_name}'",
                    type_name=type_name,
                    field_name=own_field.name,
                )
                continue
            own_names.add(own_field.name)
            fields.pop(own_field.name, None)
            fields[own_field.name] = own_field

        return fields

    def declared_interfaces(self, target: Any) -> list[TypeDefinition]:
        self.link()
        return list(self._declared_interfaces.get(target, []))

    def interfaces_of(self, target: Any) -> list[TypeDefinition]:
        """Complete interface set of a type.

        For object types these are the declared interfaces, the interfaces
        declared anywhere up the extension chain, and every interface those
        interfaces extend. For interface types it is the interface's own
        extension chain.
        """
        definition = self.registry.get_type(target)
        if definition is None:
            return []
        if definition.kind == TypeKind.INTERFACE:
            return self.ancestors(target)
        if definition.kind != TypeKind.OBJECT:
            return []

        collected: dict[Any, TypeDefinition] = {}

        def add(interface: TypeDefinition) -> None:
            for candidate in [interface, *self.ancestors(interface.target)]:
                collected.setdefault(candidate.target, candidate)

        for interface in self.declared_interfaces(target):
            add(interface)
        for ancestor in self.ancestors(target):
            for interface in self.declared_interfaces(ancestor.target):
                add(interface)
        return list(collected.values())

    def expand_arguments(self, arguments: tuple[ArgumentSpec, ...], owner: str) -> list[ArgumentSlot]:
        """Flatten argument declarations, replacing args types by their effective fields.

        Args:
            arguments: Declared arguments, in order
            owner: Human readable name of the field the arguments belong to, used in problems
        """
        expanded: list[ArgumentSlot] = []
        for spec in arguments:
            if not isinstance(spec, ArgumentSetReference):
                expanded.append(spec)
                continue
            try:
                target = dereference(spec.target)
            except Exception as e:
                self._problem(
                    ProblemKind.UNRESOLVED_REFERENCE,
                    f"Cannot resolve the args type of '{owner}': {e}",
                    field_name=owner,
                )
                continue
            definition = self.registry.get_type(target)
            if definition is None or definition.kind != TypeKind.ARGS:
                found = f"the {definition.kind.label} '{definition.name}'" if definition else "an unregistered class"
                self._problem(
                    ProblemKind.DECLARATION,
                    f"Arguments of '{owner}' must be declared with an args type, "
                    f"got {found} ('{describe_target(target)}')",
                    field_name=owner,
                )
                continue
            expanded.extend(self.effective_fields(definition.target).values())

        seen: set[str] = set()
        unique: list[ArgumentSlot] = []
        for slot in expanded:
            if slot.name in seen:
                self._problem(
                    ProblemKind.DECLARATION,
                    f"Argument '{slot.name}' is declared more than once on '{owner}'",
                    field_name=owner,
                )
                continue
            seen.add(slot.name)
            unique.append(slot)
        return unique

    def _problem(self, kind: ProblemKind, message: str, **context: str | None) -> None:
        problem = SchemaProblem(kind=kind, message=message, **context)
        if problem not in self.problems:
            self.problems.append(problem)
