ROOT_TYPE_NAMES = {"Query", "Mutation", "Subscription"}

BUILTIN_SCALAR_NAMES = {"ID", "String", "Int", "Float", "Boolean"}


def is_introspection_type(type_name: str) -> bool:
    return type_name.startswith("__")


def is_root_type(type_name: str) -> bool:
    return type_name in ROOT_TYPE_NAMES


def is_builtin_scalar_type(type_name: str) -> bool:
    return type_name in BUILTIN_SCALAR_NAMES


def is_reserved_type_name(type_name: str) -> bool:
    """Names a declared type can never take, because the schema builder owns them."""
    return is_introspection_type(type_name) or is_root_type(type_name) or is_builtin_scalar_type(type_name)
