from typegraph.logger import get_logger

__version__ = "0.3.0"

log = get_logger("typegraph")

from graphql import GraphQLBoolean as Boolean  # noqa: E402
from graphql import GraphQLFloat as Float  # noqa: E402
from graphql import GraphQLID as ID  # noqa: E402
from graphql import GraphQLInt as Int  # noqa: E402
from graphql import GraphQLString as String  # noqa: E402

from typegraph.config import BuildSchemaConfig, load_build_config  # noqa: E402
from typegraph.decorators import (  # noqa: E402
    arg,
    args,
    args_type,
    field,
    input_type,
    interface_type,
    mutation,
    object_type,
    query,
    register_enum_type,
)
from typegraph.errors import (  # noqa: E402
    ProblemKind,
    SchemaGenerationError,
    SchemaProblem,
    TypeDiscriminationError,
    TypeGraphError,
)
from typegraph.metadata.registry import MetadataRegistry, get_metadata_registry  # noqa: E402
from typegraph.schema.builder import build_schema  # noqa: E402

__all__ = [
    "ID",
    "Boolean",
    "BuildSchemaConfig",
    "Float",
    "Int",
    "MetadataRegistry",
    "ProblemKind",
    "SchemaGenerationError",
    "SchemaProblem",
    "String",
    "TypeDiscriminationError",
    "TypeGraphError",
    "arg",
    "args",
    "args_type",
    "build_schema",
    "field",
    "get_metadata_registry",
    "input_type",
    "interface_type",
    "load_build_config",
    "log",
    "mutation",
    "object_type",
    "query",
    "register_enum_type",
]
