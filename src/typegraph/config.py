from pathlib import Path
from typing import Any, cast

import yaml
from graphql import GraphQLScalarType
from pydantic import BaseModel, ConfigDict, Field

from typegraph import log


class BuildSchemaConfig(BaseModel):
    """Options controlling how registered metadata is turned into a schema.

    Args:
        nullable_by_default: Treat fields and arguments without an explicit
            ``nullable`` option as nullable
        emit_schema_file: Write the printed schema to this path after a successful build
        sort_schema: Sort types and fields lexicographically when printing the schema
        scalars_map: Extra Python types mapped to GraphQL scalars
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    nullable_by_default: bool = False
    emit_schema_file: Path | None = None
    sort_schema: bool = False
    scalars_map: dict[Any, GraphQLScalarType] = Field(default_factory=dict, exclude=True)


def load_build_config(config_path: Path | None) -> BuildSchemaConfig:
    """
    Load and validate a build configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file, or None for defaults.

    Returns:
        A validated BuildSchemaConfig.

    Raises:
        OSError: If the file cannot be read.
        yaml.YAMLError: If the file is not valid YAML.
        TypeError: If the YAML root is not a mapping.
        ValidationError: If validation against BuildSchemaConfig fails.
    """
    if config_path is None:
        log.debug("No build config provided")
        return BuildSchemaConfig()

    raw: Any
    with config_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    log.debug(f"Loaded build config from {config_path}")

    # Empty file or explicit YAML null means defaults
    if raw is None or raw == {}:
        return BuildSchemaConfig()

    if not isinstance(raw, dict):
        raise TypeError(f"Build config root must be a mapping (YAML object), got {type(raw).__name__}")

    raw_dict = cast(dict[str, Any], raw)
    if "scalars_map" in raw_dict:
        raise TypeError("'scalars_map' can only be set programmatically")
    return BuildSchemaConfig.model_validate(raw_dict)
