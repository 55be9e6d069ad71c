"""Core mapping - schema-driven projection of source records.

- schema_tree: Flat dot-path schema -> Leaf/ObjectNode/ArrayTemplate tree,
  and projection of source data onto it
- substitution: Tenant value-substitution tables
- overrides: Tenant entity mapping overrides (last-write-wins)
- diff: Changed-field detection between record versions
- integration_schema: Selecting one operation's schema for an integration
"""

from core.mapping.schema_tree import (
    Leaf,
    ObjectNode,
    ArrayTemplate,
    SchemaNode,
    ProjectionOptions,
    build_tree,
    project,
    find_node,
    has_field,
    leaf_paths,
    to_placeholders,
)
from core.mapping.substitution import substitute, find_substitution_list
from core.mapping.overrides import (
    EntityMappingOverride,
    OverrideRule,
    apply_overrides,
    apply_transform,
    get_nested_value,
    MISSING,
)
from core.mapping.diff import ChangeSet, changed_field_paths, attribute_paths
from core.mapping.integration_schema import (
    select_operation_schema,
    has_inventory_fields,
    DEFAULT_ACTION,
)

__all__ = [
    # Schema tree
    "Leaf",
    "ObjectNode",
    "ArrayTemplate",
    "SchemaNode",
    "ProjectionOptions",
    "build_tree",
    "project",
    "find_node",
    "has_field",
    "leaf_paths",
    "to_placeholders",
    # Substitution
    "substitute",
    "find_substitution_list",
    # Overrides
    "EntityMappingOverride",
    "OverrideRule",
    "apply_overrides",
    "apply_transform",
    "get_nested_value",
    "MISSING",
    # Diff
    "ChangeSet",
    "changed_field_paths",
    "attribute_paths",
    # Integration schema
    "select_operation_schema",
    "has_inventory_fields",
    "DEFAULT_ACTION",
]
