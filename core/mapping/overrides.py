"""Entity mapping overrides.

A tenant may override how individual outbound fields are derived, e.g.
"take the sale's CustomerReference, uppercased, as the target order
number". Overrides are a last-write-wins layer applied strictly after the
default field derivation, and only for the entity they declare.

Config shape (both key styles accepted):

    {
        "entity": "sale",
        "mapping": [
            {"sourcePath": "CustomerReference", "targetKey": "order_number", "transform": "uppercase"},
            {"cin7": "ShippingAddress.Line1", "trackstar": "address1"}
        ]
    }
"""

from copy import deepcopy
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from core.observability.logging import get_logger


logger = get_logger(__name__)

# Sentinel for "path does not exist" (distinct from an explicit None)
MISSING = object()


class OverrideRule(BaseModel):
    """Copy one upstream value onto one outbound key."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    source_path: str = Field(..., validation_alias=AliasChoices("sourcePath", "cin7", "source_path"))
    target_key: str = Field(..., validation_alias=AliasChoices("targetKey", "trackstar", "target_key"))
    transform: Optional[str] = None


class EntityMappingOverride(BaseModel):
    """Tenant override rules for a single entity type."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    entity: str
    mapping: List[OverrideRule] = Field(default_factory=list)


def get_nested_value(data: Any, path: Optional[str]) -> Any:
    """Read a dot path from nested dicts/lists.

    Numeric segments index into lists. Any missing segment yields MISSING.
    """
    if not path or data is None:
        return MISSING

    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, list) and segment.lstrip("-").isdigit():
            index = int(segment)
            if index >= len(current) or index < -len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def apply_transform(value: Any, transform: Optional[str]) -> Any:
    """Apply a named transform; unknown names pass the value through."""
    if not transform or value is None or value is MISSING:
        return value
    name = transform.lower()
    if name == "uppercase":
        return str(value).upper()
    if name == "lowercase":
        return str(value).lower()
    return value


def _as_override(config: Union[EntityMappingOverride, Dict[str, Any], None]) -> Optional[EntityMappingOverride]:
    if config is None or isinstance(config, EntityMappingOverride):
        return config
    if not isinstance(config, dict):
        return None
    try:
        return EntityMappingOverride.model_validate(config)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed entity mapping override: {e.error_count()} error(s)")
        return None


def apply_overrides(
    source: Dict[str, Any],
    override_config: Union[EntityMappingOverride, Dict[str, Any], None],
    raw_upstream: Any,
    entity: str,
) -> Dict[str, Any]:
    """Layer tenant overrides onto derived source data.

    Args:
        source: Source-data object after default derivation
        override_config: Tenant override config (or None)
        raw_upstream: Raw upstream record the override paths read from
        entity: Entity type being processed (e.g. "sale")

    Returns:
        A new dict; ``source`` itself is not modified
    """
    result = dict(source)
    config = _as_override(override_config)
    if config is None or config.entity != entity:
        return result

    applied = 0
    for rule in config.mapping:
        value = apply_transform(get_nested_value(raw_upstream, rule.source_path), rule.transform)
        if value is MISSING:
            continue
        result[rule.target_key] = deepcopy(value)
        applied += 1

    logger.debug(f"Applied {applied}/{len(config.mapping)} override rule(s) for {entity}")
    return result
