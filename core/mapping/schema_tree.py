"""Schema tree builder and field-fill projector.

Target integrations describe the body they accept as a flat map of dot paths
to placeholders:

    {"order_number": "", "ship_to_address.city": "", "line_items.sku": ""}

``build_tree`` turns that into an explicit tree of three node kinds:
- Leaf: a terminal field
- ObjectNode: named children; ``declared`` when the object's own path was
  also listed, which forces it into the output even when empty
- ArrayTemplate: an object template repeated per source element, used for
  the segments named in ``array_keys`` (``line_items``, ``boxes``)

``project`` walks the tree against a populated source object and emits only
the fields the integration asked for. Leaf inclusion:
- present values (not None, "" or []) are always emitted
- a key the caller set explicitly to a blank value is emitted blank, since
  some target APIs reject a missing field but accept an empty one
- keys in ``omit_when_empty`` (``address2``) are dropped when blank
- keys absent from the source are omitted

Neither function raises on malformed schemas; anything that is not a known
node kind is projected as a Leaf.
"""

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple, Union


DEFAULT_ARRAY_KEYS: Tuple[str, ...] = ("line_items", "boxes")
DEFAULT_OMIT_WHEN_EMPTY: FrozenSet[str] = frozenset({"address2"})


# =============================================================================
# Nodes
# =============================================================================

@dataclass
class Leaf:
    """Terminal field with its placeholder/default value."""
    placeholder: Any = ""


@dataclass
class ObjectNode:
    """Object with named children."""
    children: Dict[str, "SchemaNode"] = field(default_factory=dict)
    declared: bool = False


@dataclass
class ArrayTemplate:
    """Template projected once per element of a source array."""
    item: ObjectNode = field(default_factory=ObjectNode)


SchemaNode = Union[Leaf, ObjectNode, ArrayTemplate]


def _container(node: SchemaNode) -> ObjectNode:
    return node.item if isinstance(node, ArrayTemplate) else node


# =============================================================================
# Builder
# =============================================================================

def _descend(current: ObjectNode, segment: str, array_keys: Tuple[str, ...]) -> ObjectNode:
    existing = current.children.get(segment)
    if isinstance(existing, (ObjectNode, ArrayTemplate)):
        return _container(existing)
    # A leaf already declared here becomes a declared object
    obj = ObjectNode(declared=isinstance(existing, Leaf))
    current.children[segment] = ArrayTemplate(item=obj) if segment in array_keys else obj
    return obj


def _insert(root: ObjectNode, segments: List[str], placeholder: Any, array_keys: Tuple[str, ...]) -> None:
    current = root
    for segment in segments[:-1]:
        current = _descend(current, segment, array_keys)

    terminal = segments[-1]
    existing = current.children.get(terminal)
    if isinstance(existing, (ObjectNode, ArrayTemplate)):
        _container(existing).declared = True
    elif placeholder is _DECLARED_OBJECT:
        _descend(current, terminal, array_keys).declared = True
    else:
        current.children[terminal] = Leaf(placeholder=placeholder)


def _walk_input(schema: Mapping, prefix: List[str]) -> Iterator[Tuple[List[str], Any]]:
    """Yield (segments, placeholder) for flat or already-nested input."""
    for raw_key, value in schema.items():
        segments = prefix + [s for s in str(raw_key).split(".") if s]
        if not segments:
            continue
        if isinstance(value, list) and value and isinstance(value[0], Mapping):
            value = value[0]
        if isinstance(value, Mapping):
            if value:
                yield from _walk_input(value, segments)
            else:
                yield segments, _DECLARED_OBJECT
            continue
        yield segments, value


# Placeholder for an explicitly empty nested object in the input
_DECLARED_OBJECT = object()


def build_tree(
    flat_schema: Any,
    array_keys: Tuple[str, ...] = DEFAULT_ARRAY_KEYS,
) -> ObjectNode:
    """Build a schema tree from a flat dot-path map.

    Already-nested input (as produced by ``to_placeholders``) is accepted
    too. Objects win over leaves when paths collide, independent of the
    order the paths are listed in.

    Args:
        flat_schema: {dot_path: placeholder}
        array_keys: Segment names that denote arrays of objects

    Returns:
        Root ObjectNode (empty for non-mapping input)
    """
    root = ObjectNode()
    if not isinstance(flat_schema, Mapping):
        return root

    for segments, placeholder in _walk_input(flat_schema, []):
        _insert(root, segments, placeholder, array_keys)
    return root


def find_node(tree: ObjectNode, path: str) -> Optional[SchemaNode]:
    """Return the node at a dot path, or None."""
    node: SchemaNode = tree
    for segment in path.split("."):
        if isinstance(node, Leaf):
            return None
        node = _container(node).children.get(segment)
        if node is None:
            return None
    return node


def has_field(tree: ObjectNode, path: str) -> bool:
    return find_node(tree, path) is not None


def leaf_paths(tree: ObjectNode, prefix: str = "") -> List[str]:
    """All terminal dot paths, in insertion order."""
    paths = []
    for key, child in _container(tree).children.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(child, (ObjectNode, ArrayTemplate)):
            if _container(child).declared:
                paths.append(path)
            paths.extend(leaf_paths(child, path))
        else:
            paths.append(path)
    return paths


def to_placeholders(node: SchemaNode) -> Any:
    """Render the tree as nested placeholders (arrays as their template)."""
    if isinstance(node, (ObjectNode, ArrayTemplate)):
        return {key: to_placeholders(child) for key, child in _container(node).children.items()}
    if isinstance(node, Leaf):
        return node.placeholder
    return ""


# =============================================================================
# Projector
# =============================================================================

def _is_present(value: Any) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, list) and not value:
        return False
    return True


@dataclass(frozen=True)
class ProjectionOptions:
    """Inclusion rules for ``project``.

    Attributes:
        omit_when_empty: Leaf keys dropped when blank even if set explicitly
        keep_explicit_blanks: Emit keys the caller set to a blank value
        passthrough: Per-array extra keys copied from each source element
            even when the template lacks them (e.g. {"line_items": ("tax",)})
    """
    omit_when_empty: FrozenSet[str] = DEFAULT_OMIT_WHEN_EMPTY
    keep_explicit_blanks: bool = True
    passthrough: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)


DEFAULT_OPTIONS = ProjectionOptions()


def _project_object(node: ObjectNode, data: Any, options: ProjectionOptions) -> Dict[str, Any]:
    data = data if isinstance(data, Mapping) else {}
    result: Dict[str, Any] = {}

    for key, child in node.children.items():
        value = data.get(key)

        if isinstance(child, ArrayTemplate):
            if isinstance(value, list) and value:
                extra = options.passthrough.get(key, ())
                items = []
                for element in value:
                    projected = _project_object(child.item, element, options)
                    if isinstance(element, Mapping):
                        for extra_key in extra:
                            if extra_key in element:
                                projected[extra_key] = deepcopy(element[extra_key])
                    items.append(projected)
                result[key] = items
            continue

        if isinstance(child, ObjectNode):
            nested = _project_object(child, value, options)
            if nested or child.declared:
                result[key] = nested
            continue

        # Leaf (or an unrecognised node kind)
        if _is_present(value):
            result[key] = deepcopy(value)
        elif key in data and options.keep_explicit_blanks and key not in options.omit_when_empty:
            result[key] = "" if value is None else deepcopy(value)

    return result


def project(
    tree: Any,
    source: Any,
    options: ProjectionOptions = DEFAULT_OPTIONS,
) -> Dict[str, Any]:
    """Project a source object onto a schema tree.

    Args:
        tree: Root ObjectNode (a flat/nested schema dict is built on the fly)
        source: Populated source-data object
        options: Inclusion rules

    Returns:
        Outbound body containing only schema fields
    """
    if isinstance(tree, ArrayTemplate):
        tree = tree.item
    if not isinstance(tree, ObjectNode):
        tree = build_tree(tree)
    return _project_object(tree, source, options)
