"""
Plain-structure round trip for trees, shapes and templates.

dump_* returns JSON-compatible dicts (nested records, no behavior); load_*
validates them back into models. Floats survive exactly, so a reloaded
tree rolls up to the same bits as before it was saved.
"""

import json

from ..shapes.definitions import ShapeDefinition
from .tree import BOMTree


def dump_tree(tree: BOMTree) -> dict:
    return tree.model_dump(mode="json")


def load_tree(data: dict) -> BOMTree:
    """Rebuild a tree and check it is still one strict tree."""
    tree = BOMTree.model_validate(data)
    tree.validate_structure()
    return tree


def tree_to_json(tree: BOMTree) -> str:
    return json.dumps(dump_tree(tree))


def tree_from_json(text: str) -> BOMTree:
    return load_tree(json.loads(text))


def dump_shape(shape: ShapeDefinition) -> dict:
    return shape.model_dump(mode="json")


def load_shape(data: dict) -> ShapeDefinition:
    return ShapeDefinition.model_validate(data)


def dump_template(template) -> dict:
    return template.model_dump(mode="json")


def load_template(data: dict):
    from ..templates.engine import TemplateDefinition
    return TemplateDefinition.model_validate(data)
