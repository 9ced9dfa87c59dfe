"""
BOM tree — an arena of BOMItems keyed by id with explicit parent/child ids.

Every public mutation takes the version the caller last observed. A stale
version raises ConflictError; an invalid structure raises StructuralError.
Both are checked before anything is touched, so a rejected mutation leaves
the tree exactly as it was. A successful mutation increments the version
once and drops cached rollups along the affected ancestor chains.
"""

import enum
import logging
import uuid
from typing import Dict, Iterator, List, Optional, Union

from pydantic import BaseModel, PrivateAttr

from ..errors import (
    BomCostError,
    ConflictError,
    ItemNotFoundError,
    ParameterRangeError,
    StructuralError,
)
from ..shapes.calculator import ShapeInstanceResult
from ..units import Quantity

logger = logging.getLogger(__name__)

ParamValue = Union[float, str, bool, Quantity]


class ItemKind(str, enum.Enum):
    ASSEMBLY = "assembly"
    PART = "part"
    RAW_MATERIAL = "raw_material"


class BoughtOutSpec(BaseModel):
    """Manually priced item: valve, gasket, motor, instrument..."""

    description: str
    unit_price: float
    currency: str = "INR"
    unit_weight_kg: float = 0.0
    vendor: Optional[str] = None
    category: Optional[str] = None


class AssemblyFabrication(BaseModel):
    """An assembly's own work: fit-up, closing welds, final machining."""

    labor_hours: float = 0.0
    weld_length_m: float = 0.0
    machining_hours: float = 0.0
    fixed_cost: float = 0.0


class ShapeInstance(BaseModel):
    shape_id: str
    shape_version: Optional[int] = None   # pinned on first calculation
    parameters: Dict[str, ParamValue] = {}
    material_id: Optional[str] = None
    result: Optional[ShapeInstanceResult] = None


class ItemError(BaseModel):
    kind: str
    message: str
    detail: dict = {}

    @classmethod
    def from_exception(cls, exc: BomCostError) -> "ItemError":
        return cls(kind=type(exc).__name__, message=exc.message, detail=exc.detail)


class BOMItem(BaseModel):
    id: str
    name: str
    kind: ItemKind = ItemKind.PART
    item_number: str = ""
    level: int = 0
    parent_id: Optional[str] = None
    children: List[str] = []
    quantity: float = 1.0
    wastage_pct: float = 0.0
    shape: Optional[ShapeInstance] = None
    bought_out: Optional[BoughtOutSpec] = None
    fabrication: Optional[AssemblyFabrication] = None
    own_fabrication_cost: Optional[float] = None
    error: Optional[ItemError] = None
    notes: Optional[str] = None

    @property
    def is_assembly(self) -> bool:
        return self.kind == ItemKind.ASSEMBLY


# Fields update_item may change, and whether a change invalidates the calculated values
EDITABLE_FIELDS = {
    "name": False,
    "notes": False,
    "quantity": True,
    "wastage_pct": True,
    "shape": True,
    "bought_out": True,
    "fabrication": True,
}


def new_id() -> str:
    return uuid.uuid4().hex


class BOMTree(BaseModel):
    id: str
    name: str
    root_id: str
    items: Dict[str, BOMItem]
    version: int = 0
    currency: str = "INR"
    template_id: Optional[str] = None
    template_version: Optional[int] = None
    template_parameters: Dict[str, ParamValue] = {}

    # item id -> ItemRollup, derived data owned by RollupEngine
    _rollups: dict = PrivateAttr(default_factory=dict)

    @classmethod
    def create(cls, name: str, currency: str = "INR", tree_id: Optional[str] = None, **root_fields) -> "BOMTree":
        root = BOMItem(id=new_id(), name=root_fields.pop("root_name", name), kind=ItemKind.ASSEMBLY, **root_fields)
        tree = cls(id=tree_id or new_id(), name=name, root_id=root.id, items={root.id: root}, currency=currency)
        tree.renumber()
        return tree

    # --- reads ---

    @property
    def root(self) -> BOMItem:
        return self.items[self.root_id]

    def get(self, item_id: str) -> BOMItem:
        item = self.items.get(item_id)
        if item is None:
            raise ItemNotFoundError(f"Item not found: {item_id}", {"item_id": item_id, "tree_id": self.id})
        return item

    def children_of(self, item_id: str) -> List[BOMItem]:
        return [self.items[c] for c in self.get(item_id).children]

    def ancestors(self, item_id: str) -> Iterator[BOMItem]:
        """Parent, grandparent, ... up to the root."""
        parent_id = self.get(item_id).parent_id
        while parent_id is not None:
            parent = self.items[parent_id]
            yield parent
            parent_id = parent.parent_id

    def walk(self, item_id: Optional[str] = None) -> Iterator[BOMItem]:
        """Pre-order traversal in child order."""
        stack = [item_id or self.root_id]
        while stack:
            item = self.items[stack.pop()]
            yield item
            stack.extend(reversed(item.children))

    def descendant_ids(self, item_id: str) -> List[str]:
        return [item.id for item in self.walk(item_id)][1:]

    def leaves(self) -> List[BOMItem]:
        return [item for item in self.walk() if not item.is_assembly]

    def find_by_number(self, item_number: str) -> BOMItem:
        for item in self.items.values():
            if item.item_number == item_number:
                return item
        raise ItemNotFoundError(f"No item numbered {item_number}", {"item_number": item_number})

    # --- mutations ---

    def add_item(self, parent_id: str, item: BOMItem, expected_version: int,
                 position: Optional[int] = None) -> BOMItem:
        self._check_version(expected_version)
        parent = self._require_assembly(parent_id)
        if item.id in self.items:
            raise StructuralError(f"Item id {item.id} already exists", {"item_id": item.id})
        if item.children:
            raise StructuralError("New items are added without children", {"item_id": item.id})
        self._check_values(item)

        item = item.model_copy(update={"parent_id": parent_id})
        self.items[item.id] = item
        _insert(parent.children, item.id, position)
        self._committed(parent_id)
        logger.info("BOM %s: added %s under %s (v%d)", self.id, item.id, parent_id, self.version)
        return item

    def update_item(self, item_id: str, expected_version: int, **changes) -> BOMItem:
        self._check_version(expected_version)
        item = self.get(item_id)
        unknown = set(changes) - set(EDITABLE_FIELDS) - {"parameters", "material_id"}
        if unknown:
            raise StructuralError(f"Cannot update field(s): {', '.join(sorted(unknown))}", {"item_id": item_id})

        updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        if "parameters" in changes or "material_id" in changes:
            shape = updates.get("shape", item.shape)
            if shape is None:
                raise StructuralError(f"Item {item_id} has no shape to parameterize", {"item_id": item_id})
            shape_updates = {}
            if "parameters" in changes:
                shape_updates["parameters"] = {**shape.parameters, **changes["parameters"]}
            if "material_id" in changes:
                shape_updates["material_id"] = changes["material_id"]
            updates["shape"] = shape.model_copy(update=shape_updates)

        candidate = item.model_copy(update=updates)
        self._check_values(candidate)
        if any(EDITABLE_FIELDS.get(k, True) for k in changes):
            candidate = _stale(candidate)
        self.items[item_id] = candidate
        self._committed(item_id)
        return candidate

    def move_item(self, item_id: str, new_parent_id: str, expected_version: int,
                  position: Optional[int] = None) -> BOMItem:
        self._check_version(expected_version)
        item = self.get(item_id)
        if item_id == self.root_id:
            raise StructuralError("The root item cannot be moved", {"item_id": item_id})
        new_parent = self._require_assembly(new_parent_id)
        if new_parent_id == item_id or item_id in {a.id for a in self.ancestors(new_parent_id)}:
            raise StructuralError(
                f"Moving {item_id} under {new_parent_id} would make it its own ancestor",
                {"item_id": item_id, "new_parent_id": new_parent_id},
            )

        old_parent_id = item.parent_id
        self._invalidate_path(old_parent_id)
        self.items[old_parent_id].children.remove(item_id)
        _insert(new_parent.children, item_id, position)
        item.parent_id = new_parent_id
        self._committed(new_parent_id)
        logger.info("BOM %s: moved %s from %s to %s (v%d)", self.id, item_id, old_parent_id, new_parent_id, self.version)
        return item

    def duplicate_item(self, item_id: str, expected_version: int,
                       new_parent_id: Optional[str] = None) -> BOMItem:
        """Deep-copy a subtree with fresh ids; calculated values are copied too."""
        self._check_version(expected_version)
        source = self.get(item_id)
        target_id = new_parent_id or source.parent_id
        if target_id is None:
            raise StructuralError("Duplicating the root needs a target parent", {"item_id": item_id})
        target = self._require_assembly(target_id)

        id_map = {old: new_id() for old in [item_id] + self.descendant_ids(item_id)}
        copies = {}
        for old, fresh in id_map.items():
            original = self.items[old]
            copies[fresh] = original.model_copy(
                update={
                    "id": fresh,
                    "parent_id": target_id if old == item_id else id_map[original.parent_id],
                    "children": [id_map[c] for c in original.children],
                },
                deep=True,
            )
        self.items.update(copies)
        target.children.append(id_map[item_id])
        self._committed(target_id)
        return copies[id_map[item_id]]

    def delete_item(self, item_id: str, expected_version: int) -> List[str]:
        """Remove an item and its whole subtree. Returns the removed ids."""
        self._check_version(expected_version)
        item = self.get(item_id)
        if item_id == self.root_id:
            raise StructuralError("The root item cannot be deleted", {"item_id": item_id})
        removed = [item_id] + self.descendant_ids(item_id)
        self._invalidate_path(item.parent_id)
        self.items[item.parent_id].children.remove(item_id)
        for old in removed:
            del self.items[old]
            self._rollups.pop(old, None)
        self._committed(None)
        return removed

    def reorder_children(self, parent_id: str, child_ids: List[str], expected_version: int):
        self._check_version(expected_version)
        parent = self.get(parent_id)
        if sorted(child_ids) != sorted(parent.children):
            raise StructuralError("Reorder must list exactly the current children", {"item_id": parent_id})
        parent.children = list(child_ids)
        self._committed(parent_id)

    def touch(self, expected_version: int):
        """Version bump for a value refresh (e.g. re-pricing every leaf)."""
        self._check_version(expected_version)
        self._rollups.clear()
        self.version += 1

    # --- calculated values (set inside a mutation, no version bump) ---

    def record_result(self, item_id: str, result: ShapeInstanceResult, shape_version: int):
        item = self.get(item_id)
        item.shape = item.shape.model_copy(update={"result": result, "shape_version": shape_version})
        item.error = None
        self._invalidate_path(item_id)

    def record_own_fabrication(self, item_id: str, cost: Optional[float]):
        item = self.get(item_id)
        item.own_fabrication_cost = cost
        item.error = None
        self._invalidate_path(item_id)

    def record_error(self, item_id: str, error: BomCostError):
        item = self.get(item_id)
        if item.shape is not None:
            item.shape = item.shape.model_copy(update={"result": None})
        item.own_fabrication_cost = None
        item.error = ItemError.from_exception(error)
        self._invalidate_path(item_id)

    # --- structure ---

    def renumber(self):
        """Derive item numbers and levels from position: 1, 1.1, 1.2.1 ..."""
        root = self.root
        root.item_number, root.level = "1", 0
        for item in self.walk():
            for index, child_id in enumerate(item.children, start=1):
                child = self.items[child_id]
                child.item_number = f"{item.item_number}.{index}"
                child.level = item.level + 1

    def validate_structure(self):
        """Check the arena is one strict tree rooted at root_id."""
        if self.root_id not in self.items:
            raise StructuralError("Root item is missing", {"root_id": self.root_id})
        if self.root.parent_id is not None:
            raise StructuralError("Root item has a parent", {"root_id": self.root_id})

        seen = set()
        stack = [self.root_id]
        while stack:
            item_id = stack.pop()
            if item_id in seen:
                raise StructuralError(f"Item {item_id} is reachable twice", {"item_id": item_id})
            seen.add(item_id)
            item = self.items[item_id]
            if item.children and not item.is_assembly:
                raise StructuralError(f"Non-assembly item {item_id} has children", {"item_id": item_id})
            for child_id in item.children:
                child = self.items.get(child_id)
                if child is None:
                    raise StructuralError(f"Item {item_id} lists missing child {child_id}", {"item_id": item_id})
                if child.parent_id != item_id:
                    raise StructuralError(f"Item {child_id} disagrees about its parent", {"item_id": child_id})
                stack.append(child_id)

        orphans = sorted(set(self.items) - seen)
        if orphans:
            raise StructuralError(f"Items not reachable from the root: {orphans}", {"item_ids": orphans})

    # --- internals ---

    def _check_version(self, expected_version: int):
        if expected_version != self.version:
            logger.info("BOM %s: rejected stale write (expected v%d, at v%d)", self.id, expected_version, self.version)
            raise ConflictError(expected_version, self.version, self.id)

    def _require_assembly(self, item_id: str) -> BOMItem:
        item = self.get(item_id)
        if not item.is_assembly:
            raise StructuralError(
                f"Item {item_id} is a {item.kind.value}; only assemblies can have children",
                {"item_id": item_id},
            )
        return item

    def _check_values(self, item: BOMItem):
        detail = {"item_id": item.id}
        if item.is_assembly:
            if item.quantity != 1:
                raise ParameterRangeError("Assemblies carry quantity 1; put multiples on the leaves", detail)
            if item.shape is not None or item.bought_out is not None:
                raise StructuralError("Assemblies cannot carry a shape or bought-out spec", detail)
        elif item.fabrication is not None:
            raise StructuralError("Only assemblies carry their own fabrication", detail)
        if not item.quantity > 0:
            raise ParameterRangeError(f"Quantity must be greater than zero, got {item.quantity}", detail)
        if item.wastage_pct < 0:
            raise ParameterRangeError(f"Wastage % cannot be negative, got {item.wastage_pct}", detail)

    def _invalidate_path(self, item_id: Optional[str]):
        while item_id is not None:
            self._rollups.pop(item_id, None)
            item_id = self.items[item_id].parent_id

    def _committed(self, changed_id: Optional[str]):
        self._invalidate_path(changed_id)
        self.renumber()
        self.version += 1


def _insert(children: List[str], item_id: str, position: Optional[int]):
    if position is None:
        children.append(item_id)
    else:
        children.insert(position, item_id)


def _stale(item: BOMItem) -> BOMItem:
    """Drop calculated values after an input changed."""
    shape = item.shape.model_copy(update={"result": None}) if item.shape is not None else None
    return item.model_copy(update={"shape": shape, "own_fabrication_cost": None, "error": None})
