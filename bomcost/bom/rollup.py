"""
Cost rollup engine — bottom-up aggregation over a BOM tree.

Leaves contribute what their last calculation produced (shape result or
bought-out price). Assemblies are the sum of their children plus their own
fabrication cost. Overhead, contingency and margin are applied once, at the
top, in rollup(); never per item.

Rollups are cached per item on the tree. Mutations drop the cache along the
changed item's ancestor chain, so after editing one leaf recalc_subtree()
only re-rolls that chain: O(depth), not O(size).

A leaf with an error or no calculated values counts as zero and marks every
ancestor rollup `partial` instead of failing the whole pass.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..errors import BomCostError, UnitError
from ..rates import CostRates, OverheadBasis
from ..units import Quantity, q
from .tree import BOMItem, BOMTree, ItemKind

logger = logging.getLogger(__name__)


class BrokenItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    kind: str
    message: str


class ItemRollup(BaseModel):
    model_config = ConfigDict(frozen=True)

    item_id: str
    weight_kg: float
    material_cost: float
    fabrication_cost: float
    own_fabrication_cost: float = 0.0
    total_cost: float
    leaf_count: int = 0
    assembly_count: int = 0
    part_count: int = 0
    raw_material_count: int = 0
    bought_out_count: int = 0
    partial: bool = False
    broken: List[BrokenItem] = []


class BOMSummary(BaseModel):
    """Whole-tree totals. Always derived from a tree, never stored on its own."""

    tree_id: str
    tree_version: int
    currency: str
    total_weight: Quantity
    total_material_cost: float
    total_fabrication_cost: float
    direct_cost: float
    overhead: float = 0.0
    contingency: float = 0.0
    subtotal: float
    margin: float = 0.0
    final_price: float
    item_count: int
    assembly_count: int
    part_count: int
    raw_material_count: int
    bought_out_count: int
    leaf_count: int
    partial: bool
    broken: List[BrokenItem] = []


def leaf_values(item: BOMItem, currency: str):
    """(weight kg, material cost, fabrication cost) of a leaf, or raise."""
    if item.error is not None:
        raise BomCostError(item.error.message, {"kind": item.error.kind, **item.error.detail})
    if item.shape is not None:
        result = item.shape.result
        if result is None:
            raise BomCostError(f"Item {item.item_number} has not been calculated", {"kind": "NotCalculated"})
        return result.total_weight.magnitude("kg"), result.material_cost, result.fabrication_cost
    if item.bought_out is not None:
        spec = item.bought_out
        if spec.currency != currency:
            raise UnitError(f"Bought-out item priced in {spec.currency}, BOM is in {currency}")
        total_quantity = item.quantity * (1 + item.wastage_pct / 100.0)
        return spec.unit_weight_kg * item.quantity, spec.unit_price * total_quantity, 0.0
    raise BomCostError(
        f"Item {item.item_number} has no shape, material or bought-out specification",
        {"kind": "MissingSpecification"},
    )


class RollupEngine:
    """Stateless apart from the pricing policy; caches live on the tree."""

    def __init__(self, rates: Optional[CostRates] = None):
        self.rates = rates or CostRates()

    def rollup(self, tree: BOMTree) -> BOMSummary:
        self._ensure(tree, tree.root_id)
        root = tree._rollups[tree.root_id]
        return self._price(tree, root)

    def recalc_subtree(self, tree: BOMTree, item_id: str) -> ItemRollup:
        """
        Re-roll one item from its children, then every ancestor up to the root.

        Siblings along the chain keep their cached rollups. Any that are missing
        (a tree just loaded from storage starts with an empty cache) are rolled
        on the way up.
        """
        tree.get(item_id)
        cache = tree._rollups
        cache.pop(item_id, None)
        for ancestor in tree.ancestors(item_id):
            cache.pop(ancestor.id, None)
        self._ensure(tree, tree.root_id)
        return cache[item_id]

    def item_rollup(self, tree: BOMTree, item_id: str) -> ItemRollup:
        tree.get(item_id)
        self._ensure(tree, item_id)
        return tree._rollups[item_id]

    def flatten(self, tree: BOMTree) -> List[dict]:
        """Export rows in item-number order."""
        self._ensure(tree, tree.root_id)
        rows = []
        for item in tree.walk():
            rolled = tree._rollups[item.id]
            shape = item.shape
            rows.append({
                "item_id": item.id,
                "item_number": item.item_number,
                "level": item.level,
                "name": item.name,
                "kind": item.kind.value,
                "shape_id": shape.shape_id if shape else None,
                "material_id": shape.material_id if shape else None,
                "description": item.bought_out.description if item.bought_out else None,
                "quantity": item.quantity,
                "wastage_pct": item.wastage_pct,
                "weight_kg": rolled.weight_kg,
                "material_cost": rolled.material_cost,
                "fabrication_cost": rolled.fabrication_cost,
                "total_cost": rolled.total_cost,
                "partial": rolled.partial,
                "error": item.error.message if item.error else None,
            })
        return rows

    # --- internals ---

    def _ensure(self, tree: BOMTree, item_id: str):
        """Post-order fill of missing cache entries below and at item_id."""
        cache = tree._rollups
        stack = [(item_id, False)]
        while stack:
            current, children_done = stack.pop()
            if current in cache:
                continue
            item = tree.items[current]
            if not item.is_assembly:
                cache[current] = self._roll_leaf(tree, item)
            elif children_done:
                cache[current] = self._roll_assembly(tree, item)
            else:
                stack.append((current, True))
                stack.extend((child, False) for child in reversed(item.children) if child not in cache)

    def _roll_leaf(self, tree: BOMTree, item: BOMItem) -> ItemRollup:
        counts = {
            "leaf_count": 1,
            "part_count": int(item.kind == ItemKind.PART),
            "raw_material_count": int(item.kind == ItemKind.RAW_MATERIAL),
            "bought_out_count": int(item.bought_out is not None),
        }
        try:
            weight, material, fabrication = leaf_values(item, tree.currency)
        except BomCostError as e:
            kind = e.detail.get("kind", type(e).__name__)
            return ItemRollup(
                item_id=item.id, weight_kg=0.0, material_cost=0.0, fabrication_cost=0.0, total_cost=0.0,
                partial=True, broken=[BrokenItem(item_id=item.id, kind=kind, message=e.message)], **counts,
            )
        return ItemRollup(
            item_id=item.id, weight_kg=weight, material_cost=material, fabrication_cost=fabrication,
            total_cost=material + fabrication, **counts,
        )

    def _roll_assembly(self, tree: BOMTree, item: BOMItem) -> ItemRollup:
        children = [tree._rollups[c] for c in item.children]
        broken = [b for child in children for b in child.broken]
        partial = any(child.partial for child in children)

        own = 0.0
        if item.error is not None:
            partial = True
            broken.append(BrokenItem(item_id=item.id, kind=item.error.kind, message=item.error.message))
        elif item.fabrication is not None:
            if item.own_fabrication_cost is None:
                partial = True
                broken.append(BrokenItem(item_id=item.id, kind="NotCalculated",
                                         message=f"Own fabrication of {item.item_number} has not been costed"))
            else:
                own = item.own_fabrication_cost

        weight = sum(child.weight_kg for child in children)
        material = sum(child.material_cost for child in children)
        fabrication = sum(child.fabrication_cost for child in children) + own
        return ItemRollup(
            item_id=item.id,
            weight_kg=weight,
            material_cost=material,
            fabrication_cost=fabrication,
            own_fabrication_cost=own,
            total_cost=material + fabrication,
            leaf_count=sum(c.leaf_count for c in children),
            assembly_count=1 + sum(c.assembly_count for c in children),
            part_count=sum(c.part_count for c in children),
            raw_material_count=sum(c.raw_material_count for c in children),
            bought_out_count=sum(c.bought_out_count for c in children),
            partial=partial,
            broken=broken,
        )

    def _price(self, tree: BOMTree, root: ItemRollup) -> BOMSummary:
        rates = self.rates
        direct = root.material_cost + root.fabrication_cost

        if rates.overhead_amount is not None:
            overhead = rates.overhead_amount
        elif rates.overhead_pct is not None:
            basis = {
                OverheadBasis.ALL: direct,
                OverheadBasis.MATERIAL: root.material_cost,
                OverheadBasis.FABRICATION: root.fabrication_cost,
            }[rates.overhead_basis]
            overhead = basis * rates.overhead_pct / 100.0
        else:
            overhead = 0.0

        contingency = (direct + overhead) * (rates.contingency_pct or 0.0) / 100.0
        subtotal = direct + overhead + contingency

        if rates.target_profit is not None:
            margin = rates.target_profit
        elif rates.margin_pct is not None:
            margin = subtotal * rates.margin_pct / 100.0
        else:
            margin = 0.0

        if root.partial:
            logger.debug("BOM %s v%d rolled up with %d broken item(s)", tree.id, tree.version, len(root.broken))

        return BOMSummary(
            tree_id=tree.id,
            tree_version=tree.version,
            currency=tree.currency,
            total_weight=q(root.weight_kg, "kg"),
            total_material_cost=root.material_cost,
            total_fabrication_cost=root.fabrication_cost,
            direct_cost=direct,
            overhead=overhead,
            contingency=contingency,
            subtotal=subtotal,
            margin=margin,
            final_price=subtotal + margin,
            item_count=len(tree.items),
            assembly_count=root.assembly_count,
            part_count=root.part_count,
            raw_material_count=root.raw_material_count,
            bought_out_count=root.bought_out_count,
            leaf_count=root.leaf_count,
            partial=root.partial,
            broken=root.broken,
        )


def rollup(tree: BOMTree, rates: Optional[CostRates] = None) -> BOMSummary:
    return RollupEngine(rates).rollup(tree)


def recalc_subtree(tree: BOMTree, item_id: str, rates: Optional[CostRates] = None) -> ItemRollup:
    return RollupEngine(rates).recalc_subtree(tree, item_id)
