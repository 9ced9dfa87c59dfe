"""
BOM service — one call per user action: mutate, recalculate what the
mutation touched, re-roll the affected ancestor chains.

Leaf calculation reads the material catalog once per material per pass
(PassCache) and never stores prices anywhere except in the leaf's result.
Leaf failures are recorded on the item and logged; they never abort the
action. Structural and version errors propagate untouched.

A service built without rates costs material only: shape fabrication
models are skipped and assemblies contribute just their fixed cost.
"""

import logging
from typing import List, Optional, Tuple

from ..errors import LEAF_ERRORS, MissingParameterError
from ..materials import MaterialLookup, PassCache
from ..rates import CostRates
from ..shapes import ShapeCalculator, ShapeLibrary
from .rollup import BOMSummary, RollupEngine
from .tree import BOMItem, BOMTree

logger = logging.getLogger(__name__)


class BOMService:
    def __init__(self, library: ShapeLibrary, materials: MaterialLookup,
                 rates: Optional[CostRates] = None, lookup_budget_ms: Optional[float] = None):
        self.library = library
        self.materials = materials
        self.rates = rates
        self.lookup_budget_ms = lookup_budget_ms
        self.calculator = ShapeCalculator()
        self.rollup_engine = RollupEngine(rates)

    # --- calculation ---

    def calculate_item(self, tree: BOMTree, item_id: str, lookup: Optional[MaterialLookup] = None):
        """Recalculate one item's own values in place (no version bump)."""
        item = tree.get(item_id)
        lookup = lookup or PassCache(self.materials, self.lookup_budget_ms)
        try:
            if item.shape is not None:
                self._calculate_shape(tree, item, lookup)
            elif item.fabrication is not None:
                tree.record_own_fabrication(item_id, self._own_fabrication(item))
        except LEAF_ERRORS as e:
            logger.warning("BOM %s item %s (%s): %s", tree.id, item.item_number, item_id, e.message)
            tree.record_error(item_id, e)

    def calculate_all(self, tree: BOMTree, expected_version: int) -> BOMSummary:
        """Re-price every item against current catalog data; one version bump."""
        tree.touch(expected_version)
        lookup = PassCache(self.materials, self.lookup_budget_ms)
        for item in list(tree.walk()):
            self.calculate_item(tree, item.id, lookup)
        logger.info("BOM %s: recalculated %d items with %d material reads",
                    tree.id, len(tree.items), lookup.reads)
        return self.rollup_engine.rollup(tree)

    def summary(self, tree: BOMTree) -> BOMSummary:
        return self.rollup_engine.rollup(tree)

    def instantiate(self, template, parameter_map) -> Tuple[BOMTree, BOMSummary]:
        """Build a tree from a template, then price every leaf once."""
        from ..templates.engine import TemplateEngine
        tree = TemplateEngine(self.library).instantiate(template, parameter_map)
        return tree, self.calculate_all(tree, tree.version)

    # --- mutations ---

    def add_item(self, tree: BOMTree, parent_id: str, item: BOMItem, expected_version: int,
                 position: Optional[int] = None) -> Tuple[BOMItem, BOMSummary]:
        added = tree.add_item(parent_id, item, expected_version, position)
        self.calculate_item(tree, added.id)
        self.rollup_engine.recalc_subtree(tree, added.id)
        return tree.get(added.id), self.rollup_engine.rollup(tree)

    def update_item(self, tree: BOMTree, item_id: str, expected_version: int, **changes) -> BOMSummary:
        tree.update_item(item_id, expected_version, **changes)
        self.calculate_item(tree, item_id)
        self.rollup_engine.recalc_subtree(tree, item_id)
        return self.rollup_engine.rollup(tree)

    def move_item(self, tree: BOMTree, item_id: str, new_parent_id: str, expected_version: int,
                  position: Optional[int] = None) -> BOMSummary:
        tree.move_item(item_id, new_parent_id, expected_version, position)
        return self.rollup_engine.rollup(tree)

    def duplicate_item(self, tree: BOMTree, item_id: str, expected_version: int,
                       new_parent_id: Optional[str] = None) -> Tuple[BOMItem, BOMSummary]:
        copy = tree.duplicate_item(item_id, expected_version, new_parent_id)
        return copy, self.rollup_engine.rollup(tree)

    def delete_item(self, tree: BOMTree, item_id: str, expected_version: int) -> Tuple[List[str], BOMSummary]:
        removed = tree.delete_item(item_id, expected_version)
        return removed, self.rollup_engine.rollup(tree)

    # --- internals ---

    def _calculate_shape(self, tree: BOMTree, item: BOMItem, lookup: MaterialLookup):
        instance = item.shape
        shape = self.library.get(instance.shape_id, instance.shape_version)
        if not instance.material_id:
            raise MissingParameterError(
                f"Item {item.item_number} has no material selected",
                {"item_id": item.id, "parameter": "material_id"},
            )
        material = lookup.get_material(instance.material_id)
        result = self.calculator.calculate(
            shape, instance.parameters, material, item.quantity, item.wastage_pct,
            rates=self.rates, currency=tree.currency,
        )
        tree.record_result(item.id, result, shape.version)

    def _own_fabrication(self, item: BOMItem) -> float:
        fab = item.fabrication
        cost = fab.fixed_cost
        if self.rates is None:
            return cost
        if fab.labor_hours:
            cost += fab.labor_hours * self.rates.require("labor_rate_per_hour", item.id)
        if fab.weld_length_m:
            cost += fab.weld_length_m * self.rates.require("welding_rate_per_meter", item.id)
        if fab.machining_hours:
            cost += fab.machining_hours * self.rates.require("machining_rate_per_hour", item.id)
        return cost
