"""
BOM tree arena, bottom-up cost rollup, and the service that ties
mutations to leaf recalculation.
"""

from .rollup import BOMSummary, ItemRollup, RollupEngine, recalc_subtree, rollup
from .service import BOMService
from .tree import (
    AssemblyFabrication,
    BOMItem,
    BOMTree,
    BoughtOutSpec,
    ItemKind,
    ShapeInstance,
    new_id,
)
