"""
Built-in shape catalog — published into every default ShapeLibrary.
"""

from . import heat_exchanger, plates, vessels

BUILTIN_SHAPES = plates.SHAPES + vessels.SHAPES + heat_exchanger.SHAPES
