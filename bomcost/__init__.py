"""Parametric shape calculation and bill-of-materials cost rollup."""

__version__ = "0.1.0"
