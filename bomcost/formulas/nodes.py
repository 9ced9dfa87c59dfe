"""
Immutable AST nodes produced by the formula parser.

Nodes are frozen dataclasses so a compiled expression can be cached and
shared between evaluations without any risk of one caller mutating it.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Number:
    value: float


@dataclass(frozen=True)
class Name:
    name: str


@dataclass(frozen=True)
class Unary:
    op: str  # "+" or "-"
    operand: object


@dataclass(frozen=True)
class Binary:
    op: str  # + - * / ^ and the comparison operators
    left: object
    right: object


@dataclass(frozen=True)
class Call:
    func: str
    args: Tuple[object, ...]


def walk(node):
    """Yield every node of the tree, parents before children."""
    yield node
    if isinstance(node, Unary):
        yield from walk(node.operand)
    elif isinstance(node, Binary):
        yield from walk(node.left)
        yield from walk(node.right)
    elif isinstance(node, Call):
        for arg in node.args:
            yield from walk(arg)
