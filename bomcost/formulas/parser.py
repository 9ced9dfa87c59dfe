"""
Tokenizer and recursive-descent parser for shape and template formulas.

Formula language:
    numbers       12, 0.5, .5, 1e-9
    names         L, SHELL_DIAMETER, pi
    operators     + - * / ^   (** is accepted as ^)
    comparisons   < <= > >= == !=   (evaluate to 1.0 / 0.0)
    calls         sqrt(x), max(a, b, c), if(cond, a, b)

Precedence, lowest first: comparison, additive, multiplicative, unary, power.
Power is right-associative, so -2^2 == -4 and 2^3^2 == 512.

The parser only builds an AST; nothing in the text is ever executed.
"""

import re
from typing import List, NamedTuple

from ..errors import FormulaSyntaxError
from .nodes import Binary, Call, Name, Number, Unary

# Function name -> (min args, max args). None means unbounded.
FUNCTIONS = {
    "sqrt": (1, 1),
    "pow": (2, 2),
    "abs": (1, 1),
    "sin": (1, 1),
    "cos": (1, 1),
    "tan": (1, 1),
    "asin": (1, 1),
    "acos": (1, 1),
    "atan": (1, 1),
    "atan2": (2, 2),
    "exp": (1, 1),
    "log": (1, 1),
    "log10": (1, 1),
    "min": (1, None),
    "max": (1, None),
    "floor": (1, 1),
    "ceil": (1, 1),
    "round": (1, 2),
    "rad": (1, 1),
    "deg": (1, 1),
    "if": (3, 3),
}

COMPARISONS = ("<=", ">=", "==", "!=", "<", ">")

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>\*\*|<=|>=|==|!=|[-+*/^(),<>])
    """,
    re.VERBOSE,
)


class Token(NamedTuple):
    kind: str   # "number", "name", "op", "end"
    text: str
    pos: int


def tokenize(expression: str) -> List[Token]:
    tokens = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if not match:
            raise FormulaSyntaxError(
                f"Unexpected character '{expression[pos]}' at position {pos}",
                expression, pos,
            )
        kind = match.lastgroup
        text = match.group()
        if kind != "ws":
            if text == "**":
                text = "^"
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    tokens.append(Token("end", "", len(expression)))
    return tokens


class Parser:
    """Builds an AST from a token list. One instance per expression."""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0

    def parse(self):
        if self.tokens[0].kind == "end":
            raise FormulaSyntaxError("Empty expression", self.expression, 0)
        node = self._comparison()
        tok = self._peek()
        if tok.kind != "end":
            self._fail(f"Unexpected '{tok.text}'", tok)
        return node

    # --- token helpers ---

    def _peek(self) -> Token:
        return self.tokens[self.pos]

    def _next(self) -> Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _accept(self, *ops) -> bool:
        tok = self._peek()
        if tok.kind == "op" and tok.text in ops:
            self.pos += 1
            return True
        return False

    def _expect(self, op: str):
        tok = self._peek()
        if tok.kind != "op" or tok.text != op:
            found = tok.text or "end of expression"
            self._fail(f"Expected '{op}' but found '{found}'", tok)
        self.pos += 1

    def _fail(self, message: str, tok: Token):
        raise FormulaSyntaxError(f"{message} at position {tok.pos}", self.expression, tok.pos)

    # --- grammar ---

    def _comparison(self):
        node = self._additive()
        tok = self._peek()
        while tok.kind == "op" and tok.text in COMPARISONS:
            self.pos += 1
            node = Binary(tok.text, node, self._additive())
            tok = self._peek()
        return node

    def _additive(self):
        node = self._multiplicative()
        tok = self._peek()
        while tok.kind == "op" and tok.text in ("+", "-"):
            self.pos += 1
            node = Binary(tok.text, node, self._multiplicative())
            tok = self._peek()
        return node

    def _multiplicative(self):
        node = self._unary()
        tok = self._peek()
        while tok.kind == "op" and tok.text in ("*", "/"):
            self.pos += 1
            node = Binary(tok.text, node, self._unary())
            tok = self._peek()
        return node

    def _unary(self):
        tok = self._peek()
        if tok.kind == "op" and tok.text in ("+", "-"):
            self.pos += 1
            return Unary(tok.text, self._unary())
        return self._power()

    def _power(self):
        base = self._primary()
        if self._accept("^"):
            # Right-associative; the exponent may carry its own sign.
            return Binary("^", base, self._unary())
        return base

    def _primary(self):
        tok = self._next()
        if tok.kind == "number":
            return Number(float(tok.text))
        if tok.kind == "name":
            if self._accept("("):
                return self._call(tok)
            return Name(tok.text)
        if tok.kind == "op" and tok.text == "(":
            node = self._comparison()
            self._expect(")")
            return node
        found = tok.text or "end of expression"
        self._fail(f"Unexpected '{found}'", tok)

    def _call(self, name_tok: Token):
        func = name_tok.text
        if func not in FUNCTIONS:
            self._fail(f"Unknown function '{func}'", name_tok)
        args = []
        if not self._accept(")"):
            args.append(self._comparison())
            while self._accept(","):
                args.append(self._comparison())
            self._expect(")")
        low, high = FUNCTIONS[func]
        if len(args) < low or (high is not None and len(args) > high):
            expected = str(low) if low == high else f"{low}..{high or 'n'}"
            self._fail(f"{func}() takes {expected} argument(s), got {len(args)}", name_tok)
        return Call(func, tuple(args))


def parse(expression: str):
    """Parse expression text into an immutable AST."""
    return Parser(expression).parse()
