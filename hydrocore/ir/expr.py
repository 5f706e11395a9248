"""
Expression representation in the IR.

Expressions are symbolic mathematical expressions that can be:
- Evaluated by kernel executors (NumPy, JAX, CasADi)
- Converted to SymPy for simplification
- Rendered to flat operator form for previews

This is a simple tree-based representation similar to an AST.
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Expr:
    """Base class for all expressions."""

    pass


@dataclass(frozen=True)
class Literal(Expr):
    """Literal constant value."""

    value: Union[float, int, bool, str]

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class Slice(Expr):
    """
    Array slice: start:stop or :.

    Only the full slice ``:`` is produced by the kernel compiler; start/stop
    are 1-based and inclusive when given.
    """

    start: Union[Expr, None] = None
    stop: Union[Expr, None] = None

    @property
    def is_full(self) -> bool:
        return self.start is None and self.stop is None

    def __str__(self):
        if self.is_full:
            return ":"
        start_str = str(self.start) if self.start is not None else ""
        stop_str = str(self.stop) if self.stop is not None else ""
        return f"{start_str}:{stop_str}"


@dataclass(frozen=True)
class ComponentRefPart:
    """
    One part of a hierarchical component reference.

    Examples:
        x             -> ComponentRefPart("x")
        inputs[1]     -> ComponentRefPart("inputs", (Literal(1),))
        inputs[2, :]  -> ComponentRefPart("inputs", (Literal(2), Slice()))
    """

    name: str
    subscripts: tuple[Expr, ...] = ()

    def __str__(self):
        if self.subscripts:
            subs = ", ".join(str(s) for s in self.subscripts)
            return f"{self.name}[{subs}]"
        return self.name


@dataclass(frozen=True)
class ComponentRef(Expr):
    """
    Hierarchical component reference.

    Supports:
    - Simple variables: prcp
    - Bag access: pas.params.k
    - Array indexing: inputs[1, :]

    Examples:
        ComponentRef((ComponentRefPart("x"),))
        ComponentRef((ComponentRefPart("pas"), ComponentRefPart("params"), ComponentRefPart("k")))
    """

    parts: tuple[ComponentRefPart, ...]

    def __str__(self):
        return ".".join(str(p) for p in self.parts)

    @property
    def is_simple(self) -> bool:
        """True if this is just a simple variable reference (one part, no subscripts)."""
        return len(self.parts) == 1 and len(self.parts[0].subscripts) == 0

    @property
    def simple_name(self) -> str:
        """Get name if simple reference, else raise."""
        if not self.is_simple:
            raise ValueError(f"Not a simple reference: {self}")
        return self.parts[0].name


@dataclass(frozen=True)
class BinaryOp(Expr):
    """Binary operation: left op right."""

    op: str  # "+", "-", "*", "/", "^", "<", "<=", "and", ...
    left: Expr
    right: Expr

    def __str__(self):
        return f"({self.left} {self.op} {self.right})"


@dataclass(frozen=True)
class UnaryOp(Expr):
    """Unary operation: op operand."""

    op: str  # "-", "not"
    operand: Expr

    def __str__(self):
        return f"{self.op}({self.operand})"


@dataclass(frozen=True)
class FunctionCall(Expr):
    """Function call: func(args...)."""

    func: str
    args: tuple[Expr, ...]

    def __str__(self):
        args_str = ", ".join(str(a) for a in self.args)
        return f"{self.func}({args_str})"


@dataclass(frozen=True)
class IfExpr(Expr):
    """Conditional expression: if condition then true_expr else false_expr."""

    condition: Expr
    true_expr: Expr
    false_expr: Expr

    def __str__(self):
        return f"if {self.condition} then {self.true_expr} else {self.false_expr}"


@dataclass(frozen=True)
class ArrayLiteral(Expr):
    """Array literal: [elem1, elem2, ...], stacked along a new leading axis."""

    elements: tuple[Expr, ...]

    def __str__(self):
        elems_str = ", ".join(str(e) for e in self.elements)
        return f"[{elems_str}]"


@dataclass(frozen=True)
class Broadcast(Expr):
    """
    Element-wise marker.

    Every operator inside ``expr`` applies element-wise to its operands.
    Created through ``hydrocore.ir.rank.apply_broadcast`` which never nests
    markers.
    """

    expr: Expr

    def __str__(self):
        return f"@.({self.expr})"


# Precedence table for flat rendering; higher binds tighter.
_PRECEDENCE = {
    "or": 1,
    "and": 2,
    "<": 4,
    "<=": 4,
    ">": 4,
    ">=": 4,
    "==": 4,
    "!=": 4,
    "+": 5,
    "-": 5,
    "*": 6,
    "/": 6,
    "^": 8,
}
_UNARY_PRECEDENCE = 7
_ATOM = 10


def _render(expr: Expr) -> tuple[str, int]:
    if isinstance(expr, Literal):
        text = str(expr.value)
        if isinstance(expr.value, (int, float)) and not isinstance(expr.value, bool) and expr.value < 0:
            return text, _UNARY_PRECEDENCE
        return text, _ATOM
    elif isinstance(expr, ComponentRef):
        parts = []
        for part in expr.parts:
            if part.subscripts:
                subs = ", ".join(render(s) for s in part.subscripts)
                parts.append(f"{part.name}[{subs}]")
            else:
                parts.append(part.name)
        return ".".join(parts), _ATOM
    elif isinstance(expr, BinaryOp):
        prec = _PRECEDENCE.get(expr.op, 3)
        left, left_prec = _render(expr.left)
        right, right_prec = _render(expr.right)
        # "^" is right associative, everything else left associative
        if expr.op == "^":
            if left_prec <= prec:
                left = f"({left})"
            if right_prec < prec:
                right = f"({right})"
        else:
            if left_prec < prec:
                left = f"({left})"
            if right_prec <= prec:
                right = f"({right})"
        return f"{left} {expr.op} {right}", prec
    elif isinstance(expr, UnaryOp):
        operand, operand_prec = _render(expr.operand)
        if operand_prec < _UNARY_PRECEDENCE:
            operand = f"({operand})"
        sep = " " if expr.op.isalpha() else ""
        return f"{expr.op}{sep}{operand}", _UNARY_PRECEDENCE
    elif isinstance(expr, FunctionCall):
        return f"{expr.func}({', '.join(render(a) for a in expr.args)})", _ATOM
    elif isinstance(expr, IfExpr):
        text = (
            f"if {render(expr.condition)} then {render(expr.true_expr)} "
            f"else {render(expr.false_expr)}"
        )
        return text, 0
    elif isinstance(expr, ArrayLiteral):
        return f"[{', '.join(render(e) for e in expr.elements)}]", _ATOM
    elif isinstance(expr, Slice):
        return str(expr), _ATOM
    elif isinstance(expr, Broadcast):
        return f"@. {render(expr.expr)}", 0
    raise ValueError(f"Unknown expression type: {type(expr)}")


def render(expr: Expr) -> str:
    """
    Render an expression to flat operator form with minimal parentheses.

    Example:
        >>> render(Expr.mul(Expr.var_ref("k"), Expr.add(Expr.var_ref("a"), Expr.var_ref("b"))))
        'k * (a + b)'
    """
    return _render(expr)[0]


def free_variables(expr: Expr) -> tuple[str, ...]:
    """Names of the simple variables an expression reads, in first-use order."""
    found: dict[str, None] = {}

    def visit(e: Expr) -> None:
        if isinstance(e, ComponentRef):
            found.setdefault(e.parts[0].name)
            for part in e.parts:
                for sub in part.subscripts:
                    visit(sub)
        elif isinstance(e, BinaryOp):
            visit(e.left)
            visit(e.right)
        elif isinstance(e, UnaryOp):
            visit(e.operand)
        elif isinstance(e, FunctionCall):
            for arg in e.args:
                visit(arg)
        elif isinstance(e, IfExpr):
            visit(e.condition)
            visit(e.true_expr)
            visit(e.false_expr)
        elif isinstance(e, ArrayLiteral):
            for elem in e.elements:
                visit(elem)
        elif isinstance(e, Broadcast):
            visit(e.expr)
        elif isinstance(e, Slice):
            if e.start is not None:
                visit(e.start)
            if e.stop is not None:
                visit(e.stop)

    visit(expr)
    return tuple(found)


# Convenience constructors for common patterns
class ExprBuilder:
    """Helper class for building expressions with a fluent API."""

    @staticmethod
    def literal(value: Union[float, int, bool, str]) -> Literal:
        """Create a literal expression."""
        return Literal(value)

    @staticmethod
    def var_ref(name: str) -> ComponentRef:
        """Create a simple variable reference."""
        return ComponentRef((ComponentRefPart(name),))

    @staticmethod
    def component_ref(*parts: Union[str, tuple[str, tuple[Expr, ...]]]) -> ComponentRef:
        """
        Create hierarchical component reference.

        Examples:
            component_ref("pas", "params", "k")          # pas.params.k
            component_ref(("inputs", (Literal(1),)))      # inputs[1]
        """
        ref_parts = []
        for part in parts:
            if isinstance(part, str):
                ref_parts.append(ComponentRefPart(part))
            else:
                name, subs = part
                ref_parts.append(ComponentRefPart(name, tuple(subs)))
        return ComponentRef(tuple(ref_parts))

    @staticmethod
    def binary_op(op: str, left: Expr, right: Expr) -> BinaryOp:
        """Create a binary operation."""
        return BinaryOp(op, left, right)

    @staticmethod
    def unary_op(op: str, operand: Expr) -> UnaryOp:
        """Create a unary operation."""
        return UnaryOp(op, operand)

    @staticmethod
    def call(func: str, *args: Expr) -> FunctionCall:
        """Create a function call."""
        return FunctionCall(func, args)

    @staticmethod
    def if_expr(condition: Expr, true_expr: Expr, false_expr: Expr) -> IfExpr:
        """Create a conditional expression."""
        return IfExpr(condition, true_expr, false_expr)

    @staticmethod
    def array_literal(*elements: Expr) -> ArrayLiteral:
        """Create an array literal."""
        return ArrayLiteral(elements)

    @staticmethod
    def slice(start: Union[Expr, None] = None, stop: Union[Expr, None] = None) -> Slice:
        """Create a slice expression (``slice()`` is ``:``)."""
        return Slice(start, stop)

    # Common operators
    @staticmethod
    def add(left: Expr, right: Expr) -> BinaryOp:
        """left + right"""
        return BinaryOp("+", left, right)

    @staticmethod
    def sub(left: Expr, right: Expr) -> BinaryOp:
        """left - right"""
        return BinaryOp("-", left, right)

    @staticmethod
    def mul(left: Expr, right: Expr) -> BinaryOp:
        """left * right"""
        return BinaryOp("*", left, right)

    @staticmethod
    def div(left: Expr, right: Expr) -> BinaryOp:
        """left / right"""
        return BinaryOp("/", left, right)

    @staticmethod
    def pow(left: Expr, right: Expr) -> BinaryOp:
        """left ^ right"""
        return BinaryOp("^", left, right)

    @staticmethod
    def neg(operand: Expr) -> UnaryOp:
        """-operand"""
        return UnaryOp("-", operand)

    @staticmethod
    def le(left: Expr, right: Expr) -> BinaryOp:
        """left <= right"""
        return BinaryOp("<=", left, right)

    @staticmethod
    def gt(left: Expr, right: Expr) -> BinaryOp:
        """left > right"""
        return BinaryOp(">", left, right)

    @staticmethod
    def and_(left: Expr, right: Expr) -> BinaryOp:
        """left and right"""
        return BinaryOp("and", left, right)

    # Common functions
    @staticmethod
    def exp(x: Expr) -> FunctionCall:
        """exp(x)"""
        return FunctionCall("exp", (x,))

    @staticmethod
    def log(x: Expr) -> FunctionCall:
        """log(x)"""
        return FunctionCall("log", (x,))

    @staticmethod
    def sqrt(x: Expr) -> FunctionCall:
        """sqrt(x)"""
        return FunctionCall("sqrt", (x,))

    @staticmethod
    def tanh(x: Expr) -> FunctionCall:
        """tanh(x)"""
        return FunctionCall("tanh", (x,))

    @staticmethod
    def abs(x: Expr) -> FunctionCall:
        """abs(x)"""
        return FunctionCall("abs", (x,))

    @staticmethod
    def min(*args: Expr) -> FunctionCall:
        """min(args...)"""
        return FunctionCall("min", args)

    @staticmethod
    def max(*args: Expr) -> FunctionCall:
        """max(args...)"""
        return FunctionCall("max", args)

    @staticmethod
    def ceil(x: Expr) -> FunctionCall:
        """ceil(x)"""
        return FunctionCall("ceil", (x,))

    @staticmethod
    def vcat(*args: Expr) -> FunctionCall:
        """Flat concatenation of the arguments."""
        return FunctionCall("vcat", args)


# Make ExprBuilder available as Expr for convenience
# This allows: Expr.var_ref("x") instead of ExprBuilder.var_ref("x")
for name in dir(ExprBuilder):
    if not name.startswith("_"):
        setattr(Expr, name, getattr(ExprBuilder, name))


def as_expr(value: Union[Expr, float, int]) -> Expr:
    """Wrap plain numbers in a Literal, pass expressions through."""
    if isinstance(value, Expr):
        return value
    return Literal(value)
