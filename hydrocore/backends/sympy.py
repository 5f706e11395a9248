"""
SymPy backend for symbolic manipulation of flux expressions.

Converts IR expressions to SymPy and back, enabling:
- Symbolic simplification before kernel generation
- Analytical derivatives of flux expressions
- LaTeX export for documentation

Only plain expressions convert. Subscripted references, element-wise markers
and array literals have no scalar SymPy counterpart.
"""

from collections.abc import Mapping
from typing import Optional

import sympy as sp

from hydrocore.ir.expr import (
    Expr,
    Literal,
    ComponentRef,
    ComponentRefPart,
    BinaryOp,
    UnaryOp,
    FunctionCall,
    IfExpr,
    ArrayLiteral,
    Slice,
    Broadcast,
)

# Map IR function names to SymPy functions
_FUNC_MAP = {
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "tanh": sp.tanh,
    "exp": sp.exp,
    "log": sp.log,
    "log10": lambda x: sp.log(x, 10),
    "sqrt": sp.sqrt,
    "abs": sp.Abs,
    "sign": sp.sign,
    "min": sp.Min,
    "max": sp.Max,
    "floor": sp.floor,
    "ceil": sp.ceiling,
    "step": sp.Heaviside,
}

# Reverse map for the common SymPy function classes
_SYMPY_FUNCS = {
    sp.sin: "sin",
    sp.cos: "cos",
    sp.tan: "tan",
    sp.tanh: "tanh",
    sp.exp: "exp",
    sp.log: "log",
    sp.Abs: "abs",
    sp.sign: "sign",
    sp.floor: "floor",
    sp.ceiling: "ceil",
    sp.Heaviside: "step",
}

_RELATIONS = {
    sp.StrictLessThan: "<",
    sp.LessThan: "<=",
    sp.StrictGreaterThan: ">",
    sp.GreaterThan: ">=",
    sp.Equality: "==",
    sp.Unequality: "!=",
}


def to_sympy(expr: Expr, symbols: Optional[Mapping[str, sp.Symbol]] = None) -> sp.Basic:
    """
    Convert an IR expression to SymPy.

    Args:
        expr: Expression to convert
        symbols: Optional name -> symbol map, new real symbols are created
            for names not in it

    Example:
        >>> to_sympy(Expr.mul(Expr.var_ref("k"), Expr.var_ref("s")))
        k*s
    """
    table = dict(symbols or {})

    def convert(e: Expr) -> sp.Basic:
        if isinstance(e, Literal):
            if isinstance(e.value, bool):
                return sp.true if e.value else sp.false
            elif isinstance(e.value, int):
                return sp.Integer(e.value)
            elif isinstance(e.value, float):
                return sp.Float(e.value)
            return sp.sympify(e.value)

        elif isinstance(e, ComponentRef):
            if any(p.subscripts for p in e.parts):
                raise ValueError(f"Subscripted reference '{e}' cannot be converted to SymPy")
            name = ".".join(p.name for p in e.parts)
            if name not in table:
                table[name] = sp.Symbol(name, real=True)
            return table[name]

        elif isinstance(e, BinaryOp):
            left = convert(e.left)
            right = convert(e.right)
            op_map = {
                "+": lambda l, r: l + r,
                "-": lambda l, r: l - r,
                "*": lambda l, r: l * r,
                "/": lambda l, r: l / r,
                "^": lambda l, r: l**r,
                "==": lambda l, r: sp.Eq(l, r),
                "!=": lambda l, r: sp.Ne(l, r),
                "<": lambda l, r: l < r,
                "<=": lambda l, r: l <= r,
                ">": lambda l, r: l > r,
                ">=": lambda l, r: l >= r,
                "and": lambda l, r: sp.And(l, r),
                "or": lambda l, r: sp.Or(l, r),
            }
            if e.op in op_map:
                return op_map[e.op](left, right)
            raise ValueError(f"Unsupported binary operator: {e.op}")

        elif isinstance(e, UnaryOp):
            operand = convert(e.operand)
            if e.op == "-":
                return -operand
            elif e.op == "+":
                return operand
            elif e.op == "not":
                return sp.Not(operand)
            raise ValueError(f"Unsupported unary operator: {e.op}")

        elif isinstance(e, FunctionCall):
            if e.func not in _FUNC_MAP:
                raise ValueError(f"Unsupported function: {e.func}")
            return _FUNC_MAP[e.func](*[convert(a) for a in e.args])

        elif isinstance(e, IfExpr):
            return sp.Piecewise(
                (convert(e.true_expr), convert(e.condition)),
                (convert(e.false_expr), True),
            )

        elif isinstance(e, (ArrayLiteral, Slice, Broadcast)):
            raise ValueError(f"{type(e).__name__} expressions cannot be converted to SymPy")

        raise ValueError(f"Unsupported expression type: {type(e)}")

    return convert(expr)


def _ref(name: str) -> ComponentRef:
    return ComponentRef(tuple(ComponentRefPart(p) for p in name.split(".")))


def _fold(op: str, args: list[Expr]) -> Expr:
    result = args[0]
    for arg in args[1:]:
        result = BinaryOp(op, result, arg)
    return result


def from_sympy(expr: sp.Basic) -> Expr:
    """
    Convert a SymPy expression back to the IR.

    Subtraction and division come back as ``+``/``*`` with negated or
    inverted operands, the way SymPy stores them.
    """
    if isinstance(expr, sp.Symbol):
        return _ref(expr.name)
    elif expr is sp.true:
        return Literal(True)
    elif expr is sp.false:
        return Literal(False)
    elif isinstance(expr, sp.Integer):
        return Literal(int(expr))
    elif isinstance(expr, sp.Number):
        return Literal(float(expr))
    elif isinstance(expr, sp.NumberSymbol):
        return Literal(float(expr))
    elif isinstance(expr, sp.Add):
        return _fold("+", [from_sympy(a) for a in expr.args])
    elif isinstance(expr, sp.Mul):
        if expr.args[0] == -1:
            return UnaryOp("-", from_sympy(sp.Mul(*expr.args[1:])))
        return _fold("*", [from_sympy(a) for a in expr.args])
    elif isinstance(expr, sp.Pow):
        base, exponent = expr.args
        if exponent == -1:
            return BinaryOp("/", Literal(1), from_sympy(base))
        return BinaryOp("^", from_sympy(base), from_sympy(exponent))
    elif isinstance(expr, sp.Min):
        return FunctionCall("min", tuple(from_sympy(a) for a in expr.args))
    elif isinstance(expr, sp.Max):
        return FunctionCall("max", tuple(from_sympy(a) for a in expr.args))
    elif isinstance(expr, sp.And):
        return _fold("and", [from_sympy(a) for a in expr.args])
    elif isinstance(expr, sp.Or):
        return _fold("or", [from_sympy(a) for a in expr.args])
    elif isinstance(expr, sp.Not):
        return UnaryOp("not", from_sympy(expr.args[0]))
    elif type(expr) in _RELATIONS:
        return BinaryOp(_RELATIONS[type(expr)], from_sympy(expr.lhs), from_sympy(expr.rhs))
    elif isinstance(expr, sp.Piecewise):
        result = None
        for value, cond in reversed(expr.args):
            if cond is sp.true and result is None:
                result = from_sympy(value)
            else:
                if result is None:
                    raise ValueError(f"Piecewise without a default branch: {expr}")
                result = IfExpr(from_sympy(cond), from_sympy(value), result)
        return result
    elif isinstance(expr, sp.Function) and type(expr) in _SYMPY_FUNCS:
        return FunctionCall(_SYMPY_FUNCS[type(expr)], tuple(from_sympy(a) for a in expr.args))
    raise ValueError(f"Unsupported SymPy expression: {expr} ({type(expr).__name__})")


def simplify_expr(expr: Expr) -> Expr:
    """Simplify an IR expression through SymPy."""
    return from_sympy(sp.simplify(to_sympy(expr)))


def to_latex(expr: Expr) -> str:
    """LaTeX rendering of an IR expression."""
    return sp.latex(to_sympy(expr))


def diff_expr(expr: Expr, name: str) -> Expr:
    """Analytical derivative of an IR expression with respect to a variable."""
    table = {name: sp.Symbol(name, real=True)}
    return from_sympy(sp.diff(to_sympy(expr, table), table[name]))
