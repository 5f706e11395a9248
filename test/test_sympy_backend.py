"""
Tests for SymPy backend.
"""

import pytest

sp = pytest.importorskip("sympy")  # Skip if sympy not installed

from hydrocore.ir import Broadcast, Expr, FunctionCall, IfExpr, Literal, UnaryOp
from hydrocore.backends.sympy import diff_expr, from_sympy, simplify_expr, to_latex, to_sympy


def sym(name):
    return sp.Symbol(name, real=True)


def test_simple_conversion():
    expr = Expr.mul(Expr.var_ref("k"), Expr.var_ref("s"))
    assert to_sympy(expr) == sym("k") * sym("s")


def test_dotted_reference():
    expr = Expr.component_ref("pas", "params", "k")
    assert to_sympy(expr) == sym("pas.params.k")


def test_shared_symbol_table():
    k = sp.Symbol("k", positive=True)
    result = to_sympy(Expr.mul(Expr.var_ref("k"), Expr.literal(2)), {"k": k})
    assert result == 2 * k


def test_round_trip_is_equivalent():
    a, b, k = (Expr.var_ref(n) for n in ("a", "b", "k"))
    expr = Expr.div(Expr.mul(k, Expr.sub(a, b)), Expr.pow(a, Literal(2)))
    assert to_sympy(from_sympy(to_sympy(expr))) == to_sympy(expr)


def test_functions_round_trip():
    x = Expr.var_ref("x")
    expr = Expr.add(Expr.exp(x), Expr.max(x, Literal(0.0)))
    back = from_sympy(to_sympy(expr))
    assert to_sympy(back) == to_sympy(expr)


def test_negation():
    back = from_sympy(-sym("x"))
    assert isinstance(back, UnaryOp)
    assert back.op == "-"


def test_conditional_becomes_piecewise():
    x = Expr.var_ref("x")
    expr = IfExpr(Expr.gt(x, Literal(0)), x, Literal(0))
    converted = to_sympy(expr)
    assert isinstance(converted, sp.Piecewise)

    back = from_sympy(converted)
    assert isinstance(back, IfExpr)
    assert back.false_expr == Literal(0)


def test_simplify():
    x, y = Expr.var_ref("x"), Expr.var_ref("y")
    assert simplify_expr(Expr.sub(Expr.add(x, y), y)) == x


def test_diff():
    a, b, k = (Expr.var_ref(n) for n in ("a", "b", "k"))
    derivative = diff_expr(Expr.mul(k, Expr.add(a, b)), "k")
    assert to_sympy(derivative) == sym("a") + sym("b")


def test_diff_of_exponential():
    k, x = Expr.var_ref("k"), Expr.var_ref("x")
    derivative = diff_expr(Expr.exp(Expr.mul(k, x)), "x")
    assert to_sympy(derivative) == sym("k") * sp.exp(sym("k") * sym("x"))


def test_latex():
    assert to_latex(Expr.div(Expr.var_ref("a"), Expr.var_ref("b"))) == r"\frac{a}{b}"


@pytest.mark.parametrize(
    "expr",
    [
        Expr.component_ref(("x", (Literal(1),))),
        Broadcast(Expr.var_ref("x")),
        FunctionCall("vcat", (Expr.var_ref("x"),)),
    ],
)
def test_unsupported(expr):
    with pytest.raises(ValueError):
        to_sympy(expr)
