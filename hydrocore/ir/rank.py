"""
Rank model.

Maps the closed set of ranks to a broadcasting strategy and to the index
pattern used when binding the variable at a 1-based position out of a flat
input array. All functions here are pure and purely syntactic.
"""

from hydrocore.errors import ShapeMismatch
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
from hydrocore.ir.types import BroadcastStrategy, Rank


def broadcast_strategy(rank: Rank) -> BroadcastStrategy:
    """Scalar kernels apply operators once, vector and matrix kernels element-wise."""
    if rank is Rank.SCALAR:
        return BroadcastStrategy.NONE
    elif rank in (Rank.VECTOR, Rank.MATRIX):
        return BroadcastStrategy.ELEMENTWISE
    raise ValueError(f"Unknown rank: {rank}")


def uses_broadcast(rank: Rank) -> bool:
    return broadcast_strategy(rank) is BroadcastStrategy.ELEMENTWISE


def dim_rank(rank: Rank) -> int:
    """Number of trailing axes a bound variable keeps (0, 1 or 2)."""
    return rank.value


def rank_for_input(ndim: int) -> Rank:
    """
    Rank implied by the dimensionality of a runtime input array.

    A ``(variables, time)`` array drives vector kernels, a
    ``(variables, grid, time)`` array drives matrix kernels.
    """
    if ndim == 2:
        return Rank.VECTOR
    elif ndim == 3:
        return Rank.MATRIX
    raise ShapeMismatch(
        f"Input array must be 2-D or 3-D, got {ndim}-D",
        expected=(2, 3),
        actual=ndim,
        hint="Use (variables, time) or (variables, grid, time)",
    )


def index_pattern(position: int, rank: Rank) -> tuple[Expr, ...]:
    """
    Subscripts that select the variable at ``position`` (1-based).

    Examples:
        index_pattern(2, Rank.SCALAR)  # (2,)
        index_pattern(2, Rank.VECTOR)  # (2, :)
        index_pattern(2, Rank.MATRIX)  # (2, :, :)
    """
    if position < 1:
        raise ValueError(f"Positions are 1-based, got {position}")
    return (Literal(position),) + (Slice(),) * dim_rank(rank)


def format_index(pattern: tuple[Expr, ...]) -> str:
    return ", ".join(str(s) for s in pattern)


def strip_broadcast(expr: Expr) -> Expr:
    """Remove every element-wise marker from an expression tree."""
    if isinstance(expr, Broadcast):
        return strip_broadcast(expr.expr)
    elif isinstance(expr, BinaryOp):
        return BinaryOp(expr.op, strip_broadcast(expr.left), strip_broadcast(expr.right))
    elif isinstance(expr, UnaryOp):
        return UnaryOp(expr.op, strip_broadcast(expr.operand))
    elif isinstance(expr, FunctionCall):
        return FunctionCall(expr.func, tuple(strip_broadcast(a) for a in expr.args))
    elif isinstance(expr, IfExpr):
        return IfExpr(
            strip_broadcast(expr.condition),
            strip_broadcast(expr.true_expr),
            strip_broadcast(expr.false_expr),
        )
    elif isinstance(expr, ArrayLiteral):
        return ArrayLiteral(tuple(strip_broadcast(e) for e in expr.elements))
    elif isinstance(expr, ComponentRef):
        return ComponentRef(
            tuple(
                ComponentRefPart(p.name, tuple(strip_broadcast(s) for s in p.subscripts))
                for p in expr.parts
            )
        )
    return expr


def apply_broadcast(expr: Expr, strategy: BroadcastStrategy) -> Expr:
    """
    Mark an expression for element-wise evaluation.

    ``NONE`` returns the expression unchanged. ``ELEMENTWISE`` wraps it in a
    single ``Broadcast`` node after removing any inner markers, so applying
    it twice equals applying it once.
    """
    if strategy is BroadcastStrategy.NONE:
        return expr
    elif strategy is BroadcastStrategy.ELEMENTWISE:
        return Broadcast(strip_broadcast(expr))
    raise ValueError(f"Unknown broadcast strategy: {strategy}")
