"""Tests for the rank model (hydrocore.ir.rank)."""

from __future__ import annotations

import pytest

from hydrocore.errors import ShapeMismatch
from hydrocore.ir.expr import Expr, Literal, Slice, Broadcast, IfExpr, ArrayLiteral
from hydrocore.ir.rank import (
    apply_broadcast,
    broadcast_strategy,
    dim_rank,
    format_index,
    index_pattern,
    rank_for_input,
    strip_broadcast,
    uses_broadcast,
)
from hydrocore.ir.types import BroadcastStrategy, Rank


class TestStrategy:
    def test_scalar_has_no_broadcast(self) -> None:
        assert broadcast_strategy(Rank.SCALAR) is BroadcastStrategy.NONE
        assert not uses_broadcast(Rank.SCALAR)

    @pytest.mark.parametrize("rank", [Rank.VECTOR, Rank.MATRIX])
    def test_arrays_broadcast(self, rank: Rank) -> None:
        assert broadcast_strategy(rank) is BroadcastStrategy.ELEMENTWISE
        assert uses_broadcast(rank)

    def test_dim_rank(self) -> None:
        assert [dim_rank(r) for r in Rank] == [0, 1, 2]

    def test_rank_for_input(self) -> None:
        assert rank_for_input(2) is Rank.VECTOR
        assert rank_for_input(3) is Rank.MATRIX
        with pytest.raises(ShapeMismatch):
            rank_for_input(1)


class TestIndexPattern:
    def test_scalar(self) -> None:
        assert index_pattern(3, Rank.SCALAR) == (Literal(3),)

    def test_vector(self) -> None:
        assert index_pattern(3, Rank.VECTOR) == (Literal(3), Slice())

    def test_matrix(self) -> None:
        assert index_pattern(3, Rank.MATRIX) == (Literal(3), Slice(), Slice())

    @pytest.mark.parametrize("rank", list(Rank))
    def test_length_is_one_plus_dim_rank(self, rank: Rank) -> None:
        for position in range(1, 5):
            pattern = index_pattern(position, rank)
            assert len(pattern) == 1 + dim_rank(rank)
            assert pattern[0] == Literal(position)

    def test_positions_are_one_based(self) -> None:
        with pytest.raises(ValueError, match="1-based"):
            index_pattern(0, Rank.SCALAR)

    def test_format(self) -> None:
        assert format_index(index_pattern(1, Rank.SCALAR)) == "1"
        assert format_index(index_pattern(2, Rank.VECTOR)) == "2, :"
        assert format_index(index_pattern(2, Rank.MATRIX)) == "2, :, :"


class TestApplyBroadcast:
    def _expr(self):
        return Expr.mul(Expr.var_ref("k"), Expr.add(Expr.var_ref("a"), Literal(1.0)))

    def test_none_is_identity(self) -> None:
        expr = self._expr()
        assert apply_broadcast(expr, BroadcastStrategy.NONE) is expr

    def test_elementwise_wraps_once(self) -> None:
        result = apply_broadcast(self._expr(), BroadcastStrategy.ELEMENTWISE)
        assert result == Broadcast(self._expr())

    @pytest.mark.parametrize("strategy", list(BroadcastStrategy))
    def test_idempotent(self, strategy: BroadcastStrategy) -> None:
        once = apply_broadcast(self._expr(), strategy)
        assert apply_broadcast(once, strategy) == once

    def test_inner_markers_removed(self) -> None:
        inner = IfExpr(Broadcast(Expr.var_ref("c")), ArrayLiteral((Broadcast(Literal(1.0)),)), Literal(0.0))
        result = apply_broadcast(inner, BroadcastStrategy.ELEMENTWISE)
        assert result == Broadcast(IfExpr(Expr.var_ref("c"), ArrayLiteral((Literal(1.0),)), Literal(0.0)))

    def test_strip(self) -> None:
        marked = Broadcast(Expr.add(Broadcast(Expr.var_ref("a")), Expr.var_ref("b")))
        assert strip_broadcast(marked) == Expr.add(Expr.var_ref("a"), Expr.var_ref("b"))
