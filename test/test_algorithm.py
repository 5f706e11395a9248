"""
Tests for kernel execution.
"""

import pytest
import numpy as np

from hydrocore.ir import (
    Expr,
    Assignment,
    ReturnStatement,
    KernelSpec,
    ComponentSpec,
    Literal,
    Slice,
    Broadcast,
    IfExpr,
    ArrayLiteral,
    FunctionCall,
)
from hydrocore.backends.algorithm import (
    NumericKernelExecutor,
    ExecutionContext,
    execute_kernel,
    get_executor,
    list_executors,
)
from hydrocore.errors import StructuralBuildError


def _kernel(computations, value, signature=("x",), bindings=()) -> KernelSpec:
    return KernelSpec(
        name="k",
        signature=signature,
        bindings=tuple(bindings),
        computations=tuple(computations),
        return_stmt=ReturnStatement(value),
        component=ComponentSpec(),
    )


class TestBasicAssignment:
    """Test straight-line assignments."""

    def test_expression_assignment(self):
        spec = _kernel(
            [Assignment(Expr.var_ref("y"), Expr.add(Expr.var_ref("x"), Literal(4.0)))],
            Expr.var_ref("y"),
        )
        assert execute_kernel(spec, 3.0) == 7.0

    def test_chained_assignments(self):
        spec = _kernel(
            [
                Assignment(Expr.var_ref("a"), Expr.mul(Expr.var_ref("x"), Literal(2.0))),
                Assignment(Expr.var_ref("b"), Expr.add(Expr.var_ref("a"), Expr.var_ref("x"))),
            ],
            Expr.var_ref("b"),
        )
        assert execute_kernel(spec, 1.0) == 3.0

    def test_unknown_variable(self):
        spec = _kernel([], Expr.var_ref("nope"))
        with pytest.raises(KeyError, match="nope"):
            execute_kernel(spec, 1.0)

    def test_wrong_argument_count(self):
        spec = _kernel([], Expr.var_ref("x"))
        with pytest.raises(TypeError, match="takes 1 arguments"):
            execute_kernel(spec, 1.0, 2.0)

    def test_missing_return(self):
        spec = KernelSpec("k", ("x",), (), (), None, ComponentSpec())
        with pytest.raises(StructuralBuildError):
            execute_kernel(spec, 1.0)

    def test_fresh_context_per_call(self):
        spec = _kernel(
            [Assignment(Expr.var_ref("y"), Expr.mul(Expr.var_ref("x"), Literal(2.0)))],
            Expr.var_ref("y"),
        )
        executor = NumericKernelExecutor()
        assert executor.run(spec, (1.0,)) == 2.0
        assert executor.run(spec, (5.0,)) == 10.0


class TestIndexing:
    """Subscripts are 1-based, slices keep whole axes."""

    def test_one_based_row(self):
        ref = Expr.component_ref(("x", (Literal(2),)))
        spec = _kernel([], ref)
        assert execute_kernel(spec, np.array([10.0, 20.0, 30.0])) == 20.0

    def test_row_slice(self):
        ref = Expr.component_ref(("x", (Literal(1), Slice())))
        spec = _kernel([], ref)
        data = np.arange(6.0).reshape(2, 3)
        np.testing.assert_array_equal(execute_kernel(spec, data), [0.0, 1.0, 2.0])

    def test_checked_out_of_range(self):
        binding = Assignment(Expr.var_ref("v"), Expr.component_ref(("x", (Literal(4),))), checked=True)
        spec = _kernel([], Expr.var_ref("v"), bindings=[binding])
        with pytest.raises(IndexError, match="Position 4 is out of range for 'x' with 3 rows"):
            execute_kernel(spec, np.zeros(3))

    def test_checked_too_many_subscripts(self):
        binding = Assignment(
            Expr.var_ref("v"), Expr.component_ref(("x", (Literal(1), Slice()))), checked=True
        )
        spec = _kernel([], Expr.var_ref("v"), bindings=[binding])
        with pytest.raises(IndexError, match="1 dimension"):
            execute_kernel(spec, np.zeros(3))

    def test_checked_missing_key(self):
        binding = Assignment(Expr.var_ref("k"), Expr.component_ref("x", "params", "k"), checked=True)
        spec = _kernel([], Expr.var_ref("k"), bindings=[binding])
        with pytest.raises(KeyError, match="x.params"):
            execute_kernel(spec, {"params": {"b": 1.0}})

    def test_attribute_bags(self):
        """Bags may be objects with attributes instead of mappings."""

        class Params:
            k = 0.5

        class Bag:
            params = Params()

        binding = Assignment(Expr.var_ref("k"), Expr.component_ref("x", "params", "k"), checked=True)
        spec = _kernel([], Expr.var_ref("k"), bindings=[binding])
        assert execute_kernel(spec, Bag()) == 0.5


class TestConditionals:
    """Scalar vs element-wise semantics."""

    def test_scalar_if_is_lazy(self):
        # The false branch would fail (unknown variable) if it were evaluated
        expr = IfExpr(Expr.gt(Expr.var_ref("x"), Literal(0)), Literal(1.0), Expr.var_ref("missing"))
        assert execute_kernel(_kernel([], expr), 2.0) == 1.0

    def test_broadcast_if_is_elementwise(self):
        expr = Broadcast(IfExpr(Expr.gt(Expr.var_ref("x"), Literal(0)), Expr.var_ref("x"), Literal(0.0)))
        result = execute_kernel(_kernel([], expr), np.array([-1.0, 2.0, -3.0, 4.0]))
        np.testing.assert_array_equal(result, [0.0, 2.0, 0.0, 4.0])

    def test_broadcast_logical(self):
        x = Expr.var_ref("x")
        expr = Broadcast(Expr.and_(Expr.gt(x, Literal(0)), Expr.le(x, Literal(2))))
        result = execute_kernel(_kernel([], expr), np.array([-1.0, 1.0, 2.0, 3.0]))
        np.testing.assert_array_equal(result, [False, True, True, False])

    def test_broadcast_not(self):
        expr = Broadcast(Expr.unary_op("not", Expr.gt(Expr.var_ref("x"), Literal(0))))
        result = execute_kernel(_kernel([], expr), np.array([-1.0, 1.0]))
        np.testing.assert_array_equal(result, [True, False])


class TestFunctions:
    def test_builtin(self):
        spec = _kernel([], Expr.exp(Expr.var_ref("x")))
        assert execute_kernel(spec, 0.0) == pytest.approx(1.0)

    def test_min_max_elementwise(self):
        x = Expr.var_ref("x")
        spec = _kernel([], Broadcast(Expr.max(Expr.min(x, Literal(2.0)), Literal(0.0))))
        result = execute_kernel(spec, np.array([-1.0, 1.0, 5.0]))
        np.testing.assert_array_equal(result, [0.0, 1.0, 2.0])

    def test_custom_function(self):
        spec = _kernel([], FunctionCall("double", (Expr.var_ref("x"),)))
        executor = NumericKernelExecutor(functions={"double": lambda v: 2 * v})
        assert executor.run(spec, (4.0,)) == 8.0

    def test_bound_callable(self):
        spec = _kernel([], FunctionCall("x", (Literal(3.0),)))
        assert execute_kernel(spec, lambda v: v + 1) == 4.0

    def test_unknown_function(self):
        spec = _kernel([], FunctionCall("nope", (Expr.var_ref("x"),)))
        with pytest.raises(ValueError, match="Unknown function"):
            execute_kernel(spec, 1.0)


class TestResults:
    def test_array_literal_stacks(self):
        x = Expr.var_ref("x")
        spec = _kernel([], ArrayLiteral((x, Expr.mul(x, Literal(2.0)))))
        result = execute_kernel(spec, np.array([1.0, 2.0]))
        assert result.shape == (2, 2)
        np.testing.assert_array_equal(result, [[1.0, 2.0], [2.0, 4.0]])

    def test_array_literal_broadcasts_constants(self):
        spec = _kernel([], ArrayLiteral((Expr.var_ref("x"), Literal(0.0))))
        result = execute_kernel(spec, np.array([1.0, 2.0]))
        np.testing.assert_array_equal(result, [[1.0, 2.0], [0.0, 0.0]])

    def test_vcat_is_flat(self):
        x = Expr.var_ref("x")
        spec = _kernel([], Expr.vcat(x, Expr.neg(x)))
        np.testing.assert_array_equal(execute_kernel(spec, np.array([1.0, 2.0])), [1.0, 2.0, -1.0, -2.0])

    def test_result_does_not_alias_input(self):
        spec = _kernel([], ArrayLiteral((Expr.component_ref(("x", (Literal(1), Slice()))),)))
        data = np.ones((1, 3))
        result = execute_kernel(spec, data)
        result[0, 0] = 99.0
        assert data[0, 0] == 1.0


class TestContext:
    def test_lookup(self):
        context = ExecutionContext({"a": 1.0})
        assert context.lookup("a") == 1.0
        context.set("b", 2.0)
        assert context.get("b") == 2.0
        with pytest.raises(KeyError):
            context.lookup("c")


class TestRegistry:
    def test_numpy_default(self):
        assert isinstance(get_executor(), NumericKernelExecutor)
        assert "jax" in list_executors()

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown executor"):
            get_executor("torch")
