"""
Kernel executor.

Executes the straight-line program described by a ``KernelSpec``:
- bindings read named slices out of the input/state arrays and the pas bag
- computations evaluate expressions, element-wise inside ``Broadcast`` nodes
- the return expression assembles a freshly allocated result

The NumPy executor here is the default; ``jax_backend`` swaps in ``jax.numpy``
for kernels that must stay differentiable.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Optional
from abc import ABC, abstractmethod

import numpy as np

from hydrocore.errors import StructuralBuildError
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
from hydrocore.ir.kernel import KernelSpec
from hydrocore.ir.statement import Statement, Assignment, ReturnStatement


@dataclass
class ExecutionContext:
    """
    Context for kernel execution.

    Holds the variable values of one kernel call. A new context is created for
    every call, so nothing leaks between calls.
    """

    variables: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Get variable value."""
        return self.variables.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Set variable value."""
        self.variables[name] = value

    def lookup(self, name: str) -> Any:
        """Get variable value, raise if it was never bound."""
        if name not in self.variables:
            raise KeyError(
                f"Variable '{name}' not found in context\n"
                f"  Bound variables: {sorted(self.variables)}"
            )
        return self.variables[name]


class KernelExecutor(ABC):
    """
    Abstract base class for kernel executors.

    Subclasses implement evaluation for different array libraries.
    """

    name: str = "abstract"

    def run(self, spec: KernelSpec, args: Sequence[Any]) -> Any:
        """Bind ``args`` to the signature and execute the kernel."""
        if spec.return_stmt is None:
            raise StructuralBuildError(f"Kernel '{spec.name}' has no return statement")
        if len(args) != len(spec.signature):
            raise TypeError(
                f"Kernel '{spec.name}' takes {len(spec.signature)} arguments "
                f"({', '.join(spec.signature)}), got {len(args)}"
            )
        context = ExecutionContext(variables=dict(zip(spec.signature, args)))
        for stmt in spec.bindings + spec.computations:
            context = self.execute_statement(stmt, context)
        return self.evaluate_expr(spec.return_stmt.value, context)

    @abstractmethod
    def execute_statement(self, stmt: Statement, context: ExecutionContext) -> ExecutionContext:
        """Execute a single statement."""
        pass

    @abstractmethod
    def evaluate_expr(
        self,
        expr: Expr,
        context: ExecutionContext,
        elementwise: bool = False,
        checked: bool = False,
    ) -> Any:
        """Evaluate an expression in the given context."""
        pass


class NumericKernelExecutor(KernelExecutor):
    """
    Numeric kernel executor using NumPy.

    Outside ``Broadcast`` nodes conditionals and logical operators use plain
    Python semantics (one value, lazy branches). Inside them they become
    ``where``/``logical_*`` so they apply element-wise.
    """

    name = "numpy"
    xp = np

    def __init__(self, functions: Optional[dict[str, Callable]] = None):
        """
        Initialize the executor.

        Args:
            functions: Optional dict of custom functions (name -> callable)
        """
        self.functions = functions or {}

        xp = self.xp
        # Built-in math functions
        self._builtin_funcs = {
            "sin": xp.sin,
            "cos": xp.cos,
            "tan": xp.tan,
            "exp": xp.exp,
            "log": xp.log,
            "log10": xp.log10,
            "sqrt": xp.sqrt,
            "tanh": xp.tanh,
            "abs": xp.abs,
            "sign": xp.sign,
            "floor": xp.floor,
            "ceil": xp.ceil,
            "min": lambda *a: xp.min(a[0]) if len(a) == 1 else reduce(xp.minimum, a),
            "max": lambda *a: xp.max(a[0]) if len(a) == 1 else reduce(xp.maximum, a),
            "clamp": lambda x, lo, hi: xp.minimum(xp.maximum(x, lo), hi),
            "step": lambda x: xp.where(xp.asarray(x) > 0, 1.0, 0.0),
            "vcat": self._concat,
            "tuple": lambda *a: tuple(xp.array(v) for v in a),
        }

    # ---- array primitives (overridden per backend) ----

    def _stack(self, values: list) -> Any:
        xp = self.xp
        return xp.stack(xp.broadcast_arrays(*[xp.asarray(v) for v in values]))

    def _concat(self, *values: Any) -> Any:
        xp = self.xp
        arrays = xp.broadcast_arrays(*[xp.asarray(v) for v in values])
        return xp.concatenate([xp.ravel(a) for a in arrays])

    def _where(self, cond: Any, if_true: Any, if_false: Any) -> Any:
        return self.xp.where(cond, if_true, if_false)

    def _shape(self, value: Any) -> tuple:
        return tuple(self.xp.shape(value))

    def _length(self, value: Any) -> int:
        shape = self._shape(value)
        return shape[0] if shape else 0

    def _index(self, value: Any, indices: tuple) -> Any:
        return value[indices[0]] if len(indices) == 1 else value[indices]

    # ---- statements ----

    def execute_statement(self, stmt: Statement, context: ExecutionContext) -> ExecutionContext:
        """Execute a single statement."""
        if isinstance(stmt, Assignment):
            value = self.evaluate_expr(stmt.expr, context, checked=stmt.checked)
            context.set(stmt.target.simple_name, value)
            return context
        elif isinstance(stmt, ReturnStatement):
            raise StructuralBuildError("Return statements may only appear last in a kernel")
        raise ValueError(f"Unknown statement type: {type(stmt)}")

    # ---- expressions ----

    def evaluate_expr(
        self,
        expr: Expr,
        context: ExecutionContext,
        elementwise: bool = False,
        checked: bool = False,
    ) -> Any:
        """Evaluate an expression."""
        if isinstance(expr, Literal):
            return expr.value

        elif isinstance(expr, ComponentRef):
            return self._resolve(expr, context, elementwise, checked)

        elif isinstance(expr, Broadcast):
            return self.evaluate_expr(expr.expr, context, True, checked)

        elif isinstance(expr, BinaryOp):
            left = self.evaluate_expr(expr.left, context, elementwise, checked)
            if expr.op in ("and", "or") and not elementwise:
                # Python short-circuit semantics for single values
                if expr.op == "and":
                    return left and self.evaluate_expr(expr.right, context, elementwise, checked)
                return left or self.evaluate_expr(expr.right, context, elementwise, checked)
            right = self.evaluate_expr(expr.right, context, elementwise, checked)
            return self._eval_binary_op(expr.op, left, right)

        elif isinstance(expr, UnaryOp):
            operand = self.evaluate_expr(expr.operand, context, elementwise, checked)
            return self._eval_unary_op(expr.op, operand, elementwise)

        elif isinstance(expr, FunctionCall):
            args = [self.evaluate_expr(arg, context, elementwise, checked) for arg in expr.args]
            return self._call(expr.func, args, context)

        elif isinstance(expr, IfExpr):
            return self._eval_if(expr, context, elementwise, checked)

        elif isinstance(expr, ArrayLiteral):
            return self._stack(
                [self.evaluate_expr(e, context, elementwise, checked) for e in expr.elements]
            )

        elif isinstance(expr, Slice):
            raise ValueError("Slice expressions can only appear as subscripts")

        else:
            raise ValueError(f"Unknown expression type: {type(expr)}")

    def _eval_if(self, expr: IfExpr, context: ExecutionContext, elementwise: bool, checked: bool) -> Any:
        cond = self.evaluate_expr(expr.condition, context, elementwise, checked)
        if elementwise:
            return self._where(
                cond,
                self.evaluate_expr(expr.true_expr, context, elementwise, checked),
                self.evaluate_expr(expr.false_expr, context, elementwise, checked),
            )
        if cond:
            return self.evaluate_expr(expr.true_expr, context, elementwise, checked)
        return self.evaluate_expr(expr.false_expr, context, elementwise, checked)

    def _eval_binary_op(self, op: str, left: Any, right: Any) -> Any:
        """Evaluate binary operation."""
        xp = self.xp
        ops = {
            "+": lambda l, r: l + r,
            "-": lambda l, r: l - r,
            "*": lambda l, r: l * r,
            "/": lambda l, r: l / r,
            "^": lambda l, r: l**r,
            "<": lambda l, r: l < r,
            "<=": lambda l, r: l <= r,
            ">": lambda l, r: l > r,
            ">=": lambda l, r: l >= r,
            "==": lambda l, r: l == r,
            "!=": lambda l, r: l != r,
            "and": xp.logical_and,
            "or": xp.logical_or,
        }
        if op in ops:
            return ops[op](left, right)
        raise ValueError(f"Unknown binary operator: {op}")

    def _eval_unary_op(self, op: str, operand: Any, elementwise: bool) -> Any:
        """Evaluate unary operation."""
        if op == "-" or op == "neg":
            return -operand
        elif op == "+":
            return operand
        elif op == "not":
            return self.xp.logical_not(operand) if elementwise else not operand
        raise ValueError(f"Unknown unary operator: {op}")

    def _call(self, func: str, args: list, context: ExecutionContext) -> Any:
        """Evaluate function call: custom functions, builtins, then bound sub-models."""
        if func in self.functions:
            return self.functions[func](*args)

        if func in self._builtin_funcs:
            return self._builtin_funcs[func](*args)

        bound = context.get(func)
        if callable(bound):
            return bound(*args)

        raise ValueError(f"Unknown function: {func}")

    # ---- references ----

    def _resolve(self, ref: ComponentRef, context: ExecutionContext, elementwise: bool, checked: bool) -> Any:
        head = ref.parts[0]
        value = context.lookup(head.name)
        label = head.name
        value = self._apply_subscripts(value, head, label, context, elementwise, checked)

        for part in ref.parts[1:]:
            value = self._member(value, part.name, label, checked)
            label = f"{label}.{part.name}"
            value = self._apply_subscripts(value, part, label, context, elementwise, checked)
        return value

    def _member(self, value: Any, key: str, label: str, checked: bool) -> Any:
        if isinstance(value, Mapping):
            if checked and key not in value:
                raise KeyError(
                    f"'{label}' has no entry '{key}'\n"
                    f"  Available entries: {sorted(value)}"
                )
            return value[key]
        if checked and not hasattr(value, key):
            raise KeyError(f"'{label}' has no entry '{key}'")
        return getattr(value, key)

    def _apply_subscripts(
        self,
        value: Any,
        part: ComponentRefPart,
        label: str,
        context: ExecutionContext,
        elementwise: bool,
        checked: bool,
    ) -> Any:
        if not part.subscripts:
            return value

        indices = []
        for sub in part.subscripts:
            if isinstance(sub, Slice):
                start = (
                    int(self.evaluate_expr(sub.start, context, elementwise)) - 1
                    if sub.start is not None
                    else None
                )
                stop = int(self.evaluate_expr(sub.stop, context, elementwise)) if sub.stop is not None else None
                indices.append(slice(start, stop))
            else:
                # 1-based subscripts to 0-based indices
                indices.append(int(self.evaluate_expr(sub, context, elementwise)) - 1)

        if checked:
            self._check_bounds(value, indices, label)
        return self._index(value, tuple(indices))

    def _check_bounds(self, value: Any, indices: list, label: str) -> None:
        ndim = len(self._shape(value))
        if ndim < len(indices):
            raise IndexError(
                f"'{label}' has {ndim} dimension(s) but the binding uses {len(indices)} subscripts"
            )
        first = indices[0]
        if isinstance(first, int):
            n_rows = self._length(value)
            if not 0 <= first < n_rows:
                raise IndexError(
                    f"Position {first + 1} is out of range for '{label}' with {n_rows} rows"
                )


def execute_kernel(
    spec: KernelSpec,
    *args: Any,
    executor: Optional[KernelExecutor] = None,
) -> Any:
    """
    Execute a kernel description once with the given arguments.

    Args:
        spec: The kernel to execute
        *args: Positional arguments matching ``spec.signature``
        executor: Optional custom executor (defaults to NumericKernelExecutor)

    Returns:
        The value of the kernel's return expression
    """
    if executor is None:
        executor = NumericKernelExecutor()
    return executor.run(spec, args)


def list_executors() -> list[str]:
    """Names accepted by ``get_executor``."""
    return ["numpy", "jax"]


def get_executor(name: str = "numpy") -> KernelExecutor:
    """
    Create an executor by name.

    Args:
        name: 'numpy' (default) or 'jax'
    """
    if name == "numpy":
        return NumericKernelExecutor()
    elif name == "jax":
        from hydrocore.backends.jax_backend import JaxKernelExecutor

        return JaxKernelExecutor()
    raise ValueError(f"Unknown executor '{name}'. Available: {list_executors()}")
