"""JAX kernel executor.

Executes kernel descriptions with ``jax.numpy`` so that kernels can be
differentiated with ``jax.grad``/``jax.jacobian`` and compiled with
``jax.jit``.

Note: JAX traces Python code, so data-dependent Python branches are not
allowed. This executor therefore evaluates every conditional and logical
operator element-wise (``jnp.where``, ``jnp.logical_*``), even in scalar
kernels.
"""

from collections.abc import Callable, Sequence
from typing import Any

import jax
import jax.numpy as jnp

from hydrocore.backends.algorithm import ExecutionContext, NumericKernelExecutor
from hydrocore.ir.expr import Expr


class JaxKernelExecutor(NumericKernelExecutor):
    """Kernel executor on top of ``jax.numpy``."""

    name = "jax"
    xp = jnp

    def evaluate_expr(
        self,
        expr: Expr,
        context: ExecutionContext,
        elementwise: bool = False,
        checked: bool = False,
    ) -> Any:
        """Evaluate an expression, always with element-wise semantics."""
        return super().evaluate_expr(expr, context, True, checked)


def grad_wrt_params(kernel: Callable, *args: Any, output: int = 0) -> Callable:
    """
    Gradient of one kernel output with respect to the ``params`` bag.

    ``args`` are the kernel arguments before ``pas``. The returned function
    takes the params mapping and returns a mapping of the same structure.

    Example:
        >>> dq = grad_wrt_params(kernel, inputs)
        >>> dq({"k": 2.5})
        {'k': Array(3., dtype=float32)}
    """

    def scalar_output(params):
        return jnp.sum(kernel(*args, {"params": params})[output])

    return jax.grad(scalar_output)


def jacobian_wrt(kernel: Callable, args: Sequence[Any], argnum: int = 0) -> Any:
    """Jacobian of a kernel's result with respect to one positional argument."""
    args = list(args)

    def f(x):
        call_args = list(args)
        call_args[argnum] = x
        return kernel(*call_args)

    return jax.jacobian(f)(jnp.asarray(args[argnum]))
