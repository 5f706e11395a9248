"""
Backend implementations for kernel execution and export.

Backends consume ``KernelSpec`` descriptions in different frameworks:
- Algorithm: NumPy kernel execution (default)
- JAX: differentiable kernel execution
- CasADi: symbolic export of scalar kernels and Jacobians
- SymPy: symbolic manipulation and simplification of expressions
"""

from hydrocore.backends.algorithm import (
    KernelExecutor,
    NumericKernelExecutor,
    ExecutionContext,
    execute_kernel,
    get_executor,
    list_executors,
)

__all__ = [
    "KernelExecutor",
    "NumericKernelExecutor",
    "ExecutionContext",
    "execute_kernel",
    "get_executor",
    "list_executors",
]
