"""
CasADi backend for kernel export.

Evaluates a scalar kernel description on CasADi ``SX`` symbols, producing a
``casadi.Function`` that can be called numerically, differentiated
symbolically, or exported as C code.

Only scalar kernels are exported. Network slots hold arbitrary Python
callables and cannot be traced symbolically.
"""

import pathlib
from typing import Any, Optional

import casadi as ca

from hydrocore.backends.algorithm import ExecutionContext, NumericKernelExecutor
from hydrocore.ir.expr import Expr
from hydrocore.ir.kernel import KernelSpec
from hydrocore.ir.types import Rank


class CasadiKernelExecutor(NumericKernelExecutor):
    """
    Kernel executor on CasADi symbols.

    Conditionals become ``if_else`` and logical operators ``logic_*`` because
    conditions are symbolic.
    """

    name = "casadi"

    def __init__(self, functions: Optional[dict] = None):
        super().__init__(functions)
        self._builtin_funcs = {
            "sin": ca.sin,
            "cos": ca.cos,
            "tan": ca.tan,
            "exp": ca.exp,
            "log": ca.log,
            "log10": ca.log10,
            "sqrt": ca.sqrt,
            "tanh": ca.tanh,
            "abs": ca.fabs,
            "sign": ca.sign,
            "floor": ca.floor,
            "ceil": ca.ceil,
            "min": lambda *a: self._reduce_minmax(a, ca.fmin, ca.mmin),
            "max": lambda *a: self._reduce_minmax(a, ca.fmax, ca.mmax),
            "clamp": lambda x, lo, hi: ca.fmin(ca.fmax(x, lo), hi),
            "step": lambda x: ca.if_else(x > 0, 1.0, 0.0),
            "vcat": self._concat,
        }

    @staticmethod
    def _reduce_minmax(args: tuple, pairwise: Any, reduction: Any) -> Any:
        if len(args) == 1:
            return reduction(args[0])
        result = args[0]
        for arg in args[1:]:
            result = pairwise(result, arg)
        return result

    def _stack(self, values: list) -> Any:
        return ca.vertcat(*values)

    def _concat(self, *values: Any) -> Any:
        return ca.vertcat(*values)

    def _where(self, cond: Any, if_true: Any, if_false: Any) -> Any:
        return ca.if_else(cond, if_true, if_false)

    def _shape(self, value: Any) -> tuple:
        return tuple(value.shape)

    def _eval_binary_op(self, op: str, left: Any, right: Any) -> Any:
        if op == "and":
            return ca.logic_and(left, right)
        elif op == "or":
            return ca.logic_or(left, right)
        return super()._eval_binary_op(op, left, right)

    def _eval_unary_op(self, op: str, operand: Any, elementwise: bool) -> Any:
        if op == "not":
            return ca.logic_not(operand)
        return super()._eval_unary_op(op, operand, elementwise)

    def evaluate_expr(
        self,
        expr: Expr,
        context: ExecutionContext,
        elementwise: bool = False,
        checked: bool = False,
    ) -> Any:
        """Evaluate an expression, symbolic conditions always use if_else."""
        return super().evaluate_expr(expr, context, True, checked)


def _symbols(spec: KernelSpec) -> tuple[list, list, dict]:
    """Symbolic arguments for each signature entry plus a flat params vector."""
    component = spec.component
    if spec.rank is not Rank.SCALAR:
        raise ValueError(
            f"Only scalar kernels can be exported to CasADi, '{spec.name}' has rank {spec.rank.name}\n"
            f"  Hint: Build the kernel with Rank.SCALAR"
        )
    if component.has_networks:
        raise ValueError(
            f"Kernel '{spec.name}' uses network slots {list(component.networks)}, "
            f"which cannot be traced symbolically"
        )

    params = ca.SX.sym("params", component.count("params"))
    pas = {"params": {name: params[i] for i, name in enumerate(component.params)}}

    args = []
    inputs = []
    names = []
    for arg in spec.signature:
        if arg == "pas":
            args.append(pas)
        else:
            size = component.count(arg) if arg in ("inputs", "states") else 1
            sym = ca.SX.sym(arg, size)
            args.append(sym)
            inputs.append(sym)
            names.append(arg)
    inputs.append(params)
    names.append("params")
    return args, inputs, dict(zip(names, inputs))


def to_casadi_function(spec: KernelSpec, name: Optional[str] = None) -> ca.Function:
    """
    Export a scalar kernel as a CasADi function.

    The function takes the non-bag signature arguments as column vectors
    followed by a ``params`` vector ordered like ``spec.component.params``.

    Example:
        >>> f = to_casadi_function(kernel.spec)
        >>> f([1.0, 2.0], [2.5])
        DM(7.5)
    """
    args, inputs, named = _symbols(spec)
    result = CasadiKernelExecutor().run(spec, args)
    return ca.Function(name or spec.name, inputs, [result], list(named), ["out"])


def kernel_jacobian(spec: KernelSpec, wrt: str = "inputs", name: Optional[str] = None) -> ca.Function:
    """
    Jacobian of a scalar kernel's result with respect to one argument.

    Args:
        spec: Scalar kernel description
        wrt: Signature argument name or "params"
        name: Function name, defaults to ``{spec.name}_jac_{wrt}``
    """
    args, inputs, named = _symbols(spec)
    if wrt not in named:
        raise ValueError(f"Cannot differentiate with respect to '{wrt}'. Available: {list(named)}")
    result = CasadiKernelExecutor().run(spec, args)
    jac = ca.jacobian(result, named[wrt])
    return ca.Function(name or f"{spec.name}_jac_{wrt}", inputs, [jac], list(named), ["jac"])


def generate_code(functions: dict[str, ca.Function], dest_dir: str, **kwargs) -> list[pathlib.Path]:
    """
    Write exported kernels as C sources, one file per entry.

    Keyword arguments override CasADi code generator options.
    """
    dest_dir = pathlib.Path(dest_dir)
    options = {
        "verbose": False,
        "mex": False,
        "cpp": False,
        "main": False,
        "with_header": True,
        "with_mem": False,
        "with_export": False,
        "with_import": False,
        "include_math": True,
        "avoid_stack": True,
    }
    for key, value in kwargs.items():
        if key not in options:
            raise ValueError(f"Unknown code generator option '{key}'. Available: {sorted(options)}")
        options[key] = value

    dest_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for file_name, function in functions.items():
        gen = ca.CodeGenerator(f"{file_name}.c", options)
        gen.add(function)
        gen.generate(str(dest_dir) + "/")
        written.append(dest_dir / f"{file_name}.c")
    return written
