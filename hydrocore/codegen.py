"""
Kernel compiler.

Turns a component contract plus its fluxes into ``KernelSpec`` statement
lists and assembles them into callable kernels:

    bindings      name = inputs[i, :]        (one per input/state, 1-based i)
                  k = pas.params.k           (one per parameter)
                  nn = pas.networks.nn       (one per network slot)
    computations  out = @. expr              (broadcast unless scalar)
    return        [out1, out2]  /  vcat(@. d1, @. d2)
                  tuple(out1, out2, vcat(@. d1))   (route derivatives)

Kernels are pure: every call builds a fresh execution context and returns a
freshly allocated array.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

from hydrocore.backends.algorithm import KernelExecutor, get_executor
from hydrocore.errors import StructuralBuildError
from hydrocore.ir.expr import (
    Expr,
    ComponentRef,
    ComponentRefPart,
    FunctionCall,
    ArrayLiteral,
)
from hydrocore.ir.flux import Flux, HydroFlux, NetworkFlux
from hydrocore.ir.kernel import KernelSpec
from hydrocore.ir.rank import apply_broadcast, broadcast_strategy, index_pattern, strip_broadcast
from hydrocore.ir.spec import ComponentSpec
from hydrocore.ir.statement import Assignment, ReturnStatement
from hydrocore.ir.types import BindingMode, BroadcastStrategy, KernelRole, PerformanceMode, Rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildConfig:
    """
    Immutable build options passed per call.

    Attributes:
        mode: SAFE (checked bindings), FAST (raw access) or AUTODIFF
        debug: Log the rendered kernel source when assembling
        backend: Executor name, see ``hydrocore.backends.list_executors``
    """

    mode: PerformanceMode = PerformanceMode.SAFE
    debug: bool = False
    backend: str = "numpy"

    @property
    def binding_mode(self) -> BindingMode:
        if self.mode is PerformanceMode.FAST:
            return BindingMode.UNCHECKED
        return BindingMode.CHECKED


SAFE_CONFIG = BuildConfig(PerformanceMode.SAFE)
FAST_CONFIG = BuildConfig(PerformanceMode.FAST)
AUTODIFF_CONFIG = BuildConfig(PerformanceMode.AUTODIFF, backend="jax")
DEBUG_CONFIG = BuildConfig(PerformanceMode.SAFE, debug=True)
DEFAULT_BUILD_CONFIG = SAFE_CONFIG


def is_differentiable(config: BuildConfig) -> bool:
    """FAST kernels skip checks and make no promise about tracing through them."""
    return config.mode is not PerformanceMode.FAST


def _ref(name: str) -> ComponentRef:
    return ComponentRef((ComponentRefPart(name),))


# ---- bindings ----


def generate_var_bindings(
    names: Sequence[str],
    source: str,
    rank: Rank,
    mode: BindingMode = BindingMode.CHECKED,
) -> tuple[Assignment, ...]:
    """
    Bind each name to its row of ``source``.

    Example:
        generate_var_bindings(["temp", "prcp"], "inputs", Rank.VECTOR)
        # temp = inputs[1, :]
        # prcp = inputs[2, :]
    """
    checked = mode is BindingMode.CHECKED
    return tuple(
        Assignment(
            _ref(name),
            ComponentRef((ComponentRefPart(source, index_pattern(i, rank)),)),
            checked=checked,
        )
        for i, name in enumerate(names, start=1)
    )


def _bag_bindings(names: Sequence[str], bag: str, mode: BindingMode) -> tuple[Assignment, ...]:
    checked = mode is BindingMode.CHECKED
    return tuple(
        Assignment(
            _ref(name),
            ComponentRef((ComponentRefPart("pas"), ComponentRefPart(bag), ComponentRefPart(name))),
            checked=checked,
        )
        for name in names
    )


def generate_param_bindings(params: Sequence[str], mode: BindingMode = BindingMode.CHECKED) -> tuple[Assignment, ...]:
    """``k = pas.params.k`` for each parameter."""
    return _bag_bindings(params, "params", mode)


def generate_network_bindings(networks: Sequence[str], mode: BindingMode = BindingMode.CHECKED) -> tuple[Assignment, ...]:
    """``nn = pas.networks.nn`` for each network slot."""
    return _bag_bindings(networks, "networks", mode)


def generate_bindings(
    spec: ComponentSpec,
    rank: Rank,
    mode: BindingMode = BindingMode.CHECKED,
) -> tuple[Assignment, ...]:
    """All bindings of a component: inputs, states, params, then networks."""
    return (
        generate_var_bindings(spec.inputs, "inputs", rank, mode)
        + generate_var_bindings(spec.states, "states", rank, mode)
        + generate_param_bindings(spec.params, mode)
        + generate_network_bindings(spec.networks, mode)
    )


# ---- computations ----


def generate_computations(
    outputs: Sequence[str],
    exprs: Sequence[Expr],
    strategy: BroadcastStrategy,
) -> tuple[Assignment, ...]:
    """``output = expr`` per pair, element-wise under ``ELEMENTWISE``."""
    if len(outputs) != len(exprs):
        raise StructuralBuildError(
            f"Cannot pair {len(outputs)} outputs {list(outputs)} with {len(exprs)} expressions"
        )
    return tuple(Assignment(_ref(name), apply_broadcast(expr, strategy)) for name, expr in zip(outputs, exprs))


def generate_network_computations(flux: NetworkFlux, rank: Rank) -> tuple[Assignment, ...]:
    """
    Stack the inputs, call the network, split its result into outputs.
    The stacked inputs pass through ``flux.norm`` first when it is set.

    Example:
        nn_input = [x, y]            (or scale([x, y]) with norm="scale")
        nn_output = nn(nn_input)
        a = nn_output[1, :]
    """
    stacked = ArrayLiteral(tuple(_ref(n) for n in flux.inputs))
    if flux.norm is not None:
        stacked = FunctionCall(flux.norm, (stacked,))
    stmts = [
        Assignment(_ref(flux.input_name), stacked),
        Assignment(_ref(flux.output_name), FunctionCall(flux.network, (_ref(flux.input_name),))),
    ]
    for i, name in enumerate(flux.outputs, start=1):
        stmts.append(
            Assignment(
                _ref(name),
                ComponentRef((ComponentRefPart(flux.output_name, index_pattern(i, rank)),)),
            )
        )
    return tuple(stmts)


def generate_flux_computations(fluxes: Sequence[Flux], rank: Rank) -> tuple[Assignment, ...]:
    """Computations of every flux, in order."""
    strategy = broadcast_strategy(rank)
    stmts: tuple[Assignment, ...] = ()
    for flux in fluxes:
        if isinstance(flux, HydroFlux):
            stmts += generate_computations(flux.outputs, flux.exprs, strategy)
        elif isinstance(flux, NetworkFlux):
            stmts += generate_network_computations(flux, rank)
        else:
            raise StructuralBuildError(f"Unknown flux type: {type(flux)}")
    return stmts


# ---- returns ----


def generate_value_return(outputs: Sequence[str]) -> ReturnStatement:
    """``return [out1, out2, ...]``"""
    return ReturnStatement(ArrayLiteral(tuple(_ref(n) for n in outputs)))


def generate_states_return(state_exprs: Sequence[Expr], strategy: BroadcastStrategy) -> ReturnStatement:
    """
    Return the state derivatives.

    Scalar kernels return a plain array of the expressions. Element-wise
    kernels return the flat concatenation of the broadcast expressions.
    """
    if strategy is BroadcastStrategy.NONE:
        return ReturnStatement(ArrayLiteral(tuple(strip_broadcast(e) for e in state_exprs)))
    return ReturnStatement(
        FunctionCall("vcat", tuple(apply_broadcast(e, strategy) for e in state_exprs))
    )


def generate_route_return(outputs: Sequence[str], state_exprs: Sequence[Expr]) -> ReturnStatement:
    """
    ``return tuple(out1, ..., vcat(@. d1, ...))``

    One entry per output followed by the concatenated state derivatives, so
    callers can split outputs from derivatives with ``result[:-1]`` and
    ``result[-1]``.
    """
    derivs = FunctionCall("vcat", tuple(apply_broadcast(e, BroadcastStrategy.ELEMENTWISE) for e in state_exprs))
    return ReturnStatement(FunctionCall("tuple", tuple(_ref(n) for n in outputs) + (derivs,)))


def generate_return(
    role: KernelRole,
    outputs: Sequence[str] = (),
    state_exprs: Sequence[Expr] = (),
    strategy: BroadcastStrategy = BroadcastStrategy.NONE,
    route: bool = False,
) -> ReturnStatement:
    """Return statement for a kernel role."""
    if role is KernelRole.VALUE:
        return generate_value_return(outputs)
    elif role is KernelRole.DERIVATIVE:
        if route:
            return generate_route_return(outputs, state_exprs)
        return generate_states_return(state_exprs, strategy)
    raise ValueError(f"Unknown kernel role: {role}")


# ---- assembly ----


class Kernel:
    """
    Callable kernel assembled from a ``KernelSpec``.

    Call it with positional arguments matching ``spec.signature``.
    """

    def __init__(
        self,
        spec: KernelSpec,
        config: BuildConfig = DEFAULT_BUILD_CONFIG,
        executor: Optional[KernelExecutor] = None,
    ):
        self.spec = spec
        self.config = config
        self._executor = executor if executor is not None else get_executor(config.backend)

    def __call__(self, *args):
        return self._executor.run(self.spec, args)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def signature(self) -> tuple[str, ...]:
        return self.spec.signature

    @property
    def source(self) -> str:
        return self.spec.source()

    @property
    def num_bindings(self) -> int:
        return self.spec.num_bindings

    @property
    def num_computations(self) -> int:
        return self.spec.num_computations

    def __repr__(self) -> str:
        return f"Kernel({self.spec.name}({', '.join(self.spec.signature)}), backend={self._executor.name})"


class NullKernel:
    """Derivative kernel of a stateless component: accepts anything, returns None."""

    spec = None
    source = ""
    num_bindings = 0
    num_computations = 0

    def __call__(self, *args) -> None:
        return None

    def __repr__(self) -> str:
        return "NullKernel()"


def _is_empty_return(stmt: ReturnStatement) -> bool:
    value = stmt.value
    if isinstance(value, ArrayLiteral):
        return len(value.elements) == 0
    if isinstance(value, FunctionCall) and value.func == "vcat":
        return len(value.args) == 0
    if isinstance(value, FunctionCall) and value.func == "tuple":
        # Route derivatives end with the vcat of the state derivatives
        return not value.args or _is_empty_return(ReturnStatement(value.args[-1]))
    return False


def assemble_kernel(spec: KernelSpec, config: BuildConfig = DEFAULT_BUILD_CONFIG) -> Kernel:
    """
    Turn a kernel description into a callable.

    Only structural checks happen here. Variable names are not validated,
    use ``hydrocore.ir.validate_kernel_spec`` for that.

    Raises:
        StructuralBuildError: Empty signature or missing/empty return
    """
    if not spec.signature:
        raise StructuralBuildError(f"Kernel '{spec.name}' has an empty signature")
    if spec.return_stmt is None:
        raise StructuralBuildError(f"Kernel '{spec.name}' has no return statement")
    if _is_empty_return(spec.return_stmt):
        raise StructuralBuildError(
            f"Kernel '{spec.name}' returns nothing\n"
            f"  Hint: Declare at least one output (value kernels) or state expression (derivative kernels)"
        )

    if config.debug:
        logger.debug("Assembled kernel '%s':\n%s", spec.name, spec.source())
    return Kernel(spec, config)


def preview_kernel(spec: Union[KernelSpec, Kernel]) -> str:
    """Rendered kernel source framed for printing."""
    if isinstance(spec, Kernel):
        spec = spec.spec
    rule = "=" * 80
    return "\n".join(["Generated kernel:", rule, spec.source(), rule])


def analyze_kernel(spec: Union[KernelSpec, Kernel], config: Optional[BuildConfig] = None) -> dict[str, Any]:
    """
    Summary of a kernel for introspection.

    Example:
        >>> analyze_kernel(kernel)
        {'name': 'snow_value', 'num_bindings': 5, 'num_computations': 2, ...}
    """
    if isinstance(spec, Kernel):
        config = config if config is not None else spec.config
        spec = spec.spec
    config = config if config is not None else DEFAULT_BUILD_CONFIG
    return {
        "name": spec.name,
        "num_bindings": spec.num_bindings,
        "num_computations": spec.num_computations,
        "rank": spec.rank,
        "role": spec.role,
        "broadcast": spec.strategy is BroadcastStrategy.ELEMENTWISE,
        "differentiable": is_differentiable(config),
        "checked": spec.mode is BindingMode.CHECKED,
    }
