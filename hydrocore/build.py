"""
Kernel pair builder.

Decides per component family which ranks the value and derivative kernels
use, generates their descriptions and assembles them:

    family            value (bind / compute)   derivative (bind / compute)
    FLUX              scalar / scalar          -
    BUCKET            vector / vector          scalar / scalar
    BUCKET_MULTIPLY   matrix / matrix          vector / vector
    ROUTE             matrix / vector          vector / vector

Route derivative kernels return ``(out1, ..., derivatives)`` instead of a
single array. Stateless components get a ``NullKernel`` as derivative
kernel. Unit hydrographs are piecewise scalar functions of time and are
built separately by ``build_uh_func``.
"""

import threading
from collections.abc import Callable, Hashable, Sequence
from typing import NamedTuple, Optional, Union

from hydrocore.codegen import (
    DEFAULT_BUILD_CONFIG,
    BuildConfig,
    Kernel,
    NullKernel,
    assemble_kernel,
    generate_bindings,
    generate_flux_computations,
    generate_param_bindings,
    generate_return,
)
from hydrocore.errors import StructuralBuildError
from hydrocore.ir.expr import (
    Expr,
    ComponentRef,
    ComponentRefPart,
    FunctionCall,
    IfExpr,
    Literal,
    BinaryOp,
    as_expr,
)
from hydrocore.ir.flux import Flux, HydroFlux
from hydrocore.ir.kernel import KernelSpec
from hydrocore.ir.rank import broadcast_strategy
from hydrocore.ir.spec import ComponentSpec
from hydrocore.ir.statement import Assignment, ReturnStatement
from hydrocore.ir.types import BindingMode, ComponentFamily, KernelRole, Rank


class RankPair(NamedTuple):
    """Rank of the bindings and rank of the computations of one kernel."""

    bind: Rank
    compute: Rank


FAMILY_RANKS: dict[ComponentFamily, dict[KernelRole, RankPair]] = {
    ComponentFamily.FLUX: {
        KernelRole.VALUE: RankPair(Rank.SCALAR, Rank.SCALAR),
    },
    ComponentFamily.BUCKET: {
        KernelRole.VALUE: RankPair(Rank.VECTOR, Rank.VECTOR),
        KernelRole.DERIVATIVE: RankPair(Rank.SCALAR, Rank.SCALAR),
    },
    ComponentFamily.BUCKET_MULTIPLY: {
        KernelRole.VALUE: RankPair(Rank.MATRIX, Rank.MATRIX),
        KernelRole.DERIVATIVE: RankPair(Rank.VECTOR, Rank.VECTOR),
    },
    ComponentFamily.ROUTE: {
        KernelRole.VALUE: RankPair(Rank.MATRIX, Rank.VECTOR),
        KernelRole.DERIVATIVE: RankPair(Rank.VECTOR, Rank.VECTOR),
    },
}

FLUX_SIGNATURE = ("inputs", "pas")
STATEFUL_SIGNATURE = ("inputs", "states", "pas")

KernelLike = Union[Kernel, NullKernel]


def family_ranks(family: ComponentFamily, role: KernelRole) -> RankPair:
    """Look up the fixed rank layout of a family."""
    if family not in FAMILY_RANKS:
        raise ValueError(f"Component family {family.name} is not rank dispatched")
    roles = FAMILY_RANKS[family]
    if role not in roles:
        raise ValueError(f"Component family {family.name} has no {role.value} kernel")
    return roles[role]


class KernelCache:
    """
    Thread-safe memo of assembled kernels.

    Keys are values (contracts, fluxes, expressions, ranks, configs), so two
    structurally equal requests share one kernel.
    """

    def __init__(self):
        self._kernels: dict[Hashable, Kernel] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_build(self, key: Hashable, factory: Callable[[], Kernel]) -> Kernel:
        """Return the cached kernel for ``key`` or build, store and return it."""
        with self._lock:
            kernel = self._kernels.get(key)
            if kernel is not None:
                self.hits += 1
                return kernel
            self.misses += 1
            kernel = factory()
            self._kernels[key] = kernel
            return kernel

    def clear(self) -> None:
        with self._lock:
            self._kernels.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        return len(self._kernels)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._kernels


_cache = KernelCache()


def get_kernel_cache() -> KernelCache:
    """Get the process-wide kernel cache."""
    return _cache


def generate_kernel_spec(
    spec: ComponentSpec,
    fluxes: Sequence[Flux],
    rank: Rank,
    role: KernelRole = KernelRole.VALUE,
    state_exprs: Sequence[Expr] = (),
    bind_rank: Optional[Rank] = None,
    signature: Optional[Sequence[str]] = None,
    route: bool = False,
    mode: BindingMode = BindingMode.CHECKED,
) -> KernelSpec:
    """
    Describe one kernel of a component.

    Args:
        spec: Component contract
        fluxes: Computation blocks, in order
        rank: Rank of the computations
        role: VALUE returns the outputs, DERIVATIVE the state derivatives
        state_exprs: One derivative expression per state (DERIVATIVE only)
        bind_rank: Rank of the bindings, defaults to ``rank``
        signature: Argument names, defaults to (inputs, states, pas) for
            stateful components and (inputs, pas) otherwise
        route: Return a tuple of the outputs and the concatenated derivatives
            (route derivative kernels)
        mode: CHECKED or UNCHECKED bindings
    """
    bind_rank = rank if bind_rank is None else bind_rank
    if signature is None:
        signature = STATEFUL_SIGNATURE if spec.has_states else FLUX_SIGNATURE
    signature = tuple(signature)

    if spec.has_states and "states" not in signature:
        raise StructuralBuildError(
            f"Component '{spec.name}' declares states {list(spec.states)} "
            f"but the kernel signature {signature} has no 'states' argument"
        )
    if role is KernelRole.DERIVATIVE and len(state_exprs) != spec.count("states"):
        raise StructuralBuildError(
            f"Component '{spec.name}' declares {spec.count('states')} states "
            f"but {len(state_exprs)} derivative expressions were given"
        )

    strategy = broadcast_strategy(rank)
    prefix = spec.name or "component"
    return KernelSpec(
        name=f"{prefix}_{role.value}",
        signature=signature,
        bindings=generate_bindings(spec, bind_rank, mode),
        computations=generate_flux_computations(fluxes, rank),
        return_stmt=generate_return(role, spec.outputs, state_exprs, strategy, route),
        component=spec,
        rank=rank,
        role=role,
        strategy=strategy,
        mode=mode,
    )


def compile_kernel(
    spec: ComponentSpec,
    fluxes: Sequence[Flux],
    rank: Rank,
    role: KernelRole = KernelRole.VALUE,
    state_exprs: Sequence[Expr] = (),
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
    cache: Optional[KernelCache] = None,
    bind_rank: Optional[Rank] = None,
    signature: Optional[Sequence[str]] = None,
    route: bool = False,
) -> Kernel:
    """
    Generate and assemble one kernel, reusing a cached one when possible.

    Example:
        >>> spec = ComponentSpec(inputs=["temp", "prcp"], outputs=["q"], params=["k"])
        >>> q = Expr.mul(Expr.var_ref("k"), Expr.add(Expr.var_ref("temp"), Expr.var_ref("prcp")))
        >>> kernel = compile_kernel(spec, [HydroFlux(["q"], [q])], Rank.SCALAR)
        >>> kernel(np.array([1.0, 2.0]), {"params": {"k": 2.5}})
        array([7.5])
    """
    fluxes = tuple(fluxes)
    state_exprs = tuple(state_exprs)
    signature = tuple(signature) if signature is not None else None
    cache = cache if cache is not None else get_kernel_cache()
    key = (spec, fluxes, state_exprs, bind_rank, rank, role, signature, route, config)

    def factory() -> Kernel:
        kernel_spec = generate_kernel_spec(
            spec,
            fluxes,
            rank,
            role,
            state_exprs,
            bind_rank=bind_rank,
            signature=signature,
            route=route,
            mode=config.binding_mode,
        )
        return assemble_kernel(kernel_spec, config)

    return cache.get_or_build(key, factory)


def build_function_pair(
    value_spec: KernelSpec,
    derivative_spec: Optional[KernelSpec],
    has_states: bool,
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
    cache: Optional[KernelCache] = None,
) -> tuple[Kernel, KernelLike]:
    """
    Assemble a value kernel and its derivative kernel.

    The derivative kernel is a ``NullKernel`` unless the component has states
    and a derivative description was given.
    """
    cache = cache if cache is not None else get_kernel_cache()
    value = cache.get_or_build((value_spec, config), lambda: assemble_kernel(value_spec, config))
    if has_states and derivative_spec is not None:
        derivative = cache.get_or_build(
            (derivative_spec, config), lambda: assemble_kernel(derivative_spec, config)
        )
        return value, derivative
    return value, NullKernel()


def _family_pair(
    family: ComponentFamily,
    fluxes: Sequence[Flux],
    state_exprs: Sequence[Expr],
    spec: ComponentSpec,
    config: BuildConfig,
    cache: Optional[KernelCache],
) -> tuple[Kernel, KernelLike]:
    route = family is ComponentFamily.ROUTE
    value_ranks = family_ranks(family, KernelRole.VALUE)
    value_spec = generate_kernel_spec(
        spec,
        fluxes,
        value_ranks.compute,
        KernelRole.VALUE,
        bind_rank=value_ranks.bind,
        signature=STATEFUL_SIGNATURE,
        mode=config.binding_mode,
    )

    derivative_spec = None
    if spec.has_states:
        derivative_ranks = family_ranks(family, KernelRole.DERIVATIVE)
        derivative_spec = generate_kernel_spec(
            spec,
            fluxes,
            derivative_ranks.compute,
            KernelRole.DERIVATIVE,
            state_exprs,
            bind_rank=derivative_ranks.bind,
            signature=STATEFUL_SIGNATURE,
            route=route,
            mode=config.binding_mode,
        )

    return build_function_pair(value_spec, derivative_spec, spec.has_states, config, cache)


def build_flux_func(
    exprs: Sequence[Expr],
    spec: ComponentSpec,
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
    cache: Optional[KernelCache] = None,
) -> Kernel:
    """
    Build the scalar value kernel ``f(inputs, pas)`` of a plain flux.

    ``exprs`` are aligned with ``spec.outputs``.
    """
    ranks = family_ranks(ComponentFamily.FLUX, KernelRole.VALUE)
    return compile_kernel(
        spec,
        (HydroFlux(spec.outputs, exprs),),
        ranks.compute,
        KernelRole.VALUE,
        config=config,
        cache=cache,
        bind_rank=ranks.bind,
    )


def build_bucket_func(
    fluxes: Sequence[Flux],
    state_exprs: Sequence[Expr],
    spec: ComponentSpec,
    multiply: bool = False,
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
    cache: Optional[KernelCache] = None,
) -> tuple[Kernel, KernelLike]:
    """
    Build ``(value, derivative)`` kernels of a bucket, both ``f(inputs, states, pas)``.

    A single bucket evaluates time series in its value kernel and one time
    step in its derivative kernel. With ``multiply`` the bucket is replicated
    over a grid and both kernels gain one axis.
    """
    family = ComponentFamily.BUCKET_MULTIPLY if multiply else ComponentFamily.BUCKET
    return _family_pair(family, fluxes, state_exprs, spec, config, cache)


def build_route_func(
    fluxes: Sequence[Flux],
    state_exprs: Sequence[Expr],
    spec: ComponentSpec,
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
    cache: Optional[KernelCache] = None,
) -> tuple[Kernel, KernelLike]:
    """
    Build ``(value, derivative)`` kernels of a routing network.

    The derivative kernel returns a tuple with one array per output followed
    by one flat array of the state derivatives, so a routing network with
    outputs (outflow, loss) yields three entries.
    """
    return _family_pair(ComponentFamily.ROUTE, fluxes, state_exprs, spec, config, cache)


def _piecewise(t: Expr, conditions: Sequence[tuple[Expr, Expr]]) -> Expr:
    # Innermost check is the first interval, so the last interval is tested first
    result: Expr = Literal(1.0)
    lower: Expr = Literal(0)
    for bound, value in conditions:
        inside = BinaryOp("and", BinaryOp("<=", lower, t), BinaryOp("<=", t, bound))
        result = IfExpr(inside, value, result)
        lower = bound
    return result


def build_uh_func(
    conditions: Sequence[tuple[Union[Expr, float, int], Union[Expr, float, int]]],
    params: Sequence[str],
    max_lag: Union[Expr, float, int],
    config: BuildConfig = DEFAULT_BUILD_CONFIG,
) -> tuple[Kernel, Kernel]:
    """
    Build the weight and maximum-lag functions of a unit hydrograph.

    Args:
        conditions: Ordered ``(upper_bound, value)`` pairs. Pair *i* covers the
            closed interval ``[upper_bound of pair i-1 (or 0), upper_bound]``.
            Intervals are tested from the last to the first, ``1.0`` is
            returned when none matches.
        params: Parameter names the bounds, values and lag may reference
        max_lag: Expression of the maximum lag, rounded up

    Returns:
        ``(weight(t, pas), max_lag(pas))``

    Example:
        >>> weight, lag = build_uh_func([(1, 0.2), (2, 0.5), (3, 1.0)], [], 3)
        >>> weight(1.5, {"params": {}})
        0.5
    """
    pairs = tuple((as_expr(bound), as_expr(value)) for bound, value in conditions)
    spec = ComponentSpec(params=params, name="unit_hydrograph")
    mode = config.binding_mode
    param_bindings = generate_param_bindings(spec.params, mode)
    t = ComponentRef((ComponentRefPart("t"),))
    weight_ref = ComponentRef((ComponentRefPart("weight"),))
    lag_ref = ComponentRef((ComponentRefPart("lag"),))

    weight_spec = KernelSpec(
        name="uh_weight",
        signature=("t", "pas"),
        bindings=param_bindings,
        computations=(Assignment(weight_ref, _piecewise(t, pairs)),),
        return_stmt=ReturnStatement(weight_ref),
        component=spec,
        mode=mode,
    )
    lag_spec = KernelSpec(
        name="uh_max_lag",
        signature=("pas",),
        bindings=param_bindings,
        computations=(Assignment(lag_ref, FunctionCall("ceil", (as_expr(max_lag),))),),
        return_stmt=ReturnStatement(lag_ref),
        component=spec,
        mode=mode,
    )
    return assemble_kernel(weight_spec, config), assemble_kernel(lag_spec, config)
