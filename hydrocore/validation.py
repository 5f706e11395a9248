"""
Runtime argument validation.

Checks concrete runtime arguments against a component contract before a
kernel is called:
- Input array rank, variable count and time length
- Presence of declared parameters, initial states and network slots
- NaN, Inf and negative values (warnings only)
- Dependencies along a chain of components

Fatal problems raise typed errors from ``hydrocore.errors``. Value findings
are emitted as ``ValueWarning`` and never block execution.
"""

import logging
import warnings
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np

from hydrocore.errors import ChainValidationError, HydroCoreError, MissingKey, ShapeMismatch, ValueWarning
from hydrocore.ir.rank import rank_for_input
from hydrocore.ir.spec import ComponentSpec
from hydrocore.ir.types import Rank
from hydrocore.ir.validation import ValidationCategory, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class RuntimeArgs:
    """Concrete arguments of one component call."""

    inputs: Any  # (variables, time) or (variables, grid, time)
    params: Mapping[str, Any]
    init_states: Mapping[str, Any]
    time_index: Any
    networks: Mapping[str, Any] = field(default_factory=dict)

    @property
    def pas(self) -> dict[str, Mapping[str, Any]]:
        """Parameter bag in the layout kernels read from."""
        return {"params": self.params, "networks": self.networks}


def _label(spec: ComponentSpec) -> str:
    return spec.name or "<unnamed>"


def _missing(declared: Sequence[str], available: Mapping[str, Any]) -> list[str]:
    return [name for name in declared if name not in available]


def check_input(spec: ComponentSpec, inputs: Any, time_index: Any) -> Rank:
    """
    Validate the input array against the declared inputs.

    Returns:
        The rank implied by the input (VECTOR for 2-D, MATRIX for 3-D)

    Raises:
        ShapeMismatch: Wrong dimensionality, variable count or time length
    """
    shape = np.shape(inputs)
    name = _label(spec)
    if len(shape) not in (2, 3):
        raise ShapeMismatch(
            f"Input of component '{name}' must be 2-D or 3-D, got {len(shape)}-D with shape {shape}",
            expected=(2, 3),
            actual=len(shape),
            hint="Use (variables, timesteps) or (variables, grids, timesteps)",
        )
    rank = rank_for_input(len(shape))

    expected_vars = spec.count("inputs")
    if shape[0] != expected_vars:
        grid = ", grids" if rank is Rank.MATRIX else ""
        raise ShapeMismatch(
            f"Input variables in component '{name}' do not match required dimensions.\n"
            f"  Expected: {expected_vars} variables {list(spec.inputs)}\n"
            f"  Got:      {shape[0]} variables",
            expected=expected_vars,
            actual=shape[0],
            hint=f"Check that input array has shape ({expected_vars}{grid}, timesteps)",
        )

    expected_steps = len(time_index)
    if shape[-1] != expected_steps:
        raise ShapeMismatch(
            f"Time steps in component '{name}' do not match required length.\n"
            f"  Expected: {expected_steps} steps\n"
            f"  Got:      {shape[-1]} steps",
            expected=expected_steps,
            actual=shape[-1],
            hint=f"time_index length should match input dimension {len(shape)}",
        )
    return rank


def check_params(spec: ComponentSpec, params: Mapping[str, Any]) -> None:
    """Raise ``MissingKey`` if a declared parameter is absent."""
    missing = _missing(spec.params, params)
    if missing:
        raise MissingKey("parameters", _label(spec), missing, list(params))


def check_init_states(spec: ComponentSpec, init_states: Mapping[str, Any], rank: Rank = Rank.VECTOR) -> None:
    """
    Raise ``MissingKey`` if a declared state is absent.

    Also warns when a state has more dimensions than the rank allows: at most
    1-D for scalar and vector inputs, at most 2-D for matrix inputs.
    """
    missing = _missing(spec.states, init_states)
    if missing:
        raise MissingKey("initial states", _label(spec), missing, list(init_states))

    max_ndim = 2 if rank is Rank.MATRIX else 1
    for state in spec.states:
        ndim = np.ndim(init_states[state])
        if ndim > max_ndim:
            warnings.warn(
                f"Initial state '{state}' in component '{_label(spec)}' has dimension {ndim}, "
                f"expected at most {max_ndim}-D for {rank.name.lower()} inputs",
                ValueWarning,
                stacklevel=2,
            )


def check_networks(spec: ComponentSpec, networks: Mapping[str, Any]) -> None:
    """Raise ``MissingKey`` if a declared network slot is absent."""
    missing = _missing(spec.networks, networks)
    if missing:
        raise MissingKey("networks", _label(spec), missing, list(networks))


def check_values(
    values: Any,
    allow_negative: bool = False,
    label: str = "value",
    component: str = "",
    warn: bool = True,
) -> list[str]:
    """
    Look for NaN, Inf and (unless allowed) negative entries.

    Returns:
        Findings among "nan", "inf" and "negative", each also warned about
        as ``ValueWarning`` when ``warn`` is set

    Raises:
        TypeError: If ``values`` cannot be converted to a float array
    """
    where = f" in component '{component}'" if component else ""
    try:
        array = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise TypeError(f"'{label}'{where} is not numeric: {values!r}") from e
    findings = []
    if np.isnan(array).any():
        findings.append("nan")
    if np.isinf(array).any():
        findings.append("inf")
    if not allow_negative and (array < 0).any():
        findings.append("negative")

    if warn:
        messages = {"nan": "NaN", "inf": "Inf", "negative": "negative"}
        for finding in findings:
            warnings.warn(f"'{label}'{where} contains {messages[finding]} values", ValueWarning, stacklevel=2)
    return findings


def check_param_values(
    spec: ComponentSpec, params: Mapping[str, Any], allow_negative: bool = False
) -> dict[str, list[str]]:
    """Value findings per declared parameter (only parameters with findings)."""
    found = {}
    for name in spec.params:
        findings = check_values(params[name], allow_negative, f"parameter {name}", _label(spec))
        if findings:
            found[name] = findings
    return found


def check_state_values(spec: ComponentSpec, init_states: Mapping[str, Any]) -> dict[str, list[str]]:
    """NaN/Inf findings per declared state. Negative states are allowed."""
    found = {}
    for name in spec.states:
        findings = check_values(init_states[name], True, f"initial state {name}", _label(spec))
        if findings:
            found[name] = findings
    return found


def check(
    spec: ComponentSpec,
    inputs: Any,
    pas: Mapping[str, Mapping[str, Any]],
    init_states: Mapping[str, Any],
    time_index: Any,
) -> None:
    """
    Full single-component check: input, params, initial states, networks.

    Stops at the first failure.

    Example:
        >>> spec = ComponentSpec(inputs=["prcp"], outputs=["q"], params=["k"])
        >>> check(spec, np.ones((1, 10)), {"params": {"k": 0.5}}, {}, range(10))
    """
    rank = check_input(spec, inputs, time_index)
    check_params(spec, pas.get("params", {}))
    check_init_states(spec, init_states, rank)
    check_networks(spec, pas.get("networks", {}))


def validate(spec: ComponentSpec, args: RuntimeArgs) -> bool:
    """Run ``check`` on bundled arguments, return True or raise."""
    check(spec, args.inputs, args.pas, args.init_states, args.time_index)
    return True


def check_dependencies(spec: ComponentSpec, available: Iterable[str]) -> tuple[bool, tuple[str, ...]]:
    """``(satisfied, missing)`` for the inputs of one component."""
    available = set(available)
    missing = tuple(name for name in spec.inputs if name not in available)
    return not missing, missing


def check_dependency_chain(
    specs: Sequence[ComponentSpec], initial_vars: Iterable[str] = ()
) -> tuple[str, ...]:
    """
    Check that every component's inputs are produced before it runs.

    Returns:
        Every variable available after the chain, in order of appearance

    Raises:
        ChainValidationError: At the first component with missing inputs
            (positions are 1-based)
    """
    available: dict[str, None] = dict.fromkeys(initial_vars)
    for position, spec in enumerate(specs, start=1):
        satisfied, missing = check_dependencies(spec, available)
        if not satisfied:
            raise ChainValidationError(position, _label(spec), missing, list(available))
        for name in spec.outputs:
            available.setdefault(name)
    return tuple(available)


def check_each(
    specs: Sequence[ComponentSpec],
    inputs: Any,
    pas: Mapping[str, Mapping[str, Any]],
    init_states: Mapping[str, Any],
    time_index: Any,
) -> list[bool]:
    """Run ``check`` per component, recording pass/fail instead of raising."""
    results = []
    for spec in specs:
        try:
            check(spec, inputs, pas, init_states, time_index)
            results.append(True)
        except HydroCoreError as e:
            logger.warning("Component '%s' failed validation: %s", _label(spec), e)
            results.append(False)
    return results


def check_all(
    specs: Sequence[ComponentSpec],
    inputs: Any,
    pas: Mapping[str, Mapping[str, Any]],
    init_states: Mapping[str, Any],
    time_index: Any,
) -> bool:
    """True only if every component passes ``check``."""
    return all(check_each(specs, inputs, pas, init_states, time_index))


def diagnose(
    specs: Sequence[ComponentSpec],
    args: RuntimeArgs,
    initial_vars: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """
    Collect every problem of a set of components into one result.

    Unlike ``check`` nothing is raised: errors and value warnings of every
    component are recorded as issues. Non-numeric parameter or state values
    are recorded as VALUE errors. When ``initial_vars`` is given the
    components are also checked as a dependency chain.

    Example:
        >>> result = diagnose([snow, soil], args, initial_vars=["prcp", "temp"])
        >>> print(result.summary())
    """
    result = ValidationResult()

    for spec in specs:
        location = f"component {_label(spec)}"
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", ValueWarning)
            try:
                validate(spec, args)
            except ShapeMismatch as e:
                result.add_error(
                    ValidationCategory.SHAPE_MISMATCH, str(e), location, expected=e.expected, actual=e.actual
                )
            except MissingKey as e:
                result.add_error(
                    ValidationCategory.MISSING_KEY, str(e), location, kind=e.kind, missing=e.missing
                )
            else:
                try:
                    check_param_values(spec, args.params)
                    check_state_values(spec, args.init_states)
                except TypeError as e:
                    result.add_error(ValidationCategory.VALUE, str(e), location)
        for w in caught:
            if issubclass(w.category, ValueWarning):
                result.add_warning(ValidationCategory.VALUE, str(w.message), location)

    if initial_vars is not None:
        available: dict[str, None] = dict.fromkeys(initial_vars)
        for position, spec in enumerate(specs, start=1):
            satisfied, missing = check_dependencies(spec, available)
            if not satisfied:
                result.add_error(
                    ValidationCategory.DEPENDENCY,
                    f"Missing inputs {list(missing)}",
                    f"component #{position} ({_label(spec)})",
                    missing=missing,
                )
            for name in spec.outputs:
                available.setdefault(name)

    return result
