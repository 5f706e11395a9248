"""
Computation blocks of a kernel.

A component's computations are an ordered list of fluxes. A ``HydroFlux``
assigns one expression per output name; a ``NetworkFlux`` stacks its inputs,
calls the sub-model bound to a network slot and splits the result into its
outputs.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional, Union

from hydrocore.ir.expr import Expr


@dataclass(frozen=True)
class HydroFlux:
    """Expressions computing ``outputs`` (aligned by position)."""

    outputs: Sequence[str]
    exprs: Sequence[Expr]

    def __post_init__(self):
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "exprs", tuple(self.exprs))
        if len(self.outputs) != len(self.exprs):
            raise ValueError(
                f"HydroFlux has {len(self.outputs)} outputs {list(self.outputs)} "
                f"but {len(self.exprs)} expressions"
            )


@dataclass(frozen=True)
class NetworkFlux:
    """
    Outputs produced by an externally supplied sub-model.

    The network slot must hold a callable taking the stacked inputs
    (shape ``(len(inputs), ...)``) and returning an array whose leading axis
    has one row per output.

    ``norm`` names a function applied to the stacked inputs before the
    network call. It resolves like any other call: a custom executor
    function, a builtin, or a callable bound under that name (for example
    a second network slot).
    """

    network: str
    inputs: Sequence[str]
    outputs: Sequence[str]
    norm: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @property
    def input_name(self) -> str:
        return f"{self.network}_input"

    @property
    def output_name(self) -> str:
        return f"{self.network}_output"


Flux = Union[HydroFlux, NetworkFlux]
