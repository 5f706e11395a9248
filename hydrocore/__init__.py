"""
hydrocore - Component contracts and kernel generation for hydrological models

Turns declarative component descriptions (inputs, outputs, states,
parameters, network slots and flux expressions) into shape-specialized
kernels and validates runtime arguments before kernels are called.
"""

from beartype.claw import beartype_package

beartype_package(__name__)

__version__ = "0.1.0"

from . import ir
from . import errors
from .ir import ComponentSpec, HydroFlux, NetworkFlux, Rank, Expr
from .codegen import (
    BuildConfig,
    SAFE_CONFIG,
    FAST_CONFIG,
    AUTODIFF_CONFIG,
    DEBUG_CONFIG,
    DEFAULT_BUILD_CONFIG,
    Kernel,
    NullKernel,
)
from .build import (
    build_flux_func,
    build_bucket_func,
    build_route_func,
    build_uh_func,
    compile_kernel,
)
from .validation import RuntimeArgs, validate

__all__ = [
    "ir",
    "errors",
    "ComponentSpec",
    "HydroFlux",
    "NetworkFlux",
    "Rank",
    "Expr",
    "BuildConfig",
    "SAFE_CONFIG",
    "FAST_CONFIG",
    "AUTODIFF_CONFIG",
    "DEBUG_CONFIG",
    "DEFAULT_BUILD_CONFIG",
    "Kernel",
    "NullKernel",
    "build_flux_func",
    "build_bucket_func",
    "build_route_func",
    "build_uh_func",
    "compile_kernel",
    "RuntimeArgs",
    "validate",
    "__version__",
]
