"""
Intermediate Representation (IR) for component kernels.

This module provides the build-time data structures: component contracts,
ranks, expressions, statements, fluxes and kernel descriptions. Everything
here is an immutable value and safe to share between threads.
"""

from hydrocore.ir.types import (
    AttrCategory,
    Rank,
    BroadcastStrategy,
    KernelRole,
    BindingMode,
    PerformanceMode,
    ComponentFamily,
)
from hydrocore.ir.expr import (
    Expr,
    Literal,
    BinaryOp,
    UnaryOp,
    FunctionCall,
    ComponentRef,
    ComponentRefPart,
    ArrayLiteral,
    Slice,
    IfExpr,
    Broadcast,
    ExprBuilder,
    as_expr,
    render,
    free_variables,
)
from hydrocore.ir.statement import Statement, Assignment, ReturnStatement
from hydrocore.ir.spec import (
    ComponentSpec,
    Contract,
    names,
    has,
    count_of,
    has_any,
    is_empty,
    var_names,
    all_names,
    union,
    intersect,
    difference,
    collect_unique,
    merge_contracts,
)
from hydrocore.ir.rank import (
    broadcast_strategy,
    uses_broadcast,
    dim_rank,
    rank_for_input,
    index_pattern,
    format_index,
    apply_broadcast,
    strip_broadcast,
)
from hydrocore.ir.flux import HydroFlux, NetworkFlux, Flux
from hydrocore.ir.kernel import KernelSpec
from hydrocore.ir.validation import (
    ValidationSeverity,
    ValidationCategory,
    ValidationIssue,
    ValidationResult,
    validate_kernel_spec,
)

__all__ = [
    # Types
    "AttrCategory",
    "Rank",
    "BroadcastStrategy",
    "KernelRole",
    "BindingMode",
    "PerformanceMode",
    "ComponentFamily",
    # Expressions
    "Expr",
    "Literal",
    "BinaryOp",
    "UnaryOp",
    "FunctionCall",
    "ComponentRef",
    "ComponentRefPart",
    "ArrayLiteral",
    "Slice",
    "IfExpr",
    "Broadcast",
    "ExprBuilder",
    "as_expr",
    "render",
    "free_variables",
    # Statements
    "Statement",
    "Assignment",
    "ReturnStatement",
    # Contracts
    "ComponentSpec",
    "Contract",
    "names",
    "has",
    "count_of",
    "has_any",
    "is_empty",
    "var_names",
    "all_names",
    "union",
    "intersect",
    "difference",
    "collect_unique",
    "merge_contracts",
    # Ranks
    "broadcast_strategy",
    "uses_broadcast",
    "dim_rank",
    "rank_for_input",
    "index_pattern",
    "format_index",
    "apply_broadcast",
    "strip_broadcast",
    # Kernels
    "HydroFlux",
    "NetworkFlux",
    "Flux",
    "KernelSpec",
    # Validation
    "ValidationSeverity",
    "ValidationCategory",
    "ValidationIssue",
    "ValidationResult",
    "validate_kernel_spec",
]
