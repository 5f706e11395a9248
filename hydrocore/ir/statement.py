"""
Statement representation in the IR.

Kernels are straight-line programs: a block of assignments (bindings, then
computations) followed by exactly one return statement.
"""

from dataclasses import dataclass

from hydrocore.ir.expr import Expr, ComponentRef, render


@dataclass(frozen=True)
class Statement:
    """Base class for all kernel statements."""

    pass


@dataclass(frozen=True)
class Assignment(Statement):
    """
    Assignment statement: target := expr

    ``checked`` marks bindings that verify their source index or key before
    reading it. Computations are always unchecked.
    """

    target: ComponentRef  # What variable to assign to
    expr: Expr  # Expression to evaluate
    checked: bool = False

    def __str__(self):
        return f"{self.target} = {render(self.expr)}"


@dataclass(frozen=True)
class ReturnStatement(Statement):
    """Return statement: return value"""

    value: Expr

    def __str__(self):
        return f"return {render(self.value)}"
