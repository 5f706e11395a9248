"""
Kernel description.

A ``KernelSpec`` is the build-time value the compiler produces and the
assembler consumes: a call signature, binding statements, computation
statements and one return statement.
"""

from dataclasses import dataclass
from typing import Optional

from hydrocore.ir.spec import ComponentSpec
from hydrocore.ir.statement import Assignment, ReturnStatement
from hydrocore.ir.types import BindingMode, BroadcastStrategy, KernelRole, Rank


@dataclass(frozen=True)
class KernelSpec:
    """Immutable description of one generated kernel."""

    name: str
    signature: tuple[str, ...]
    bindings: tuple[Assignment, ...]
    computations: tuple[Assignment, ...]
    return_stmt: Optional[ReturnStatement]
    component: ComponentSpec
    rank: Rank = Rank.SCALAR
    role: KernelRole = KernelRole.VALUE
    strategy: BroadcastStrategy = BroadcastStrategy.NONE
    mode: BindingMode = BindingMode.CHECKED

    @property
    def num_bindings(self) -> int:
        return len(self.bindings)

    @property
    def num_computations(self) -> int:
        return len(self.computations)

    @property
    def statements(self) -> tuple:
        """All statements in execution order, return last."""
        body = self.bindings + self.computations
        return body + (self.return_stmt,) if self.return_stmt is not None else body

    def source(self) -> str:
        """Render the kernel as Python-like source for previews."""
        lines = [f"def {self.name}({', '.join(self.signature)}):"]
        for stmt in self.statements:
            lines.append(f"    {stmt}")
        return "\n".join(lines)
