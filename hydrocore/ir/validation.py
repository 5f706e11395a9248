"""
Structured validation results.

Provides issue/result containers shared by the runtime validator and a
static check of kernel descriptions:
- Reads of variables that no earlier statement binds
- Missing return statement
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from hydrocore.ir.expr import ComponentRef, free_variables
from hydrocore.ir.kernel import KernelSpec


class ValidationSeverity(Enum):
    """Severity level of a validation issue."""

    ERROR = "error"  # Critical issue that prevents correct execution
    WARNING = "warning"  # Issue that may cause problems
    INFO = "info"  # Informational note


class ValidationCategory(Enum):
    """Category of validation issue."""

    SHAPE_MISMATCH = "shape_mismatch"
    MISSING_KEY = "missing_key"
    DEPENDENCY = "dependency"
    VALUE = "value"
    UNDEFINED_VARIABLE = "undefined_variable"
    STRUCTURAL = "structural"


@dataclass
class ValidationIssue:
    """A single validation issue."""

    severity: ValidationSeverity
    category: ValidationCategory
    message: str
    location: Optional[str] = None  # e.g., "component snow", "statement 3"
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        return f"[{self.severity.value.upper()}] {self.category.value}: {self.message}{loc}"


@dataclass
class ValidationResult:
    """Result of a validation run."""

    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """True if there are any errors."""
        return any(i.severity == ValidationSeverity.ERROR for i in self.issues)

    @property
    def has_warnings(self) -> bool:
        """True if there are any warnings."""
        return any(i.severity == ValidationSeverity.WARNING for i in self.issues)

    @property
    def is_valid(self) -> bool:
        """True if there are no errors (warnings are OK)."""
        return not self.has_errors

    @property
    def errors(self) -> list[ValidationIssue]:
        """Get all errors."""
        return [i for i in self.issues if i.severity == ValidationSeverity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        """Get all warnings."""
        return [i for i in self.issues if i.severity == ValidationSeverity.WARNING]

    def add(self, issue: ValidationIssue) -> None:
        """Add an issue."""
        self.issues.append(issue)

    def add_error(
        self,
        category: ValidationCategory,
        message: str,
        location: Optional[str] = None,
        **details,
    ) -> None:
        """Add an error."""
        self.add(ValidationIssue(ValidationSeverity.ERROR, category, message, location, details))

    def add_warning(
        self,
        category: ValidationCategory,
        message: str,
        location: Optional[str] = None,
        **details,
    ) -> None:
        """Add a warning."""
        self.add(ValidationIssue(ValidationSeverity.WARNING, category, message, location, details))

    def summary(self) -> str:
        """Get a summary of validation results."""
        status = "VALID" if self.is_valid else "INVALID"
        lines = [
            f"Validation Result: {status}",
            f"  Errors: {len(self.errors)}",
            f"  Warnings: {len(self.warnings)}",
        ]

        if self.issues:
            lines.append("\nIssues:")
            for issue in self.issues:
                lines.append(f"  - {issue}")

        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()


def validate_kernel_spec(spec: KernelSpec) -> ValidationResult:
    """
    Check that every statement of a kernel only reads names bound before it.

    Example:
        >>> result = validate_kernel_spec(kernel_spec)
        >>> if not result.is_valid:
        ...     print(result)
    """
    result = ValidationResult()
    defined = set(spec.signature)

    for i, stmt in enumerate(spec.bindings + spec.computations, start=1):
        for name in free_variables(stmt.expr):
            if name not in defined:
                result.add_error(
                    ValidationCategory.UNDEFINED_VARIABLE,
                    f"'{name}' is read before it is bound",
                    location=f"statement {i} ({stmt.target})",
                    variable=name,
                )
        target = stmt.target
        if isinstance(target, ComponentRef) and target.is_simple:
            if target.simple_name in defined and target.simple_name in spec.signature:
                result.add_warning(
                    ValidationCategory.STRUCTURAL,
                    f"Statement overwrites argument '{target.simple_name}'",
                    location=f"statement {i}",
                )
            defined.add(target.simple_name)

    if spec.return_stmt is None:
        result.add_error(ValidationCategory.STRUCTURAL, "Kernel has no return statement")
    else:
        for name in free_variables(spec.return_stmt.value):
            if name not in defined:
                result.add_error(
                    ValidationCategory.UNDEFINED_VARIABLE,
                    f"Return value reads unbound '{name}'",
                    location="return",
                    variable=name,
                )

    return result
