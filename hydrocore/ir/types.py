"""
Type definitions for the IR.
"""

from enum import Enum, auto


class AttrCategory(Enum):
    """Attribute category of a component contract."""

    INPUTS = "inputs"
    OUTPUTS = "outputs"
    STATES = "states"
    PARAMS = "params"
    NETWORKS = "networks"


class Rank(Enum):
    """Array-shape class a kernel is specialized for."""

    SCALAR = 0  # one value per variable
    VECTOR = 1  # one column (time series) per variable
    MATRIX = 2  # one grid x time block per variable


class BroadcastStrategy(Enum):
    """Whether expression operators apply once or element-wise."""

    NONE = auto()
    ELEMENTWISE = auto()


class KernelRole(Enum):
    """What a generated kernel returns."""

    VALUE = "value"  # component outputs
    DERIVATIVE = "derivative"  # state derivatives


class BindingMode(Enum):
    """How generated bindings read from their source arrays and bags."""

    CHECKED = auto()  # bounds and key checks with readable errors
    UNCHECKED = auto()  # raw access, opt-in only


class PerformanceMode(Enum):
    """Build mode of generated kernels."""

    SAFE = auto()
    FAST = auto()
    AUTODIFF = auto()


class ComponentFamily(Enum):
    """Component families with a fixed kernel rank layout."""

    FLUX = auto()
    BUCKET = auto()
    BUCKET_MULTIPLY = auto()
    ROUTE = auto()
    UNIT_HYDROGRAPH = auto()
