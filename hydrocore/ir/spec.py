"""
Attribute contract of a component.

A ``ComponentSpec`` records the ordered input, output, state, parameter and
network-slot names of one component. Order is the binding order used when
indexing into flat arrays, so it is part of the contract.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple, Union

from hydrocore.ir.types import AttrCategory

CategoryLike = Union[AttrCategory, str]


def _category(category: CategoryLike) -> AttrCategory:
    return category if isinstance(category, AttrCategory) else AttrCategory(category)


def _ordered_union(*groups: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for name in group:
            seen.setdefault(name)
    return tuple(seen)


@dataclass(frozen=True)
class ComponentSpec:
    """
    Immutable contract of a component.

    Example:
        >>> spec = ComponentSpec(inputs=["temp", "prcp"], outputs=["q"], params=["k"])
        >>> spec.inputs
        ('temp', 'prcp')
        >>> spec.count("inputs")
        2
    """

    inputs: Sequence[str] = ()
    outputs: Sequence[str] = ()
    states: Sequence[str] = ()
    params: Sequence[str] = ()
    networks: Sequence[str] = ()
    name: str = ""

    def __post_init__(self):
        for category in AttrCategory:
            names = tuple(getattr(self, category.value))
            duplicates = sorted({n for n in names if names.count(n) > 1})
            if duplicates:
                raise ValueError(
                    f"Duplicate {category.value} in component '{self.name}': {duplicates}"
                )
            object.__setattr__(self, category.value, names)

        pairs = (
            (AttrCategory.INPUTS, AttrCategory.OUTPUTS),
            (AttrCategory.INPUTS, AttrCategory.STATES),
            (AttrCategory.OUTPUTS, AttrCategory.STATES),
        )
        for first, second in pairs:
            shared = intersect(self, self, first, second)
            if shared:
                raise ValueError(
                    f"Names {list(shared)} of component '{self.name}' appear in both "
                    f"{first.value} and {second.value}"
                )

    def names(self, category: CategoryLike) -> tuple[str, ...]:
        """Names of one category."""
        return getattr(self, _category(category).value)

    def has(self, category: CategoryLike, name: str) -> bool:
        """True if ``name`` is declared in ``category``."""
        return name in self.names(category)

    def count(self, category: CategoryLike) -> int:
        """Number of names in ``category``."""
        return len(self.names(category))

    @property
    def has_inputs(self) -> bool:
        return bool(self.inputs)

    @property
    def has_outputs(self) -> bool:
        return bool(self.outputs)

    @property
    def has_states(self) -> bool:
        return bool(self.states)

    @property
    def has_params(self) -> bool:
        return bool(self.params)

    @property
    def has_networks(self) -> bool:
        return bool(self.networks)


class Contract(NamedTuple):
    """Free-variable contract of a composition of components."""

    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    states: tuple[str, ...]


ContractLike = Union[ComponentSpec, Contract]


def names(spec: ComponentSpec, category: CategoryLike) -> tuple[str, ...]:
    return spec.names(category)


def has(spec: ComponentSpec, category: CategoryLike, name: str) -> bool:
    return spec.has(category, name)


def count_of(spec: ComponentSpec, category: CategoryLike) -> int:
    return spec.count(category)


def has_any(spec: ComponentSpec, category: CategoryLike, candidates: Iterable[str]) -> bool:
    """True if any of ``candidates`` is declared in ``category``."""
    declared = spec.names(category)
    return any(n in declared for n in candidates)


def is_empty(spec: ComponentSpec, category: CategoryLike) -> bool:
    return spec.count(category) == 0


def var_names(spec: ComponentSpec) -> tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]:
    """``(inputs, outputs, states)`` of a single component."""
    return spec.inputs, spec.outputs, spec.states


def all_names(spec: ComponentSpec) -> tuple[tuple[str, ...], ...]:
    """``(inputs, outputs, states, params, networks)`` of a single component."""
    return tuple(spec.names(c) for c in AttrCategory)


def union(
    a: ComponentSpec,
    b: ComponentSpec,
    category: CategoryLike,
    other_category: Union[CategoryLike, None] = None,
) -> tuple[str, ...]:
    """Names in either spec, order of ``a`` first."""
    other = category if other_category is None else other_category
    return _ordered_union(a.names(category), b.names(other))


def intersect(
    a: ComponentSpec,
    b: ComponentSpec,
    category: CategoryLike,
    other_category: Union[CategoryLike, None] = None,
) -> tuple[str, ...]:
    """Names in both specs, order of ``a``."""
    other = set(b.names(category if other_category is None else other_category))
    return tuple(n for n in a.names(category) if n in other)


def difference(
    a: ComponentSpec,
    b: ComponentSpec,
    category: CategoryLike,
    other_category: Union[CategoryLike, None] = None,
) -> tuple[str, ...]:
    """Names of ``a`` not in ``b``, order of ``a``."""
    other = set(b.names(category if other_category is None else other_category))
    return tuple(n for n in a.names(category) if n not in other)


def collect_unique(specs: Iterable[ComponentSpec], category: CategoryLike) -> tuple[str, ...]:
    """Ordered union of one category across many specs."""
    return _ordered_union(*(s.names(category) for s in specs))


def merge_contracts(components: Iterable[ContractLike]) -> Contract:
    """
    Fold a sequence of components into the contract of their composition.

    An output of component *i* satisfies an input of any later component.
    Inputs never satisfied by an earlier output are external inputs of the
    composite, except state names, which are always supplied externally as
    state vectors.

    Example:
        >>> a = ComponentSpec(inputs=["prcp"], outputs=["rain"])
        >>> b = ComponentSpec(inputs=["rain", "s"], outputs=["q"])
        >>> merge_contracts([a, b])
        Contract(inputs=('prcp', 's'), outputs=('rain', 'q'), states=())
    """
    components = list(components)
    states = _ordered_union(*(c.states for c in components))
    inputs: dict[str, None] = {}
    outputs: dict[str, None] = {}

    for component in components:
        for name in component.inputs:
            if name not in outputs:
                inputs.setdefault(name)
        for name in component.outputs:
            outputs.setdefault(name)

    state_set = set(states)
    return Contract(
        inputs=tuple(n for n in inputs if n not in state_set),
        outputs=tuple(outputs),
        states=states,
    )
