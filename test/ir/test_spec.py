"""Tests for component contracts (hydrocore.ir.spec)."""

from __future__ import annotations

import dataclasses

import pytest

from hydrocore.ir.spec import (
    ComponentSpec,
    Contract,
    all_names,
    collect_unique,
    count_of,
    difference,
    has,
    has_any,
    intersect,
    is_empty,
    merge_contracts,
    names,
    union,
    var_names,
)
from hydrocore.ir.types import AttrCategory


@pytest.fixture
def snow() -> ComponentSpec:
    return ComponentSpec(
        inputs=["temp", "prcp"],
        outputs=["melt", "rain"],
        states=["snowpack"],
        params=["Tmin", "Df"],
        name="snow",
    )


class TestComponentSpec:
    """Construction, normalization and invariants."""

    def test_sequences_become_tuples(self, snow: ComponentSpec) -> None:
        assert snow.inputs == ("temp", "prcp")
        assert snow.networks == ()

    def test_defaults_are_empty(self) -> None:
        spec = ComponentSpec()
        for category in AttrCategory:
            assert spec.names(category) == ()

    def test_hashable(self, snow: ComponentSpec) -> None:
        same = ComponentSpec(
            inputs=("temp", "prcp"),
            outputs=("melt", "rain"),
            states=("snowpack",),
            params=("Tmin", "Df"),
            name="snow",
        )
        assert snow == same
        assert hash(snow) == hash(same)

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate inputs"):
            ComponentSpec(inputs=["a", "a"])

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"inputs": ["x"], "outputs": ["x"]},
            {"inputs": ["x"], "states": ["x"]},
            {"outputs": ["x"], "states": ["x"]},
        ],
    )
    def test_overlap_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValueError, match="appear in both"):
            ComponentSpec(**kwargs)

    def test_params_are_not_overlap_checked(self) -> None:
        spec = ComponentSpec(inputs=["k"], params=["k"])
        assert spec.has("params", "k")

    def test_immutable(self, snow: ComponentSpec) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            snow.inputs = ("x",)


class TestAccessors:
    """Name accessors accept the enum or its string value."""

    def test_names(self, snow: ComponentSpec) -> None:
        assert names(snow, AttrCategory.STATES) == ("snowpack",)
        assert names(snow, "params") == ("Tmin", "Df")

    def test_has_and_count(self, snow: ComponentSpec) -> None:
        assert has(snow, "inputs", "prcp")
        assert not has(snow, "outputs", "prcp")
        assert count_of(snow, AttrCategory.OUTPUTS) == 2
        assert snow.count("networks") == 0

    def test_flags(self, snow: ComponentSpec) -> None:
        assert snow.has_states
        assert snow.has_params
        assert not snow.has_networks

    def test_has_any_and_is_empty(self, snow: ComponentSpec) -> None:
        assert has_any(snow, "inputs", ["wind", "temp"])
        assert not has_any(snow, "inputs", ["wind"])
        assert is_empty(snow, "networks")

    def test_grouped_names(self, snow: ComponentSpec) -> None:
        assert var_names(snow) == (("temp", "prcp"), ("melt", "rain"), ("snowpack",))
        assert all_names(snow)[3] == ("Tmin", "Df")

    def test_unknown_category(self, snow: ComponentSpec) -> None:
        with pytest.raises(ValueError):
            snow.names("fluxes")


class TestSetAlgebra:
    """Order-preserving union, intersection and difference."""

    def test_union(self) -> None:
        a = ComponentSpec(inputs=["x", "y"])
        b = ComponentSpec(inputs=["z", "x"])
        assert union(a, b, "inputs") == ("x", "y", "z")

    def test_intersect(self) -> None:
        a = ComponentSpec(inputs=["x", "y", "z"])
        b = ComponentSpec(inputs=["z", "x"])
        assert intersect(a, b, "inputs") == ("x", "z")

    def test_difference(self) -> None:
        a = ComponentSpec(inputs=["x", "y", "z"])
        b = ComponentSpec(inputs=["y"])
        assert difference(a, b, "inputs") == ("x", "z")

    def test_cross_category(self) -> None:
        upstream = ComponentSpec(outputs=["rain"])
        downstream = ComponentSpec(inputs=["rain", "pet"])
        assert difference(downstream, upstream, "inputs", "outputs") == ("pet",)

    def test_collect_unique(self) -> None:
        specs = [ComponentSpec(params=["a", "b"]), ComponentSpec(params=["b", "c"])]
        assert collect_unique(specs, "params") == ("a", "b", "c")


class TestMergeContracts:
    """Folding a chain of components into one contract."""

    def test_outputs_satisfy_later_inputs(self) -> None:
        a = ComponentSpec(inputs=["prcp"], outputs=["rain"])
        b = ComponentSpec(inputs=["rain", "pet"], outputs=["q"])
        assert merge_contracts([a, b]) == Contract(("prcp", "pet"), ("rain", "q"), ())

    def test_later_outputs_do_not_satisfy_earlier_inputs(self) -> None:
        a = ComponentSpec(inputs=["q"], outputs=["x"])
        b = ComponentSpec(inputs=["x"], outputs=["q"])
        assert merge_contracts([a, b]).inputs == ("q",)

    def test_states_are_never_inputs(self) -> None:
        a = ComponentSpec(inputs=["soilwater"], outputs=["et"])
        b = ComponentSpec(inputs=["et"], states=["soilwater"])
        merged = merge_contracts([a, b])
        assert merged.inputs == ()
        assert merged.states == ("soilwater",)

    def test_empty(self) -> None:
        assert merge_contracts([]) == Contract((), (), ())

    def test_associative(self) -> None:
        """Merging a prefix first gives the same contract as merging at once."""
        chain = [
            ComponentSpec(inputs=["prcp", "temp"], outputs=["snowmelt"], states=["snowpack"]),
            ComponentSpec(inputs=["snowmelt", "pet"], outputs=["recharge", "et"], states=["soil"]),
            ComponentSpec(inputs=["recharge", "soil"], outputs=["q"]),
            ComponentSpec(inputs=["q", "temp"], outputs=["flow"], states=["river"]),
        ]
        whole = merge_contracts(chain)
        for split in range(len(chain) + 1):
            left = merge_contracts(chain[:split])
            right = merge_contracts(chain[split:])
            assert merge_contracts([left, right]) == whole
