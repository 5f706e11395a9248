"""
Tests for the CasADi backend.
"""

import pytest
import numpy as np

from hydrocore.build import KernelCache, build_flux_func, compile_kernel
from hydrocore.ir import ComponentSpec, Expr, HydroFlux, IfExpr, Rank
from hydrocore.backends.casadi import generate_code, kernel_jacobian, to_casadi_function


@pytest.fixture
def flux_spec():
    """Scalar kernel of q = k * (temp + prcp)."""
    spec = ComponentSpec(inputs=["temp", "prcp"], outputs=["q"], params=["k"], name="flux")
    q = Expr.mul(Expr.var_ref("k"), Expr.add(Expr.var_ref("temp"), Expr.var_ref("prcp")))
    return build_flux_func([q], spec, cache=KernelCache()).spec


def test_numeric_call(flux_spec):
    f = to_casadi_function(flux_spec)
    assert f.name() == "flux_value"
    assert f.name_in() == ["inputs", "params"]
    assert float(f([1.0, 2.0], [2.5])) == pytest.approx(7.5)


def test_jacobian_wrt_inputs(flux_spec):
    jac = kernel_jacobian(flux_spec, "inputs")
    result = np.array(jac([1.0, 2.0], [2.5]))
    assert result.shape == (1, 2)
    np.testing.assert_allclose(result, [[2.5, 2.5]])


def test_jacobian_wrt_params(flux_spec):
    jac = kernel_jacobian(flux_spec, "params")
    np.testing.assert_allclose(np.array(jac([1.0, 2.0], [2.5])), [[3.0]])


def test_jacobian_unknown_argument(flux_spec):
    with pytest.raises(ValueError, match="Cannot differentiate"):
        kernel_jacobian(flux_spec, "states")


def test_conditional_is_symbolic():
    """Conditions on symbols become if_else instead of Python branches."""
    spec = ComponentSpec(inputs=["s"], outputs=["q"], params=["k"], name="spill")
    s = Expr.var_ref("s")
    q = IfExpr(Expr.gt(s, Expr.var_ref("k")), Expr.sub(s, Expr.var_ref("k")), Expr.literal(0.0))
    f = to_casadi_function(build_flux_func([q], spec, cache=KernelCache()).spec)
    assert float(f([3.0], [1.0])) == pytest.approx(2.0)
    assert float(f([0.5], [1.0])) == pytest.approx(0.0)


def test_vector_kernel_rejected():
    spec = ComponentSpec(inputs=["a"], outputs=["q"])
    kernel = compile_kernel(spec, [HydroFlux(["q"], [Expr.var_ref("a")])], Rank.VECTOR, cache=KernelCache())
    with pytest.raises(ValueError, match="Only scalar kernels"):
        to_casadi_function(kernel.spec)


def test_network_kernel_rejected():
    spec = ComponentSpec(inputs=["a"], outputs=["q"], networks=["nn"])
    kernel = compile_kernel(spec, [HydroFlux(["q"], [Expr.var_ref("a")])], Rank.SCALAR, cache=KernelCache())
    with pytest.raises(ValueError, match="network slots"):
        to_casadi_function(kernel.spec)


def test_generate_code(flux_spec, tmp_path):
    written = generate_code({"flux": to_casadi_function(flux_spec)}, str(tmp_path / "gen"))
    assert written == [tmp_path / "gen" / "flux.c"]
    assert written[0].exists()
    assert "flux_value" in written[0].read_text()


def test_generate_code_unknown_option(flux_spec, tmp_path):
    with pytest.raises(ValueError, match="Unknown code generator option"):
        generate_code({"flux": to_casadi_function(flux_spec)}, str(tmp_path), opt_level=3)
