"""
Test suite for the approximant right-hand sides.

Tests cover:
- Newtonian limit of dv/dt for every approximant
- TaylorT1, T4 and T5 agree at low velocity
- Domain errors give NaN derivatives
- Quaternion norm and spin magnitudes are preserved by the rotation terms
- Symbolic right-hand sides
"""

import math

import numpy as np
import pytest
import sympy

from pnevolve import (
    APPROXIMANTS, BinaryParams, NumericPNSystem, SymbolicPNSystem, TaylorT1,
    TaylorT4, get_approximant, make_rhs,
)
from pnevolve.approximants import causes_domain_error
from pnevolve.symbolic import placeholder, unhold
from pnevolve.system import CHI1_SLICE, CHI2_SLICE, M1_INDEX, PHI_INDEX, R_SLICE, V_INDEX


@pytest.fixture
def precessing():
    """Generic precessing binary."""
    return BinaryParams(
        M1=0.65, M2=0.35,
        chi1=(0.4, 0.1, 0.5), chi2=(-0.2, 0.3, 0.3),
        R=(0.9, 0.2, -0.1, 0.3),
        v=0.25,
    )


class TestNewtonianLimit:
    """At 0PN, dv/dt = 32/5 nu v^9 / M."""

    @pytest.mark.parametrize("name", sorted(APPROXIMANTS))
    def test_v_dot(self, name):
        """Every approximant reduces to the quadrupole formula."""
        binary = BinaryParams(M1=0.7, M2=0.3, v=0.2)
        u_dot = get_approximant(name)(binary.to_pnsystem(0.0))
        nu = 0.21
        expected = 32 / 5 * nu * 0.2**9 / 1.0
        assert math.isclose(u_dot[V_INDEX], expected, rel_tol=1e-12)

    def test_no_mass_change_or_precession(self):
        """At 0PN there is no horizon absorption and no precession."""
        binary = BinaryParams(M1=0.6, M2=0.4, chi1=(0.3, 0.0, 0.2), v=0.2)
        u_dot = TaylorT1(binary.to_pnsystem(0.0))
        assert np.all(u_dot[:2] == 0)
        assert np.all(u_dot[CHI1_SLICE] == 0)
        assert np.all(u_dot[R_SLICE] == 0)

    def test_phase_rate(self, precessing):
        """dPhi/dt = v^3/M at every order."""
        u_dot = TaylorT1(precessing.to_pnsystem(3.5))
        assert math.isclose(u_dot[PHI_INDEX], 0.25**3, rel_tol=1e-14)


class TestApproximantAgreement:
    """Approximants differ only beyond the PN order."""

    @pytest.mark.parametrize("name", ["TaylorT4", "TaylorT5"])
    def test_low_velocity_agreement(self, precessing, name):
        """At small v, T4 and T5 agree with T1 up to truncation error."""
        binary = BinaryParams(
            M1=precessing.M1, M2=precessing.M2,
            chi1=precessing.chi1, chi2=precessing.chi2,
            R=precessing.R, v=0.05,
        )
        pnsystem = binary.to_pnsystem(3.5)
        t1 = TaylorT1(pnsystem)
        other = get_approximant(name)(pnsystem)
        assert math.isclose(other[V_INDEX], t1[V_INDEX], rel_tol=1e-5)
        # Everything except dv/dt is shared
        mask = np.arange(len(t1)) != V_INDEX
        np.testing.assert_allclose(other[mask], t1[mask], rtol=1e-13, atol=1e-30)

    def test_differences_grow_with_velocity(self):
        """T1 and T4 diverge as v increases."""
        def relative_difference(velocity):
            binary = BinaryParams(M1=0.5, M2=0.5, v=velocity)
            pnsystem = binary.to_pnsystem(2.0)
            a = TaylorT1(pnsystem)[V_INDEX]
            b = TaylorT4(pnsystem)[V_INDEX]
            return abs(a - b) / abs(a)
        assert relative_difference(0.05) < relative_difference(0.3)


class TestDomainErrors:
    """States outside the physical domain give NaN derivatives."""

    def test_negative_mass(self, precessing):
        """A non-positive mass fills the derivative with NaN."""
        state = precessing.state
        state[M1_INDEX] = -0.1
        u_dot = TaylorT1(NumericPNSystem(state, 3.5))
        assert np.all(np.isnan(u_dot))

    def test_superextremal_spin(self, precessing):
        """|chi| > 1 fills the derivative with NaN."""
        state = precessing.state
        state[CHI2_SLICE] = (0.0, 0.0, 1.5)
        u_dot = TaylorT4(NumericPNSystem(state, 2.0))
        assert np.all(np.isnan(u_dot))

    def test_valid_state_passes(self, precessing):
        """Physical states are not flagged and the buffer is untouched."""
        buffer = np.zeros(14)
        assert not causes_domain_error(buffer, precessing.to_pnsystem())
        assert np.all(buffer == 0)


class TestConservation:
    """Rotation terms preserve norms."""

    @pytest.mark.parametrize("name", sorted(APPROXIMANTS))
    def test_quaternion_norm(self, precessing, name):
        """R . dR/dt = 0, so |R| is constant."""
        pnsystem = precessing.to_pnsystem(3.5)
        u_dot = get_approximant(name)(pnsystem)
        R = pnsystem.state[R_SLICE]
        R_dot = u_dot[R_SLICE]
        assert np.any(R_dot != 0)
        assert abs(np.dot(R, R_dot)) < 1e-13 * np.linalg.norm(R_dot)

    def test_spin_magnitude_without_heating(self, precessing):
        """Below 2.5PN only precession acts, so chi . dchi/dt = 0."""
        pnsystem = precessing.to_pnsystem(2.0)
        u_dot = TaylorT1(pnsystem)
        for sl in (CHI1_SLICE, CHI2_SLICE):
            assert abs(np.dot(pnsystem.state[sl], u_dot[sl])) < 1e-15

    def test_masses_grow_with_heating(self):
        """With horizon absorption, a non-spinning hole gains mass."""
        binary = BinaryParams(M1=0.5, M2=0.5, v=0.3)
        u_dot = TaylorT1(binary.to_pnsystem(4.0))
        assert u_dot[0] > 0 and u_dot[1] > 0


class TestSymbolicRHS:
    """Approximants on symbolic systems."""

    def test_symbolic_t1(self):
        """TaylorT1 returns 14 sympy expressions."""
        rhs = TaylorT1(SymbolicPNSystem(1.0))
        assert len(rhs) == 14
        assert all(isinstance(x, sympy.Basic) for x in rhs)

    def test_symbolic_t4_leading_order(self):
        """TaylorT4 at 0PN is the quadrupole formula symbolically."""
        rhs = TaylorT4(SymbolicPNSystem(0.0))
        nu, v, mu = placeholder("nu"), placeholder("v"), placeholder("mu")
        expected = sympy.Rational(32, 5) * nu**2 * v**9 / mu
        assert sympy.simplify(unhold(rhs[V_INDEX]) - expected) == 0


class TestLookup:
    """Approximant registry and ODE adapter."""

    def test_unknown_name(self):
        """Unknown names raise ValueError listing the options."""
        with pytest.raises(ValueError, match="TaylorT1"):
            get_approximant("TaylorF2")

    def test_make_rhs(self, precessing):
        """make_rhs adapts an approximant to f(t, u)."""
        pnsystem = precessing.to_pnsystem(2.0)
        rhs = make_rhs("TaylorT1", pnsystem)
        u = precessing.state
        u[V_INDEX] = 0.3
        u_dot = rhs(0.0, u)
        assert pnsystem.state[V_INDEX] == 0.3
        np.testing.assert_array_equal(u_dot, TaylorT1(NumericPNSystem(u, 2.0)))

    def test_make_rhs_symbolic(self):
        """make_rhs needs a numeric system."""
        with pytest.raises(ValueError, match="numeric"):
            make_rhs("TaylorT1", SymbolicPNSystem(1.0))
