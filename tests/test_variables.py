"""
Test suite for PNSystem containers and the variable catalog.

Tests cover:
- PN order validation
- BinaryParams construction and validation
- Dual-mode consistency: every accessor gives the same value on a
  numeric system and on the expanded symbolic expression
- Frame vectors form an orthonormal triad
"""

import math

import numpy as np
import sympy
import pytest

from pnevolve import BinaryParams, NumericPNSystem, SymbolicPNSystem, symbolic_pnsystem
from pnevolve import PNValidationWarning, variables, temp_config
from pnevolve.symbolic import placeholder
from pnevolve.system import STATE_NAMES, prepare_pn_order, is_symbolic
from pnevolve.variables import DERIVED_VARIABLES, FUNDAMENTAL_VARIABLES, expand_derived


@pytest.fixture
def binary():
    """A generic precessing, tidally deformable binary."""
    return BinaryParams(
        M1=0.62, M2=0.38,
        chi1=(0.3, -0.2, 0.5), chi2=(-0.1, 0.4, 0.2),
        R=(0.9, 0.1, -0.3, 0.2),
        v=0.27, Phi=1.3,
        Lambda1=120.0, Lambda2=340.0,
    )


def _substitutions(pnsystem):
    subs = {placeholder(name): value
            for name, value in zip(STATE_NAMES, pnsystem.state)}
    subs[placeholder("Lambda1")] = pnsystem.Lambda1
    subs[placeholder("Lambda2")] = pnsystem.Lambda2
    return subs


class TestPNOrder:
    """Test PN order validation."""

    def test_half_integers(self):
        """Multiples of 1/2 are accepted."""
        assert prepare_pn_order(3.5) == 3.5
        assert prepare_pn_order(0) == 0.0
        assert prepare_pn_order(math.inf) == math.inf

    def test_default(self):
        """None selects the configured default."""
        with temp_config(DEFAULT_PN_ORDER=2.0):
            assert prepare_pn_order(None) == 2.0

    @pytest.mark.parametrize("order", [-1, 1.25, float("nan"), "two"])
    def test_invalid(self, order):
        """Negative, fractional, NaN and non-numeric orders are rejected."""
        with pytest.raises(ValueError):
            prepare_pn_order(order)


class TestBinaryParams:
    """Test BinaryParams validation."""

    def test_quaternion_normalized(self, binary):
        """R is normalized on construction."""
        assert math.isclose(sum(x * x for x in binary.R), 1.0, rel_tol=1e-14)

    def test_nonpositive_mass(self):
        """Masses must be positive."""
        with pytest.raises(ValueError, match="M1"):
            BinaryParams(M1=0.0, M2=0.5)

    def test_superextremal_strict(self):
        """|chi| > 1 raises under strict validation."""
        with temp_config(STRICT_VALIDATION=True):
            with pytest.raises(ValueError, match="Kerr"):
                BinaryParams(M1=0.5, M2=0.5, chi1=(0.0, 0.0, 1.2))

    def test_superextremal_lenient(self):
        """|chi| > 1 only warns under lenient validation."""
        with temp_config(STRICT_VALIDATION=False):
            with pytest.warns(PNValidationWarning, match="Kerr"):
                BinaryParams(M1=0.5, M2=0.5, chi1=(0.0, 0.0, 1.2))

    def test_wrong_vector_length(self):
        """Spin vectors need three components."""
        with pytest.raises(ValueError, match="chi2"):
            BinaryParams(M1=0.5, M2=0.5, chi2=(0.1, 0.2))

    def test_state_layout(self, binary):
        """The state vector follows STATE_NAMES."""
        state = binary.state
        assert state[STATE_NAMES.index("v")] == binary.v
        assert state[STATE_NAMES.index("Phi")] == binary.Phi
        assert tuple(state[2:5]) == binary.chi1


class TestPNSystems:
    """Test the numeric and symbolic containers."""

    def test_numeric_wrong_shape(self):
        """Numeric states need 14 entries."""
        with pytest.raises(ValueError, match="shape"):
            NumericPNSystem(np.zeros(5))

    def test_copy_is_independent(self, binary):
        """copy() does not share the state array."""
        pnsystem = binary.to_pnsystem()
        other = pnsystem.copy()
        other.state[0] = 99.0
        assert pnsystem.state[0] == binary.M1

    def test_symbolic_flags(self):
        """Capability flags and math namespaces."""
        assert symbolic_pnsystem.is_symbolic
        assert symbolic_pnsystem.xp is sympy
        assert symbolic_pnsystem.pn_order == math.inf
        assert SymbolicPNSystem(2.0).pn_order == 2.0
        assert not NumericPNSystem(np.ones(14)).is_symbolic

    def test_bare_vectors(self):
        """Bare state vectors are classified by their entries."""
        assert is_symbolic([placeholder(n) for n in STATE_NAMES])
        assert not is_symbolic(np.ones(14))


class TestDualMode:
    """Every accessor agrees between the two representations."""

    def test_fundamental_placeholders(self):
        """Fundamental accessors give their own placeholder symbolically."""
        for name, accessor in FUNDAMENTAL_VARIABLES.items():
            assert accessor(symbolic_pnsystem) == placeholder(name)

    def test_derived_placeholders(self):
        """Derived scalars short-circuit to their own placeholder."""
        for name, accessor in DERIVED_VARIABLES.items():
            assert accessor(symbolic_pnsystem) == placeholder(name)

    @pytest.mark.parametrize("name", sorted(DERIVED_VARIABLES))
    def test_derived_consistency(self, binary, name):
        """Expanded symbolic formula evaluates to the numeric value."""
        pnsystem = binary.to_pnsystem()
        accessor = DERIVED_VARIABLES[name]
        numeric = accessor(pnsystem)
        expanded = expand_derived(accessor(symbolic_pnsystem))
        assert not expanded.free_symbols & {placeholder(n) for n in DERIVED_VARIABLES}
        symbolic = float(expanded.xreplace(_substitutions(pnsystem)))
        assert math.isclose(numeric, symbolic, rel_tol=1e-12, abs_tol=1e-14)

    @pytest.mark.parametrize("accessor", [
        variables.ell_hat, variables.n_hat, variables.lambda_hat,
        variables.S1, variables.S2, variables.S, variables.Sigma,
    ])
    def test_vector_consistency(self, binary, accessor):
        """Vector-valued variables agree componentwise."""
        pnsystem = binary.to_pnsystem()
        subs = _substitutions(pnsystem)
        for n, s in zip(accessor(pnsystem), accessor(symbolic_pnsystem)):
            assert math.isclose(n, float(expand_derived(s).xreplace(subs)),
                                rel_tol=1e-12, abs_tol=1e-14)

    def test_known_values(self):
        """Mass combinations for a 3:1 binary."""
        pnsystem = BinaryParams(M1=0.75, M2=0.25).to_pnsystem()
        assert math.isclose(variables.nu(pnsystem), 0.1875)
        assert math.isclose(variables.delta(pnsystem), 0.5)
        assert math.isclose(variables.q(pnsystem), 3.0)
        assert math.isclose(variables.mu(pnsystem), 0.1875)


class TestFrame:
    """The frame vectors form a right-handed orthonormal triad."""

    def test_orthonormal(self, binary):
        """n_hat, lambda_hat, ell_hat are orthonormal and right-handed."""
        pnsystem = binary.to_pnsystem()
        n = np.array(variables.n_hat(pnsystem))
        lam = np.array(variables.lambda_hat(pnsystem))
        ell = np.array(variables.ell_hat(pnsystem))
        frame = np.array([n, lam, ell])
        np.testing.assert_allclose(frame @ frame.T, np.eye(3), atol=1e-14)
        np.testing.assert_allclose(np.cross(n, lam), ell, atol=1e-14)

    def test_identity_rotation(self):
        """The identity quaternion gives the coordinate axes."""
        pnsystem = BinaryParams(M1=0.5, M2=0.5).to_pnsystem()
        np.testing.assert_allclose(variables.ell_hat(pnsystem), [0, 0, 1])
        np.testing.assert_allclose(variables.n_hat(pnsystem), [1, 0, 0])
