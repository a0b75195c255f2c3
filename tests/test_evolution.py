"""
Test suite for InspiralSystem: compilation and heyoka evolutions.

Low PN orders keep compilation short.

Tests cover:
- Construction and argument validation
- Conversion of the right-hand side for heyoka
- Forwards and backwards evolutions ending at their targets
- Agreement with the analytic Newtonian inspiral
- Precessing evolutions preserve norms
- Domain breakdown reported through PNTerminationWarning
"""

import math

import numpy as np
import pytest
import sympy

from pnevolve import (
    BinaryParams, Inspiral, InspiralSystem, PNTerminationWarning,
    SymbolicPNSystem, TerminationReason, get_approximant, temp_config,
)
from pnevolve.defaults import EQUAL_MASS_NONSPINNING, PRECESSING, taylor_t1
from pnevolve.evolution import _double_precision
from pnevolve.symbolic import placeholder
from pnevolve.system import CHI1_SLICE, R_SLICE, V_INDEX


@pytest.fixture(scope="module")
def newtonian():
    """Compiled 0PN TaylorT1 system."""
    with temp_config(VERBOSE=False):
        return InspiralSystem('TaylorT1', 0.0)


@pytest.fixture(scope="module")
def spinning():
    """Compiled 2PN TaylorT1 system (includes precession)."""
    with temp_config(VERBOSE=False):
        return taylor_t1(pn_order=2.0)


class TestConstruction:
    """Test InspiralSystem construction."""

    def test_deferred_compilation(self):
        """compile=False builds nothing until asked."""
        system = InspiralSystem('TaylorT4', 1.0, compile=False)
        assert not system.is_compiled
        assert system.cached_eom is None
        assert system.approximant == 'TaylorT4'
        assert system.pn_order == 1.0

    def test_defaults_from_config(self):
        """Approximant and order default to the configuration."""
        with temp_config(DEFAULT_APPROXIMANT='TaylorT5', DEFAULT_PN_ORDER=1.5,
                         DEFAULT_COMPILE=False):
            system = InspiralSystem()
        assert system.approximant == 'TaylorT5'
        assert system.pn_order == 1.5
        assert not system.is_compiled

    def test_unknown_approximant(self):
        """Unknown approximants are rejected."""
        with pytest.raises(ValueError, match="Unknown approximant"):
            InspiralSystem('TaylorF2', 2.0, compile=False)

    def test_unbounded_order(self):
        """An integrator needs a finite PN order."""
        with pytest.raises(ValueError, match="finite"):
            InspiralSystem('TaylorT1', math.inf, compile=False)

    def test_param_info(self):
        """Runtime parameters are documented."""
        info = InspiralSystem('TaylorT1', 1.0, compile=False).param_info
        assert info['param_map'] == [('Lambda1', 0), ('Lambda2', 1), ('v_target', 2)]
        assert set(info['description']) == {'Lambda1', 'Lambda2', 'v_target'}

    def test_repr(self):
        """repr shows approximant, order and compilation state."""
        text = repr(InspiralSystem('TaylorT1', 1.0, compile=False))
        assert "TaylorT1" in text and "compiled=False" in text

    def test_compile_messages(self, capsys):
        """Compilation prints progress when verbose."""
        with temp_config(VERBOSE=True):
            system = InspiralSystem('TaylorT1', 0.0, compile=False).compile()
        out = capsys.readouterr().out
        assert system.is_compiled
        assert "Compiling TaylorT1 integrator" in out
        assert "Compilation complete" in out


class TestHeyokaConversion:
    """Right-hand sides are converted with double-precision constants."""

    def test_fractions_become_doubles(self):
        """Exact fractions are replaced by floats heyoka accepts."""
        v = placeholder("v")
        expr = sympy.Rational(1247, 336) * v**2 + sympy.Rational(32, 5) * v**9
        converted = _double_precision(expr)
        numbers = [node for node in sympy.preorder_traversal(converted)
                   if node.is_Rational and not node.is_Integer]
        assert numbers == []
        value = float(converted.xreplace({v: sympy.Float(0.5)}))
        assert value == pytest.approx(1247 / 336 * 0.25 + 32 / 5 * 0.5**9, rel=1e-14)

    def test_symbolic_rhs_converts(self):
        """A full 3.5PN right-hand side leaves no exact fractions."""
        rhs = get_approximant("TaylorT4")(SymbolicPNSystem(3.5))
        for expr in rhs:
            converted = _double_precision(expr)
            assert not any(node.is_Rational and not node.is_Integer
                           for node in sympy.preorder_traversal(converted))

    @pytest.mark.parametrize("name", ["TaylorT4", "TaylorT5"])
    def test_other_approximants_evolve(self, name):
        """TaylorT4 and TaylorT5 compile and reach both targets."""
        with temp_config(VERBOSE=False):
            system = InspiralSystem(name, 1.0)
        inspiral = system.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3, v_start=0.15,
                                 quiet=True)
        assert inspiral.reached_target
        assert inspiral.v[0] == pytest.approx(0.15, abs=1e-10)
        assert inspiral.v[-1] == pytest.approx(0.3, abs=1e-10)


class TestArgumentValidation:
    """Invalid evolution requests are rejected before integrating."""

    @pytest.fixture
    def system(self):
        return InspiralSystem('TaylorT1', 0.0, compile=False)

    def test_v_end_below_start(self, system):
        """v_end must exceed the initial velocity."""
        with pytest.raises(ValueError, match="v_end"):
            system.evolve(EQUAL_MASS_NONSPINNING, v_end=0.1)

    def test_v_start_above_start(self, system):
        """v_start must be below the initial velocity."""
        with pytest.raises(ValueError, match="v_start"):
            system.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3, v_start=0.25)

    def test_wrong_shape(self, system):
        """Raw states need 14 entries."""
        with pytest.raises(ValueError, match="shape"):
            system.evolve(np.ones(6), v_end=0.3)

    def test_nonfinite_state(self, system):
        """NaN in the initial state is rejected."""
        state = EQUAL_MASS_NONSPINNING.state
        state[3] = np.nan
        with pytest.raises(ValueError, match="NaN"):
            system.evolve(state, v_end=0.3)
        assert not system.is_compiled


class TestNewtonianEvolution:
    """0PN evolutions against the analytic solution."""

    def test_reaches_target(self, newtonian, capsys):
        """The forwards evolution stops at v_end with a message."""
        inspiral = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3)
        assert isinstance(inspiral, Inspiral)
        assert inspiral.reached_target
        assert inspiral.v[-1] == pytest.approx(0.3, abs=1e-10)
        assert np.all(np.diff(inspiral.times) > 0)
        assert np.all(np.diff(inspiral.v) > 0)
        assert "v_end=0.3" in capsys.readouterr().out

    def test_quiet(self, newtonian, capsys):
        """quiet=True silences the target message."""
        newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.25, quiet=True)
        assert capsys.readouterr().out == ""

    def test_analytic_time_to_target(self, newtonian):
        """t(v) = 5M/(256 nu) (v0^-8 - v^-8) at Newtonian order."""
        v0, v1 = 0.2, 0.3
        binary = BinaryParams(M1=0.6, M2=0.4, v=v0)
        inspiral = newtonian.evolve(binary, v_end=v1, quiet=True)
        nu = 0.24
        expected = 5 / (256 * nu) * (v0**-8 - v1**-8)
        assert inspiral.tf == pytest.approx(expected, rel=1e-8)

    def test_phase_matches_analytic(self, newtonian):
        """Phi(v) = (v0^-5 - v^-5)/(32 nu) at Newtonian order."""
        v0, v1 = 0.2, 0.28
        inspiral = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=v1, quiet=True)
        expected = (v0**-5 - v1**-5) / (32 * 0.25)
        assert inspiral.Phi[-1] == pytest.approx(expected, rel=1e-8)

    def test_dense_output(self, newtonian):
        """Continuous output matches the analytic v(t) between steps."""
        inspiral = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3, quiet=True)
        t = 0.5 * inspiral.tf
        v_expected = (0.2**-8 - 256 * 0.25 * t / 5) ** (-1 / 8)
        assert inspiral.state_at(t).state[V_INDEX] == pytest.approx(v_expected, rel=1e-9)

    def test_backwards(self, newtonian):
        """Backwards evolution reaches v_start at negative times."""
        inspiral = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.25,
                                    v_start=0.15, quiet=True)
        assert inspiral.t0 < 0 < inspiral.tf
        assert inspiral.v[0] == pytest.approx(0.15, abs=1e-10)
        assert inspiral.v[-1] == pytest.approx(0.25, abs=1e-10)
        assert set(inspiral.termination_reasons) == {"backwards", "forwards"}
        assert np.all(np.diff(inspiral.times) > 0)
        assert inspiral.state_at_raw(0.0)[V_INDEX] == pytest.approx(0.2)

    def test_reuse(self, newtonian):
        """One compiled system serves many evolutions."""
        a = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3, quiet=True)
        b = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3, quiet=True)
        assert a.tf == pytest.approx(b.tf, rel=1e-14)


class TestSpinningEvolution:
    """2PN evolutions with precession."""

    def test_precessing_norms(self, spinning):
        """|R| and |chi| are conserved below 2.5PN."""
        inspiral = spinning.evolve(PRECESSING, v_end=0.3, quiet=True)
        assert inspiral.reached_target
        R_norms = np.linalg.norm(inspiral.states[:, R_SLICE], axis=1)
        chi_norms = np.linalg.norm(inspiral.states[:, CHI1_SLICE], axis=1)
        np.testing.assert_allclose(R_norms, 1.0, atol=1e-10)
        np.testing.assert_allclose(chi_norms, chi_norms[0], atol=1e-10)
        # The frame actually moved
        assert not np.allclose(inspiral.states[-1, R_SLICE], inspiral.states[0, R_SLICE])

    def test_dataframe(self, spinning):
        """Exports the evolution to pandas."""
        inspiral = spinning.evolve(PRECESSING, v_end=0.25, quiet=True)
        df = inspiral.to_dataframe(n_points=50)
        assert len(df) == 50
        assert "chi1x" in df.columns and "time" in df.columns


class TestBreakdown:
    """Evolutions that leave the domain of the PN equations."""

    def test_time_limit(self, newtonian):
        """A tiny time budget stops the evolution with a warning."""
        with temp_config(MAX_EVOLUTION_TIME=1.0):
            with pytest.warns(PNTerminationWarning, match="maximum evolution time"):
                inspiral = newtonian.evolve(EQUAL_MASS_NONSPINNING, v_end=0.3,
                                            quiet=True)
        assert inspiral.termination_reasons["forwards"] is TerminationReason.TIME_LIMIT
        assert not inspiral.reached_target
        assert inspiral.tf == pytest.approx(1.0)
