"""
Approximant right-hand sides.

An approximant maps a PNSystem to the time derivative of its full state
vector. All of them share the spin, orientation, mass and phase
equations and differ only in how ``dv/dt`` is assembled from the flux
𝓕, the horizon absorption ``Ṁ₁ + Ṁ₂`` and the binding-energy derivative
``𝓔' = d𝓔/dv``:

* ``TaylorT1``: ``v̇ = -(𝓕 + Ṁ₁ + Ṁ₂) / 𝓔'`` with numerator and
  denominator truncated separately.
* ``TaylorT4``: the same quotient re-expanded as a series in ``v`` and
  truncated.
* ``TaylorT5``: ``dt/dv = -𝓔' / (𝓕 + Ṁ₁ + Ṁ₂)`` expanded and truncated,
  then inverted.

Every approximant accepts numeric and symbolic PNSystems. Numeric states
outside the physical domain produce a NaN derivative instead of an
exception, which the termination events of the driver pick up.
"""

from typing import Callable, Dict

import numpy as np

from . import variables
from .derivatives import SeriesQuotient, binding_energy_deriv
from .flux import gw_energy_flux
from .precession import Omega_chi1, Omega_chi2, Omega_frame
from .system import CHI1_SLICE, CHI2_SLICE, M1_INDEX, M2_INDEX, STATE_LENGTH
from .system import is_symbolic, state_of
from .tidal_heating import tidal_heating
from .variables import abs2, cross


# ========== DOMAIN CHECK ==========
def causes_domain_error(u_dot, pnsystem) -> bool:
    """
    Flag states outside the domain of the PN equations.

    Parameters
    ----------
    u_dot : np.ndarray
        Derivative buffer; filled with NaN when the state is invalid.
    pnsystem : PNSystem or state vector

    Returns
    -------
    bool
        True if a mass is non-positive or a spin exceeds the Kerr bound.
        Always False for symbolic systems.
    """
    if is_symbolic(pnsystem):
        return False
    state = state_of(pnsystem)
    if (state[M1_INDEX] <= 0 or state[M2_INDEX] <= 0
            or abs2(state[CHI1_SLICE]) > 1 or abs2(state[CHI2_SLICE]) > 1):
        u_dot[:] = np.nan
        return True
    return False


# ========== SHARED EQUATIONS ==========
def _flux_and_heating(pnsystem):
    Mdot1, Mdot2, Sdot1, Sdot2 = tidal_heating(pnsystem)
    return gw_energy_flux(pnsystem) + Mdot1 + Mdot2, (Mdot1, Mdot2, Sdot1, Sdot2)


def _state_derivative(pnsystem, v_dot, heating):
    """Assemble the full derivative around a given ``v_dot``."""
    Mdot1, Mdot2, Sdot1, Sdot2 = heating
    M1 = variables.M1(pnsystem)
    M2 = variables.M2(pnsystem)
    chi1 = variables.chi1(pnsystem)
    chi2 = variables.chi2(pnsystem)
    ell = variables.ell_hat(pnsystem)

    # χ = S/M² gains the horizon torque along ℓ̂ and loses 2χṀ/M
    chi1_dot = tuple(
        p + Sdot1 * l / M1**2 - 2 * c * Mdot1 / M1
        for p, l, c in zip(cross(Omega_chi1(pnsystem), chi1), ell, chi1)
    )
    chi2_dot = tuple(
        p + Sdot2 * l / M2**2 - 2 * c * Mdot2 / M2
        for p, l, c in zip(cross(Omega_chi2(pnsystem), chi2), ell, chi2)
    )

    # Ṙ = ½ ω R with ω the pure quaternion (0, ω⃗)
    w, *r = variables.R(pnsystem)
    omega = Omega_frame(pnsystem)
    omega_cross_r = cross(omega, r)
    R_dot = (
        -(omega[0] * r[0] + omega[1] * r[1] + omega[2] * r[2]) / 2,
        *((w * o + c) / 2 for o, c in zip(omega, omega_cross_r)),
    )

    Phi_dot = variables.v(pnsystem)**3 / variables.M(pnsystem)

    return pnsystem.as_state_vector(
        [Mdot1, Mdot2, *chi1_dot, *chi2_dot, *R_dot, v_dot, Phi_dot]
    )


def _evaluate(pnsystem, v_dot_rule: Callable):
    """Full derivative with ``v_dot = v_dot_rule(pnsystem, 𝓕 + Ṁ₁ + Ṁ₂)``."""
    if not is_symbolic(pnsystem):
        u_dot = np.empty(STATE_LENGTH)
        if causes_domain_error(u_dot, pnsystem):
            return u_dot
    numerator, heating = _flux_and_heating(pnsystem)
    return _state_derivative(pnsystem, v_dot_rule(pnsystem, numerator), heating)


def _flux_plus_heating(pnsystem):
    return _flux_and_heating(pnsystem)[0]


# -(𝓕 + Ṁ₁ + Ṁ₂)/𝓔' and 𝓔'/(𝓕 + Ṁ₁ + Ṁ₂) as truncated series
_taylor_t4_series = SeriesQuotient(
    _flux_plus_heating, binding_energy_deriv, name="taylor_t4_v_dot"
)
_taylor_t5_series = SeriesQuotient(
    binding_energy_deriv, _flux_plus_heating, name="taylor_t5_t_prime"
)


# ========== APPROXIMANTS ==========
def TaylorT1(pnsystem):
    """
    TaylorT1 right-hand side.

    ``v̇ = -(𝓕 + Ṁ₁ + Ṁ₂)/𝓔'``, numerator and denominator each truncated at
    the PN order of ``pnsystem`` before the division.

    Parameters
    ----------
    pnsystem : PNSystem

    Returns
    -------
    np.ndarray or list of sympy.Expr
        Time derivative of the 14-component state.
    """
    return _evaluate(
        pnsystem, lambda p, numerator: -numerator / binding_energy_deriv(p)
    )


def TaylorT4(pnsystem):
    """
    TaylorT4 right-hand side.

    ``v̇`` is the series expansion of ``-(𝓕 + Ṁ₁ + Ṁ₂)/𝓔'`` in ``v``, kept
    to relative ``v^(2N)`` for PN order ``N``.
    """
    return _evaluate(pnsystem, lambda p, numerator: -_taylor_t4_series(p))


def TaylorT5(pnsystem):
    """
    TaylorT5 right-hand side.

    ``dt/dv = -𝓔'/(𝓕 + Ṁ₁ + Ṁ₂)`` is expanded in ``v`` and truncated at
    relative ``v^(2N)``; ``v̇`` is its reciprocal.
    """
    return _evaluate(pnsystem, lambda p, numerator: -1 / _taylor_t5_series(p))


APPROXIMANTS: Dict[str, Callable] = {
    "TaylorT1": TaylorT1,
    "TaylorT4": TaylorT4,
    "TaylorT5": TaylorT5,
}


def get_approximant(name: str) -> Callable:
    """
    Look up an approximant by name.

    Raises
    ------
    ValueError
        If ``name`` is not a known approximant.
    """
    try:
        return APPROXIMANTS[name]
    except KeyError:
        raise ValueError(
            f"Unknown approximant '{name}'. Use: {list(APPROXIMANTS)}"
        ) from None


def make_rhs(approximant, pnsystem) -> Callable:
    """
    Adapt an approximant to the ``f(t, u) -> u_dot`` form of generic ODE
    drivers (e.g. ``scipy.integrate.solve_ivp``).

    ``u`` is copied into ``pnsystem.state`` in place on every call, so the
    PNSystem must be numeric and owned by the caller for the whole run.

    Parameters
    ----------
    approximant : str or callable
        Name in ``APPROXIMANTS`` or an approximant function
    pnsystem : NumericPNSystem
    """
    if isinstance(approximant, str):
        approximant = get_approximant(approximant)
    if is_symbolic(pnsystem):
        raise ValueError("make_rhs requires a numeric PNSystem")

    def rhs(t, u):
        pnsystem.state[:] = u
        return approximant(pnsystem)

    return rhs
