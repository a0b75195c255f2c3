"""
Horizon absorption (tidal heating) of black holes, at leading order.

Each horizon absorbs angular momentum along the orbital axis at the rate

    Ṡᵢ = 16/5 (Ω - Ω_Hᵢ) Mᵢ⁴/M² ν² (1 + σᵢ)(1 + 3χᵢ²) v¹²,

with ``σᵢ = sqrt(1 - χᵢ²)`` and horizon frequency
``Ω_Hᵢ = χᵢₗ / (2 Mᵢ (1 + σᵢ))``; the mass grows as ``Ṁᵢ = Ω Ṡᵢ``
(rigid rotation). Relative to the flux the effect enters at 2.5PN for
spinning holes and 4PN otherwise (Saketh et al. 2022).
"""

from fractions import Fraction

import sympy

from . import variables
from .expansion import pn_order_includes
from .system import is_symbolic, xp_of


def tidal_heating(pnsystem):
    """
    Horizon fluxes of both bodies.

    Parameters
    ----------
    pnsystem : PNSystem

    Returns
    -------
    tuple
        ``(Mdot1, Mdot2, Sdot1, Sdot2)``: mass-gain rates and spin-gain
        rates along ℓ̂. All zero when the PN order is below 2.5.
    """
    if not pn_order_includes(pnsystem, 5):
        zero = sympy.S.Zero if is_symbolic(pnsystem) else 0.0
        return zero, zero, zero, zero

    xp = xp_of(pnsystem)
    v = variables.v(pnsystem)
    M = variables.M(pnsystem)
    nu = variables.nu(pnsystem)
    # Ω written out in v so that series in v see its power
    Omega = v**3 / M

    def horizon(Mi, chi_sq, chi_l):
        sigma = xp.sqrt(1 - chi_sq)
        Omega_H = chi_l / (2 * Mi * (1 + sigma))
        Sdot = (Fraction(16, 5) * (Omega - Omega_H) * Mi**4 / M**2 * nu**2
                * (1 + sigma) * (1 + 3 * chi_sq) * v**12)
        return Omega * Sdot, Sdot

    Mdot1, Sdot1 = horizon(variables.M1(pnsystem), variables.chi1_sq(pnsystem),
                           variables.chi1_l(pnsystem))
    Mdot2, Sdot2 = horizon(variables.M2(pnsystem), variables.chi2_sq(pnsystem),
                           variables.chi2_l(pnsystem))
    return Mdot1, Mdot2, Sdot1, Sdot2
