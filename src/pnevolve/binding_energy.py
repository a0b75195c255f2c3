"""
Binding energy of a quasi-circular compact binary.

Non-spinning terms to 4PN (Blanchet 2014, Eq. 233, with the 4PN
logarithm); spin-orbit terms at 1.5, 2.5 and 3.5PN (Bohé et al. 2013);
spin-squared terms at 2PN including the spin-induced quadrupoles
``kappa1``, ``kappa2``; tidal terms at 5PN and 6PN (Vines et al. 2011).
"""

from fractions import Fraction

from . import variables
from .expansion import pn_expansion
from .system import pn_constants, xp_of


def binding_energy(pnsystem):
    """
    Binding energy 𝓔 of the binary.

    Parameters
    ----------
    pnsystem : PNSystem

    Returns
    -------
    float or sympy.Expr
        ``-μ v²/2 (1 + ...)``, truncated at the PN order of ``pnsystem``.

    Notes
    -----
    The derivative with respect to ``v`` used by the approximants is
    ``derivatives.binding_energy_deriv``, generated once from this formula.
    """
    xp = xp_of(pnsystem)
    pi, gamma, ln2 = pn_constants(pnsystem)[:3]

    v = variables.v(pnsystem)
    M = variables.M(pnsystem)
    M1 = variables.M1(pnsystem)
    M2 = variables.M2(pnsystem)
    mu = variables.mu(pnsystem)
    nu = variables.nu(pnsystem)
    delta = variables.delta(pnsystem)
    X1 = variables.X1(pnsystem)
    X2 = variables.X2(pnsystem)
    s_l = variables.s_l(pnsystem)
    sigma_l = variables.sigma_l(pnsystem)
    kappa_plus = variables.kappa1(pnsystem) + variables.kappa2(pnsystem)
    kappa_minus = variables.kappa1(pnsystem) - variables.kappa2(pnsystem)
    lambda1 = variables.lambda1(pnsystem)
    lambda2 = variables.lambda2(pnsystem)
    logv = xp.log(v)

    nonspinning = [
        (0, 1),
        (2, Fraction(-3, 4) - nu / 12),
        (4, Fraction(-27, 8) + Fraction(19, 8) * nu - nu**2 / 24),
        (6, Fraction(-675, 64)
            + (Fraction(34445, 576) - Fraction(205, 96) * pi**2) * nu
            - Fraction(155, 96) * nu**2 - Fraction(35, 5184) * nu**3),
        (8, Fraction(-3969, 128)
            + (Fraction(-123671, 5760) + Fraction(9037, 1536) * pi**2
               + Fraction(896, 15) * gamma
               + Fraction(448, 15) * (4 * ln2 + 2 * logv)) * nu
            + (Fraction(-498449, 3456) + Fraction(3157, 576) * pi**2) * nu**2
            + Fraction(301, 1728) * nu**3 + Fraction(77, 31104) * nu**4),
    ]

    spin_orbit = [
        (3, Fraction(14, 3) * s_l + 2 * delta * sigma_l),
        (5, (11 - Fraction(61, 9) * nu) * s_l
            + delta * (3 - Fraction(10, 3) * nu) * sigma_l),
        (7, (Fraction(135, 4) - Fraction(367, 4) * nu + Fraction(29, 12) * nu**2) * s_l
            + delta * (Fraction(27, 4) - 39 * nu + Fraction(5, 4) * nu**2) * sigma_l),
    ]

    spin_squared = [
        (4, s_l**2 * (-kappa_plus - 2)
            + s_l * sigma_l * (-delta * kappa_plus - 2 * delta + kappa_minus)
            + sigma_l**2 * (delta * kappa_minus / 2 - kappa_plus / 2
                            + nu * (kappa_plus + 2))),
    ]

    tidal = [
        (10, -9 * ((M1 / M2) * lambda2 + (M2 / M1) * lambda1) / M**5),
        (12, Fraction(-11, 2) * (
            (3 + 2 * X2 + 3 * X2**2) * (M1 / M2) * lambda2
            + (3 + 2 * X1 + 3 * X1**2) * (M2 / M1) * lambda1
        ) / M**5),
    ]

    series = pn_expansion(pnsystem, nonspinning + spin_orbit + spin_squared + tidal)
    return -mu * v**2 / 2 * series
