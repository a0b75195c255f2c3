"""
Gravitational-wave energy flux to infinity.

The non-spinning terms are complete to 4.5PN (Blanchet et al. 2023,
Eq. 6.11). Spin-orbit terms are known to 4PN (Marsat et al. 2013,
Eq. 4.9) and spin-squared terms only at 2PN (Arun et al. 2008, Eq. C10).
Beyond 3.5PN the remaining terms are the extreme-mass-ratio limit of
Fujita (2012, App. A), kept up to 6PN with the pieces already present
in the comparable-mass terms removed.

For matter, the tidal corrections to the flux enter at relative 5PN and
are partially known at 6PN (Vines et al. 2011, Eq. 3.6). They are not
included yet; the binding energy does carry its tidal terms.
"""

from fractions import Fraction

from . import variables
from .expansion import pn_expansion
from .system import pn_constants, xp_of


def gw_energy_flux(pnsystem):
    """
    Energy flux 𝓕 carried to infinity by gravitational waves.

    Parameters
    ----------
    pnsystem : PNSystem

    Returns
    -------
    float or sympy.Expr
        ``32/5 ν² v¹⁰ (1 + ...)``, truncated at the PN order of ``pnsystem``.
    """
    xp = xp_of(pnsystem)
    pi, gamma, ln2, ln3, ln5, zeta3 = pn_constants(pnsystem)

    v = variables.v(pnsystem)
    nu = variables.nu(pnsystem)
    delta = variables.delta(pnsystem)
    s_l = variables.s_l(pnsystem)
    sigma_l = variables.sigma_l(pnsystem)
    chi_s_l = variables.chi_s_l(pnsystem)
    chi_a_l = variables.chi_a_l(pnsystem)
    chi1_sq = variables.chi1_sq(pnsystem)
    chi2_sq = variables.chi2_sq(pnsystem)
    chi1_chi2 = variables.chi1_chi2(pnsystem)
    logv = xp.log(v)

    nonspinning = [
        (0, 1),
        (2, Fraction(-1247, 336) - Fraction(35, 12) * nu),
        (3, 4 * pi),
        (4, Fraction(-44711, 9072) + Fraction(9271, 504) * nu
            + Fraction(65, 18) * nu**2),
        (5, (Fraction(-8191, 672) - Fraction(583, 24) * nu) * pi),
        (6, Fraction(6643739519, 69854400) + Fraction(16, 3) * pi**2
            - Fraction(1712, 105) * (gamma + 2 * ln2 + logv)
            + (Fraction(-134543, 7776) + Fraction(41, 48) * pi**2) * nu
            - Fraction(94403, 3024) * nu**2 - Fraction(775, 324) * nu**3),
        (7, (Fraction(-16285, 504) + Fraction(214745, 1728) * nu
             + Fraction(193385, 3024) * nu**2) * pi),
        (8, Fraction(-323105549467, 3178375200) + Fraction(232597, 4410) * gamma
            - Fraction(1369, 126) * pi**2 + Fraction(39931, 294) * ln2
            - Fraction(47385, 1568) * ln3 + Fraction(232597, 4410) * logv
            + (Fraction(-1452202403629, 1466942400) + Fraction(41478, 245) * gamma
               - Fraction(267127, 4608) * pi**2 + Fraction(479062, 2205) * ln2
               + Fraction(47385, 392) * ln3 + Fraction(41478, 245) * logv) * nu
            + (Fraction(1607125, 6804) - Fraction(3157, 384) * pi**2) * nu**2
            + Fraction(6875, 504) * nu**3 + Fraction(5, 6) * nu**4),
        (9, (Fraction(265978667519, 745113600)
             - Fraction(6848, 105) * (gamma + 2 * ln2 + logv)
             + (Fraction(2062241, 22176) + Fraction(41, 12) * pi**2) * nu
             - Fraction(133112905, 290304) * nu**2
             - Fraction(3719141, 38016) * nu**3) * pi),
    ]

    spin_orbit = [
        (3, -4 * s_l - Fraction(5, 4) * delta * sigma_l),
        (5, (Fraction(-9, 2) + Fraction(272, 9) * nu) * s_l
            + (Fraction(-13, 16) + Fraction(43, 4) * nu) * delta * sigma_l),
        (6, -16 * pi * s_l - Fraction(31, 6) * pi * delta * sigma_l),
        (7, (Fraction(476645, 6804) + Fraction(6172, 189) * nu
             - Fraction(2810, 27) * nu**2) * s_l
            + (Fraction(9535, 336) + Fraction(1849, 126) * nu
               - Fraction(1501, 36) * nu**2) * delta * sigma_l),
        (8, (Fraction(-3485, 96) + Fraction(13879, 72) * nu) * pi * s_l
            + (Fraction(-7163, 672) + Fraction(130583, 2016) * nu)
            * pi * delta * sigma_l),
    ]

    spin_squared = [
        (4, (Fraction(287, 96) + nu / 24) * chi_s_l**2
            - (Fraction(89, 96) + Fraction(7, 24) * nu)
            * (chi1_sq + 2 * chi1_chi2 + chi2_sq) / 4
            + (Fraction(287, 96) - 12 * nu) * chi_a_l**2
            + (Fraction(-89, 96) + 4 * nu) * (chi1_sq - 2 * chi1_chi2 + chi2_sq) / 4
            + Fraction(287, 48) * delta * chi_s_l * chi_a_l
            - Fraction(89, 48) * delta * (chi1_sq - chi2_sq) / 4),
    ]

    extreme_mass_ratio = [
        (10, Fraction(-2500861660823683, 2831932303200)
             - Fraction(424223, 6804) * pi**2 - Fraction(83217611, 1122660) * ln2
             + Fraction(916628467, 7858620) * gamma + Fraction(47385, 196) * ln3
             + Fraction(916628467, 7858620) * logv),
        (11, Fraction(-142155, 784) * pi * ln3
             + Fraction(8399309750401, 101708006400) * pi
             + Fraction(177293, 1176) * gamma * pi
             + Fraction(8521283, 17640) * pi * ln2
             + Fraction(177293, 1176) * pi * logv),
        (12, Fraction(-271272899815409, 157329572400) * ln2
             - Fraction(54784, 315) * pi**2 * ln2
             - Fraction(246137536815857, 157329572400) * gamma
             - Fraction(437114506833, 789268480) * ln3
             - Fraction(256, 45) * pi**4 - Fraction(27392, 315) * gamma * pi**2
             - Fraction(27392, 105) * zeta3 - Fraction(37744140625, 260941824) * ln5
             + Fraction(1465472, 11025) * gamma**2
             + Fraction(5861888, 11025) * gamma * ln2
             + Fraction(5861888, 11025) * ln2**2
             + Fraction(2067586193789233570693, 602387400044430000)
             + Fraction(3803225263, 10478160) * pi**2
             + logv * (Fraction(-246137536815857, 157329572400)
                       - Fraction(27392, 315) * pi**2
                       + Fraction(2930944, 11025) * gamma
                       + Fraction(5861888, 11025) * ln2
                       + Fraction(1465472, 11025) * logv)),
    ]

    # TODO: add the 5PN and 6PN tidal flux terms of Vines et al. (2011)
    # once they are checked against the tidal binding-energy convention.

    series = pn_expansion(
        pnsystem, nonspinning + spin_orbit + spin_squared + extreme_mass_ratio
    )
    return Fraction(32, 5) * nu**2 * v**10 * series
