"""
Leading-order spin precession and orbital-frame rotation.

Spins precess about ℓ̂ at the 1PN-relative rates (Kidder 1995)

    Ω⃗₁ = v⁵/M (3/4 + ν/2 - 3δ/4) ℓ̂,    Ω⃗₂ = v⁵/M (3/4 + ν/2 + 3δ/4) ℓ̂.

The orbital frame then rotates so that the total angular momentum
``L⃗ + S⃗₁ + S⃗₂`` stays fixed, with ``|L| = M² ν / v`` at Newtonian order.
"""

from fractions import Fraction

from . import variables
from .expansion import pn_expansion
from .variables import dot


def _precession_rate(pnsystem, sign):
    """Magnitude of Ω⃗ᵢ along ℓ̂; ``sign`` is -1 for body 1 and +1 for body 2."""
    M = variables.M(pnsystem)
    nu = variables.nu(pnsystem)
    delta = variables.delta(pnsystem)
    # v⁵ is 1PN beyond Ω = v³/M
    return pn_expansion(
        pnsystem,
        [(5, (Fraction(3, 4) + nu / 2 + sign * Fraction(3, 4) * delta) / M)],
        offset=-3,
    )


def Omega_chi1(pnsystem):
    """Precession angular velocity Ω⃗₁ of χ⃗₁."""
    rate = _precession_rate(pnsystem, -1)
    return tuple(rate * component for component in variables.ell_hat(pnsystem))


def Omega_chi2(pnsystem):
    """Precession angular velocity Ω⃗₂ of χ⃗₂."""
    rate = _precession_rate(pnsystem, +1)
    return tuple(rate * component for component in variables.ell_hat(pnsystem))


def Omega_frame(pnsystem):
    """
    Angular velocity ω⃗ of the orbital frame.

    The torque the spins exert on the orbit, ``L̇ = -Σ Ω⃗ᵢ × S⃗ᵢ``, tilts ℓ̂
    at ``ω⃗ = v/(M²ν) Σ |Ω⃗ᵢ| S⃗ᵢ⊥`` where ``S⃗ᵢ⊥`` is the part of the spin
    orthogonal to ℓ̂. The frame has no rotation about ℓ̂ itself; the
    orbital phase is evolved separately.

    Returns
    -------
    tuple
        Three components; zero whenever spin precession is truncated.
    """
    v = variables.v(pnsystem)
    M = variables.M(pnsystem)
    nu = variables.nu(pnsystem)
    ell = variables.ell_hat(pnsystem)

    omega = [0, 0, 0]
    for sign, S_i in ((-1, variables.S1(pnsystem)), (+1, variables.S2(pnsystem))):
        rate = _precession_rate(pnsystem, sign)
        S_l = dot(S_i, ell)
        for k in range(3):
            omega[k] = omega[k] + rate * (S_i[k] - S_l * ell[k])
    factor = v / (M**2 * nu)
    return tuple(factor * component for component in omega)
