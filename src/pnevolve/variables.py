"""
Variable catalog: accessors for fundamental and derived PN quantities.

Every accessor takes a PNSystem (or a bare state vector) and works in
both representations. Fundamental variables index the fixed state
layout, so symbolic systems give back their placeholders. Derived
scalars are registered with ``derived_variable``: on numeric input they
run their formula, on symbolic input they return a bare placeholder of
their own name, so symbolic formulas read the way one would write them
by hand (``nu`` rather than ``M1*M2/(M1 + M2)**2``).

Examples
--------
>>> from pnevolve import symbolic_pnsystem, BinaryParams
>>> from pnevolve.variables import nu
>>> nu(symbolic_pnsystem)
nu
>>> nu(BinaryParams(M1=0.6, M2=0.4).to_pnsystem())
0.24
"""

import functools
from typing import Callable, Dict

import sympy

from .symbolic import placeholder
from .system import (
    STATE_INDEX, CHI1_SLICE, CHI2_SLICE, R_SLICE,
    PNSystem, is_symbolic, state_of,
)

# name -> accessor
FUNDAMENTAL_VARIABLES: Dict[str, Callable] = {}
DERIVED_VARIABLES: Dict[str, Callable] = {}


# ========== VECTOR HELPERS ==========
def dot(a, b):
    """Euclidean dot product of two 3-vectors."""
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a, b):
    """Cross product of two 3-vectors, as a tuple."""
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def abs2(a):
    """Squared Euclidean norm of a 3-vector."""
    return dot(a, a)


# ========== FUNDAMENTAL VARIABLES ==========
def _fundamental(name: str) -> Callable:
    """Accessor for the state entry ``name``."""
    index = STATE_INDEX[name]

    def accessor(pnsystem):
        return state_of(pnsystem)[index]

    accessor.__name__ = name
    accessor.__qualname__ = name
    accessor.__doc__ = f"State entry {index}: {name}."
    FUNDAMENTAL_VARIABLES[name] = accessor
    return accessor


M1 = _fundamental("M1")
M2 = _fundamental("M2")
chi1x = _fundamental("chi1x")
chi1y = _fundamental("chi1y")
chi1z = _fundamental("chi1z")
chi2x = _fundamental("chi2x")
chi2y = _fundamental("chi2y")
chi2z = _fundamental("chi2z")
Rw = _fundamental("Rw")
Rx = _fundamental("Rx")
Ry = _fundamental("Ry")
Rz = _fundamental("Rz")
v = _fundamental("v")
Phi = _fundamental("Phi")


def Lambda1(pnsystem):
    """Dimensionless tidal deformability of body 1."""
    if isinstance(pnsystem, PNSystem):
        return pnsystem.Lambda1
    return placeholder("Lambda1") if is_symbolic(pnsystem) else 0.0


def Lambda2(pnsystem):
    """Dimensionless tidal deformability of body 2."""
    if isinstance(pnsystem, PNSystem):
        return pnsystem.Lambda2
    return placeholder("Lambda2") if is_symbolic(pnsystem) else 0.0


FUNDAMENTAL_VARIABLES["Lambda1"] = Lambda1
FUNDAMENTAL_VARIABLES["Lambda2"] = Lambda2


def chi1(pnsystem):
    """Dimensionless spin vector of body 1."""
    return tuple(state_of(pnsystem)[CHI1_SLICE])


def chi2(pnsystem):
    """Dimensionless spin vector of body 2."""
    return tuple(state_of(pnsystem)[CHI2_SLICE])


def R(pnsystem):
    """Orbital-frame orientation quaternion (w, x, y, z)."""
    return tuple(state_of(pnsystem)[R_SLICE])


# ========== DERIVED VARIABLES ==========
def derived_variable(func=None, *, symbolic_override=True):
    """
    Register a derived variable.

    Parameters
    ----------
    func : callable
        Formula taking a PNSystem (or state vector).
    symbolic_override : bool, optional
        If True (default), symbolic input short-circuits to
        ``placeholder(func.__name__)`` instead of running the formula, and
        the variable is listed in ``DERIVED_VARIABLES``. Vector-valued
        variables pass False and are always computed.

    Notes
    -----
    The undecorated formula stays available as ``accessor.raw``; it is
    what ``expand_derived`` substitutes for the placeholder.
    """
    def decorate(func):
        name = func.__name__

        if symbolic_override:
            @functools.wraps(func)
            def accessor(pnsystem):
                if is_symbolic(pnsystem):
                    return placeholder(name)
                return func(pnsystem)
            DERIVED_VARIABLES[name] = accessor
        else:
            accessor = func

        accessor.raw = func
        accessor.symbolic_override = symbolic_override
        return accessor

    if func is not None:
        return decorate(func)
    return decorate


# --- masses ---
@derived_variable
def M(pnsystem):
    """Total mass M₁ + M₂."""
    return M1(pnsystem) + M2(pnsystem)


@derived_variable
def mu(pnsystem):
    """Reduced mass M₁M₂/M."""
    return M1(pnsystem) * M2(pnsystem) / M(pnsystem)


@derived_variable
def nu(pnsystem):
    """Symmetric mass ratio M₁M₂/M²."""
    return M1(pnsystem) * M2(pnsystem) / M(pnsystem)**2


@derived_variable
def delta(pnsystem):
    """Fractional mass difference (M₁ - M₂)/M."""
    return (M1(pnsystem) - M2(pnsystem)) / M(pnsystem)


@derived_variable
def q(pnsystem):
    """Mass ratio M₁/M₂."""
    return M1(pnsystem) / M2(pnsystem)


@derived_variable
def X1(pnsystem):
    """Mass fraction M₁/M."""
    return M1(pnsystem) / M(pnsystem)


@derived_variable
def X2(pnsystem):
    """Mass fraction M₂/M."""
    return M2(pnsystem) / M(pnsystem)


# --- orbital frame ---
@derived_variable(symbolic_override=False)
def ell_hat(pnsystem):
    """Unit orbital angular momentum, R ẑ R̄."""
    w, x, y, z = R(pnsystem)
    n2 = w * w + x * x + y * y + z * z
    return (
        2 * (x * z + w * y) / n2,
        2 * (y * z - w * x) / n2,
        (w * w - x * x - y * y + z * z) / n2,
    )


@derived_variable(symbolic_override=False)
def n_hat(pnsystem):
    """Unit separation vector, R x̂ R̄."""
    w, x, y, z = R(pnsystem)
    n2 = w * w + x * x + y * y + z * z
    return (
        (w * w + x * x - y * y - z * z) / n2,
        2 * (x * y + w * z) / n2,
        2 * (x * z - w * y) / n2,
    )


@derived_variable(symbolic_override=False)
def lambda_hat(pnsystem):
    """Third frame vector ℓ̂ × n̂, R ŷ R̄."""
    w, x, y, z = R(pnsystem)
    n2 = w * w + x * x + y * y + z * z
    return (
        2 * (x * y - w * z) / n2,
        (w * w - x * x + y * y - z * z) / n2,
        2 * (y * z + w * x) / n2,
    )


# --- spins ---
@derived_variable(symbolic_override=False)
def S1(pnsystem):
    """Spin vector of body 1, M₁² χ⃗₁."""
    m2 = M1(pnsystem)**2
    return tuple(m2 * c for c in chi1(pnsystem))


@derived_variable(symbolic_override=False)
def S2(pnsystem):
    """Spin vector of body 2, M₂² χ⃗₂."""
    m2 = M2(pnsystem)**2
    return tuple(m2 * c for c in chi2(pnsystem))


@derived_variable(symbolic_override=False)
def S(pnsystem):
    """Total spin S⃗₁ + S⃗₂."""
    return tuple(a + b for a, b in zip(S1(pnsystem), S2(pnsystem)))


@derived_variable(symbolic_override=False)
def Sigma(pnsystem):
    """Spin combination M (S⃗₂/M₂ - S⃗₁/M₁)."""
    m, m1, m2 = M(pnsystem), M1(pnsystem), M2(pnsystem)
    return tuple(
        m * (b / m2 - a / m1) for a, b in zip(S1(pnsystem), S2(pnsystem))
    )


@derived_variable
def chi1_sq(pnsystem):
    """|χ⃗₁|²."""
    return abs2(chi1(pnsystem))


@derived_variable
def chi2_sq(pnsystem):
    """|χ⃗₂|²."""
    return abs2(chi2(pnsystem))


@derived_variable
def chi1_chi2(pnsystem):
    """χ⃗₁ · χ⃗₂."""
    return dot(chi1(pnsystem), chi2(pnsystem))


@derived_variable
def chi1_l(pnsystem):
    """χ⃗₁ · ℓ̂."""
    return dot(chi1(pnsystem), ell_hat(pnsystem))


@derived_variable
def chi2_l(pnsystem):
    """χ⃗₂ · ℓ̂."""
    return dot(chi2(pnsystem), ell_hat(pnsystem))


@derived_variable
def chi_s_l(pnsystem):
    """Symmetric aligned spin (χ₁ₗ + χ₂ₗ)/2."""
    return (chi1_l(pnsystem) + chi2_l(pnsystem)) / 2


@derived_variable
def chi_a_l(pnsystem):
    """Antisymmetric aligned spin (χ₁ₗ - χ₂ₗ)/2."""
    return (chi1_l(pnsystem) - chi2_l(pnsystem)) / 2


@derived_variable
def chi_eff(pnsystem):
    """Effective aligned spin (M₁χ₁ₗ + M₂χ₂ₗ)/M."""
    return (M1(pnsystem) * chi1_l(pnsystem)
            + M2(pnsystem) * chi2_l(pnsystem)) / M(pnsystem)


@derived_variable
def s_l(pnsystem):
    """S⃗ · ℓ̂ / M²."""
    return dot(S(pnsystem), ell_hat(pnsystem)) / M(pnsystem)**2


@derived_variable
def sigma_l(pnsystem):
    """Σ⃗ · ℓ̂ / M²."""
    return dot(Sigma(pnsystem), ell_hat(pnsystem)) / M(pnsystem)**2


@derived_variable
def kappa1(pnsystem):
    """Spin-induced quadrupole constant of body 1 (1 for a black hole)."""
    return 1


@derived_variable
def kappa2(pnsystem):
    """Spin-induced quadrupole constant of body 2 (1 for a black hole)."""
    return 1


# --- orbit and matter ---
@derived_variable
def Omega(pnsystem):
    """Orbital angular frequency v³/M."""
    return v(pnsystem)**3 / M(pnsystem)


@derived_variable
def lambda1(pnsystem):
    """Dimensionful tidal deformability Λ₁ M₁⁵."""
    return Lambda1(pnsystem) * M1(pnsystem)**5


@derived_variable
def lambda2(pnsystem):
    """Dimensionful tidal deformability Λ₂ M₂⁵."""
    return Lambda2(pnsystem) * M2(pnsystem)**5


# ========== SYMBOLIC EXPANSION ==========
@functools.lru_cache(maxsize=None)
def _derived_definitions():
    """placeholder -> formula body evaluated on the symbolic singleton."""
    from .system import symbolic_pnsystem
    return {
        placeholder(name): sympy.sympify(accessor.raw(symbolic_pnsystem))
        for name, accessor in DERIVED_VARIABLES.items()
    }


def expand_derived(expr):
    """
    Replace derived placeholders by their definitions.

    Substitution is repeated until only fundamental placeholders (state
    entries and tidal parameters) remain; definitions may refer to other
    derived variables.

    Examples
    --------
    >>> expand_derived(nu(symbolic_pnsystem))
    M1*M2/(M1 + M2)**2
    """
    definitions = _derived_definitions()
    expr = sympy.sympify(expr)
    # The dependency chain is shallow (e.g. s_l -> M); the bound only
    # guards against an accidental cycle in the table.
    for _ in range(len(definitions) + 1):
        if not expr.free_symbols & definitions.keys():
            return expr
        expr = expr.xreplace(definitions)
    raise RuntimeError("Derived-variable definitions are cyclic")
