"""
PNSystem state containers.

A PNSystem bundles the flat state vector of a compact binary with the PN
order at which formulas are truncated. Two representations share the
same layout:

* ``NumericPNSystem`` holds float64 values and is what integrators and
  right-hand-side functions work with.
* ``SymbolicPNSystem`` holds sympy placeholders, so evaluating any PN
  formula on it produces an expression tree instead of a number.

``symbolic_pnsystem`` is the process-wide symbolic instance with unbounded
PN order. It is created once at import and never mutated.
"""

import math
from collections import namedtuple
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import sympy

from .config import config
from .symbolic import hold, placeholder, is_symbolic_value
from .utils import validation_error

# ========== STATE LAYOUT ==========
# Field order and count are fixed; every accessor indexes by position.
STATE_NAMES = (
    "M1", "M2",
    "chi1x", "chi1y", "chi1z",
    "chi2x", "chi2y", "chi2z",
    "Rw", "Rx", "Ry", "Rz",
    "v", "Phi",
)
STATE_LENGTH = len(STATE_NAMES)
STATE_INDEX = {name: i for i, name in enumerate(STATE_NAMES)}

M1_INDEX = 0
M2_INDEX = 1
CHI1_SLICE = slice(2, 5)
CHI2_SLICE = slice(5, 8)
R_SLICE = slice(8, 12)
V_INDEX = 12
PHI_INDEX = 13


def prepare_pn_order(pn_order=None) -> float:
    """
    Validate a PN order.

    Parameters
    ----------
    pn_order : float, optional
        Non-negative multiple of 1/2, or ``math.inf`` for no truncation.
        None selects ``config.DEFAULT_PN_ORDER``.

    Returns
    -------
    float
        The order as a float (half-integers are exact in binary).

    Raises
    ------
    ValueError
        If the order is negative, NaN or not a multiple of 1/2.
    """
    if pn_order is None:
        pn_order = config.DEFAULT_PN_ORDER
    try:
        order = float(pn_order)
    except (TypeError, ValueError):
        raise ValueError(f"PN order must be a number, got {pn_order!r}")
    if order == math.inf:
        return math.inf
    if not math.isfinite(order) or order < 0:
        raise ValueError(f"PN order must be non-negative, got {pn_order}")
    twice = 2 * order
    if twice != round(twice):
        raise ValueError(
            f"PN order must be a multiple of 1/2, got {pn_order}"
        )
    return round(twice) / 2


class PNSystem:
    """
    Base class of the state containers.

    Attributes
    ----------
    is_symbolic : bool
        Class-level capability flag: True when the state holds sympy
        placeholders.
    xp : module
        Math namespace matching the representation (``numpy`` or
        ``sympy``). Formulas call ``pnsystem.xp.log`` and friends so the
        same code serves both representations.
    """
    is_symbolic = False
    xp = np

    def __init__(self, state, pn_order=None, Lambda1=0.0, Lambda2=0.0):
        self._pn_order = prepare_pn_order(pn_order)
        self.state = state
        self.Lambda1 = Lambda1
        self.Lambda2 = Lambda2

    @property
    def pn_order(self) -> float:
        """PN order at which formulas are truncated."""
        return self._pn_order

    def as_state_vector(self, values):
        """Pack a sequence of state-derivative components."""
        raise NotImplementedError

    def __repr__(self):
        return (f"{type(self).__name__}(pn_order={self.pn_order}, "
                f"state={list(self.state)})")


class NumericPNSystem(PNSystem):
    """
    PNSystem holding concrete floating-point values.

    Parameters
    ----------
    state : array_like
        State vector of length 14, laid out as ``STATE_NAMES``.
        Copied into a float64 array that drivers update in place.
    pn_order : float, optional
        Truncation order (default: ``config.DEFAULT_PN_ORDER``)
    Lambda1, Lambda2 : float, optional
        Dimensionless tidal deformabilities (default: 0)

    Raises
    ------
    ValueError
        If the state does not have the fixed layout length.
    """

    def __init__(self, state, pn_order=None, Lambda1=0.0, Lambda2=0.0):
        state = np.array(state, dtype=float)
        if state.shape != (STATE_LENGTH,):
            raise ValueError(
                f"State vector must have shape ({STATE_LENGTH},), "
                f"got {state.shape}"
            )
        super().__init__(state, pn_order, float(Lambda1), float(Lambda2))

    def as_state_vector(self, values) -> np.ndarray:
        return np.array(values, dtype=float)

    def copy(self) -> "NumericPNSystem":
        """Independent copy (state is not shared)."""
        return NumericPNSystem(self.state, self.pn_order,
                               self.Lambda1, self.Lambda2)


class SymbolicPNSystem(PNSystem):
    """
    PNSystem whose state entries are sympy placeholders.

    Parameters
    ----------
    pn_order : float, optional
        Truncation order. Default is unbounded, so every term of every
        formula survives.

    Notes
    -----
    The state is a tuple and the tidal parameters are nonzero symbols, so
    tidal terms are never dropped from symbolic results.
    """
    is_symbolic = True
    xp = sympy

    def __init__(self, pn_order=math.inf):
        state = tuple(placeholder(name) for name in STATE_NAMES)
        super().__init__(state, pn_order,
                         placeholder("Lambda1"), placeholder("Lambda2"))

    def as_state_vector(self, values) -> list:
        return [sympy.sympify(value) for value in values]


# Process-wide, read-only
symbolic_pnsystem = SymbolicPNSystem()


def is_symbolic(pnsystem) -> bool:
    """
    True if ``pnsystem`` is symbolic.

    Accepts a PNSystem or a bare state vector; a bare vector counts as
    symbolic when any of its entries is a sympy object.
    """
    if isinstance(pnsystem, PNSystem):
        return pnsystem.is_symbolic
    return any(is_symbolic_value(x) for x in pnsystem)


def xp_of(pnsystem):
    """Math namespace (``numpy`` or ``sympy``) matching ``pnsystem``."""
    if isinstance(pnsystem, PNSystem):
        return pnsystem.xp
    return sympy if is_symbolic(pnsystem) else np


def state_of(pnsystem):
    """State vector of a PNSystem, or the argument itself if it is one."""
    if isinstance(pnsystem, PNSystem):
        return pnsystem.state
    return pnsystem


def convert_for_system(pnsystem, x):
    """
    Convert a literal to the representation of ``pnsystem``.

    Numeric systems get the value unchanged (exact sympy numbers become
    floats). Symbolic systems get ``hold(x)``, so sympy keeps constants
    such as π exact through simplification and differentiation; values
    that already contain placeholders are returned as they are.

    Parameters
    ----------
    pnsystem : PNSystem or state vector
    x : number or sympy expression

    Examples
    --------
    >>> convert_for_system(symbolic_pnsystem, sympy.pi)
    hold(pi)
    >>> convert_for_system(NumericPNSystem(state), sympy.pi)
    3.141592653589793
    """
    if is_symbolic(pnsystem):
        if is_symbolic_value(x) and x.free_symbols:
            return x
        return hold(sympy.sympify(x))
    if is_symbolic_value(x):
        return float(x)
    return x


PNConstants = namedtuple(
    "PNConstants", ["pi", "euler_gamma", "ln2", "ln3", "ln5", "zeta3"]
)

_EXACT_CONSTANTS = PNConstants(
    pi=sympy.pi,
    euler_gamma=sympy.EulerGamma,
    ln2=sympy.log(2),
    ln3=sympy.log(3),
    ln5=sympy.log(5),
    zeta3=sympy.zeta(3),
)
_FLOAT_CONSTANTS = PNConstants(*(float(c) for c in _EXACT_CONSTANTS))


def pn_constants(pnsystem) -> PNConstants:
    """
    Mathematical constants used by PN formulas, in the representation
    of ``pnsystem``.
    """
    if is_symbolic(pnsystem):
        return PNConstants(
            *(convert_for_system(pnsystem, c) for c in _EXACT_CONSTANTS)
        )
    return _FLOAT_CONSTANTS


@dataclass(frozen=True)
class BinaryParams:
    """
    Immutable physical parameters of a binary at one instant.

    Attributes
    ----------
    M1, M2 : float
        Component masses [M]
    chi1, chi2 : tuple of float
        Dimensionless spin vectors (inertial frame)
    v : float
        PN velocity parameter, (M Ω)^(1/3)
    R : tuple of float
        Unit quaternion (w, x, y, z) rotating the z axis onto the
        orbital angular momentum and the x axis onto the separation
    Phi : float
        Orbital phase [rad]
    Lambda1, Lambda2 : float
        Dimensionless tidal deformabilities (0 for black holes)
    name : str, optional
        Label used in reprs
    """
    M1: float
    M2: float
    chi1: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    chi2: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    v: float = 0.2
    R: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)
    Phi: float = 0.0
    Lambda1: float = 0.0
    Lambda2: float = 0.0
    name: Optional[str] = None

    def __post_init__(self):
        # Normalize sequences to float tuples
        for field_name, length in (("chi1", 3), ("chi2", 3), ("R", 4)):
            value = tuple(float(x) for x in getattr(self, field_name))
            if len(value) != length:
                raise ValueError(
                    f"{field_name} must have {length} components, got {len(value)}"
                )
            object.__setattr__(self, field_name, value)

        if self.M1 <= 0:
            raise ValueError(f"M1 must be positive, got {self.M1}")
        if self.M2 <= 0:
            raise ValueError(f"M2 must be positive, got {self.M2}")
        if self.Lambda1 < 0 or self.Lambda2 < 0:
            raise ValueError(
                f"Tidal deformabilities must be non-negative, "
                f"got ({self.Lambda1}, {self.Lambda2})"
            )
        if not math.isclose(sum(x * x for x in self.R), 1.0, rel_tol=1e-10):
            norm = math.sqrt(sum(x * x for x in self.R))
            if norm == 0:
                raise ValueError("Orientation quaternion R must be nonzero")
            object.__setattr__(self, "R", tuple(x / norm for x in self.R))

        for field_name in ("chi1", "chi2"):
            chi = getattr(self, field_name)
            if sum(x * x for x in chi) > 1:
                validation_error(
                    f"|{field_name}| = {math.sqrt(sum(x * x for x in chi)):.6g} "
                    f"exceeds the Kerr bound 1"
                )
        if not 0 < self.v < 1:
            validation_error(
                f"Velocity parameter v must lie in (0, 1), got {self.v}"
            )

    @property
    def state(self) -> np.ndarray:
        """State vector in the fixed layout."""
        return np.array(
            [self.M1, self.M2, *self.chi1, *self.chi2, *self.R, self.v, self.Phi],
            dtype=float,
        )

    def to_pnsystem(self, pn_order=None) -> NumericPNSystem:
        """Numeric PNSystem at these parameters."""
        return NumericPNSystem(self.state, pn_order, self.Lambda1, self.Lambda2)
