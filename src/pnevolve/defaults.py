"""
Default Binaries and Evolution Systems
======================================

Predefined ``BinaryParams`` for common test configurations, and factory
functions for the approximants. The factories create ``InspiralSystem``
objects on demand, so nothing is compiled until one is requested.

All factories accept a ``compile`` parameter (default True) to control
whether the heyoka integrator is compiled immediately or deferred.

Examples
--------
>>> from pnevolve import taylor_t1, PRECESSING
>>> system = taylor_t1(pn_order=2.0)
>>> inspiral = system.evolve(PRECESSING, v_end=0.35)
>>> system_lazy = taylor_t4(compile=False)  # Defer compilation
"""
import math

from .evolution import InspiralSystem
from .system import BinaryParams

"""
Predefined binaries
Total mass 1 (geometric units); v = 0.2 is roughly 60 orbits before
v = 0.4 for comparable masses.
"""
EQUAL_MASS_NONSPINNING = BinaryParams(
    M1=0.5, M2=0.5,
    v=0.2,
    name='equal mass, nonspinning'
)

UNEQUAL_ALIGNED = BinaryParams(
    M1=0.75, M2=0.25,
    chi1=(0.0, 0.0, 0.6),
    chi2=(0.0, 0.0, -0.3),
    v=0.2,
    name='q=3, aligned spins'
)

# Spins tilted out of the orbital plane normal drive precession of the frame
PRECESSING = BinaryParams(
    M1=0.6, M2=0.4,
    chi1=(0.4 * math.sin(1.0), 0.0, 0.4 * math.cos(1.0)),
    chi2=(0.0, 0.3 * math.sin(2.0), 0.3 * math.cos(2.0)),
    v=0.2,
    name='precessing'
)

# GW170817-like masses, deformabilities from a moderately soft equation of state
BINARY_NEUTRON_STAR = BinaryParams(
    M1=1.46 / 2.73, M2=1.27 / 2.73,
    v=0.15,
    Lambda1=250.0, Lambda2=500.0,
    name='binary neutron star'
)


def taylor_t1(pn_order=None, compile=True):
    """
    Create a TaylorT1 evolution system.

    The flux and the binding-energy derivative are truncated separately
    and divided numerically. Cheapest to compile.

    Parameters
    ----------
    pn_order : float, optional
        PN order (default: ``config.DEFAULT_PN_ORDER``)
    compile : bool, optional
        If True (default), compile the heyoka integrator immediately.
        Set to False to defer compilation until the first evolution.

    Returns
    -------
    InspiralSystem
    """
    return InspiralSystem('TaylorT1', pn_order, compile=compile)


def taylor_t4(pn_order=None, compile=True):
    """
    Create a TaylorT4 evolution system.

    ``dv/dt`` is re-expanded as a single truncated series in ``v``.

    Parameters
    ----------
    pn_order : float, optional
        PN order (default: ``config.DEFAULT_PN_ORDER``)
    compile : bool, optional
        If True (default), compile integrator immediately.

    Returns
    -------
    InspiralSystem
    """
    return InspiralSystem('TaylorT4', pn_order, compile=compile)


def taylor_t5(pn_order=None, compile=True):
    """Create a TaylorT5 evolution system (``dt/dv`` expanded, then inverted)."""
    return InspiralSystem('TaylorT5', pn_order, compile=compile)
