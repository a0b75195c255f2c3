"""
pnevolve: Post-Newtonian evolution of compact binaries

A Python package for evolving the orbital velocity, spins, orientation and
phase of quasi-circular compact binaries with post-Newtonian approximants,
using symbolic expansion (sympy) and high-performance Taylor series
integration (heyoka).
"""

# Core classes
from .system import (
    PNSystem, NumericPNSystem, SymbolicPNSystem, BinaryParams,
    symbolic_pnsystem, STATE_NAMES,
)
from .evolution import InspiralSystem
from .inspiral import Inspiral

# Right-hand sides and PN quantities
from .approximants import (
    APPROXIMANTS, TaylorT1, TaylorT4, TaylorT5, get_approximant, make_rhs,
)
from .flux import gw_energy_flux
from .binding_energy import binding_energy
from .derivatives import binding_energy_deriv
from .tidal_heating import tidal_heating

# Termination
from .termination import (
    PNTerminationWarning, TerminationReason,
    termination_forwards, termination_backwards,
)

# Configuration and errors
from .config import config, temp_config
from .symbolic import SymbolicPipelineError
from .utils import PNValidationWarning

# Predefined binaries and factories
from .defaults import (
    EQUAL_MASS_NONSPINNING, UNEQUAL_ALIGNED, PRECESSING, BINARY_NEUTRON_STAR,
    taylor_t1, taylor_t4, taylor_t5,
)

# Package metadata
__version__ = "0.1.0"

# Define what gets imported with "from pnevolve import *"
__all__ = [
    # Classes
    "PNSystem",
    "NumericPNSystem",
    "SymbolicPNSystem",
    "BinaryParams",
    "InspiralSystem",
    "Inspiral",
    # Approximants
    "APPROXIMANTS",
    "TaylorT1",
    "TaylorT4",
    "TaylorT5",
    "get_approximant",
    "make_rhs",
    # PN quantities
    "gw_energy_flux",
    "binding_energy",
    "binding_energy_deriv",
    "tidal_heating",
    # Termination
    "PNTerminationWarning",
    "TerminationReason",
    "termination_forwards",
    "termination_backwards",
    # Configuration
    "config",
    "temp_config",
    "SymbolicPipelineError",
    "PNValidationWarning",
    # Constants
    "symbolic_pnsystem",
    "STATE_NAMES",
    "EQUAL_MASS_NONSPINNING",
    "UNEQUAL_ALIGNED",
    "PRECESSING",
    "BINARY_NEUTRON_STAR",
    # Factories
    "taylor_t1",
    "taylor_t4",
    "taylor_t5",
]
