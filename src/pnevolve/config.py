"""
Global Configuration for pnevolve
=================================

Package-wide settings controlling PN truncation defaults, symbolic
collection limits, integrator compilation and validation behavior.

Examples
--------
View current configuration:

>>> import pnevolve
>>> print(pnevolve.config)

Modify settings:

>>> pnevolve.config.DEFAULT_PN_ORDER = 4.0
>>> pnevolve.config.VERBOSE = False  # No compilation messages

Reset to defaults:

>>> pnevolve.config.reset()

Temporarily modify settings:

>>> with pnevolve.temp_config(DEFAULT_COMPILE=False):
...     system = pnevolve.InspiralSystem('TaylorT1', 3.5)
...     system.is_compiled
False

Notes
-----
These settings affect package-wide behavior. Modifying them will impact
all subsequent operations until changed again or reset.
"""

from dataclasses import dataclass
from contextlib import contextmanager
from typing import Optional


@dataclass
class PNConfig:
    """
    Global configuration for pnevolve.

    Attributes
    ----------
    DEFAULT_PN_ORDER : float
        PN order used when a PNSystem or InspiralSystem is created without
        an explicit order. Must be a non-negative multiple of 1/2.
        Default: 3.5
    DEFAULT_APPROXIMANT : str
        Approximant used by InspiralSystem when none is given.
        Default: 'TaylorT1'
    DEFAULT_COMPILE : bool
        If True, InspiralSystem objects compile the heyoka integrator
        immediately on construction.
        If False, compilation is deferred until first evolution.
        Default: True
    STRICT_VALIDATION : bool
        If True, suspicious physical parameters raise exceptions.
        If False, they issue warnings.
        Default: True
    COLLECT_MAX_POWER : int
        Highest power of the expansion variable searched by
        collect_by_power when building series.
        Default: 100
    COLLECT_MAX_GAP : int
        Number of consecutive zero coefficients after which
        collect_by_power stops searching.
        Default: 4
    UNBOUNDED_SERIES_PN_ORDER : float
        Order at which TaylorT4/TaylorT5 series are cut when the PN order
        of the system is unbounded (a series quotient never terminates).
        Default: 6.0
    INTEGRATION_TOL : float or None
        Tolerance of the heyoka Taylor integrator. None uses the heyoka
        default (machine epsilon).
        Default: None
    COMPACT_MODE : bool
        Compile the right-hand side in heyoka's compact mode. The PN
        right-hand sides are large, so this keeps compilation fast.
        Default: True
    MAX_EVOLUTION_TIME : float
        Longest time span [M] a single evolution may cover before it is
        stopped.
        Default: 1e13
    VERBOSE : bool
        Print progress messages (compilation, timing).
        Default: True
    """

    # PN defaults
    DEFAULT_PN_ORDER: float = 3.5
    DEFAULT_APPROXIMANT: str = 'TaylorT1'

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Symbolic series handling
    COLLECT_MAX_POWER: int = 100
    COLLECT_MAX_GAP: int = 4
    UNBOUNDED_SERIES_PN_ORDER: float = 6.0

    # Integration
    DEFAULT_COMPILE: bool = True
    INTEGRATION_TOL: Optional[float] = None
    COMPACT_MODE: bool = True
    MAX_EVOLUTION_TIME: float = 1e13

    # Messages
    VERBOSE: bool = True

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import pnevolve
        >>> pnevolve.config.DEFAULT_PN_ORDER = 2.0  # Modify
        >>> pnevolve.config.reset()  # Back to defaults
        >>> pnevolve.config.DEFAULT_PN_ORDER
        3.5
        """
        defaults = PNConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["PNConfig:"]
        lines.append("  PN Defaults:")
        lines.append(f"    DEFAULT_PN_ORDER = {self.DEFAULT_PN_ORDER}")
        lines.append(f"    DEFAULT_APPROXIMANT = '{self.DEFAULT_APPROXIMANT}'")
        lines.append("  Symbolic Series:")
        lines.append(f"    COLLECT_MAX_POWER = {self.COLLECT_MAX_POWER}")
        lines.append(f"    COLLECT_MAX_GAP = {self.COLLECT_MAX_GAP}")
        lines.append(f"    UNBOUNDED_SERIES_PN_ORDER = {self.UNBOUNDED_SERIES_PN_ORDER}")
        lines.append("  Integration:")
        lines.append(f"    DEFAULT_COMPILE = {self.DEFAULT_COMPILE}")
        lines.append(f"    INTEGRATION_TOL = {self.INTEGRATION_TOL}")
        lines.append(f"    COMPACT_MODE = {self.COMPACT_MODE}")
        lines.append(f"    MAX_EVOLUTION_TIME = {self.MAX_EVOLUTION_TIME}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append(f"    VERBOSE = {self.VERBOSE}")
        return "\n".join(lines)


# Global configuration instance
config = PNConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import pnevolve
    >>> with pnevolve.temp_config(VERBOSE=False, STRICT_VALIDATION=False):
    ...     # Silent compilation, warnings instead of errors
    ...     system = pnevolve.InspiralSystem('TaylorT4', 3.0)
    >>> # Original config restored here
    >>> pnevolve.config.VERBOSE
    True

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    old_values = {}
    for key, value in kwargs.items():
        if not hasattr(config, key):
            raise AttributeError(
                f"PNConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
