"""
Utility functions and classes for the pnevolve package.
"""

from time import perf_counter
import warnings
from typing import Type
from .config import config


class PNValidationWarning(UserWarning):
    """Initial data outside the regime the PN equations describe."""


def format_duration(seconds: float) -> str:
    """
    Human-readable duration.

    High-order integrators take minutes to compile, so durations of a
    minute or more are split into minutes and seconds.

    Examples
    --------
    >>> format_duration(2.5)
    '2.500000 s'
    >>> format_duration(83.25)
    '1 min 23.25 s'
    """
    if seconds < 60:
        return f"{seconds:.6f} s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)} min {rest:.2f} s"


class Timer:
    """
    Context manager for timing integrator compilation.

    Examples
    --------
    >>> from pnevolve.utils import Timer
    >>> with Timer("TaylorT1 compilation"):
    ...     system.compile()
    TaylorT1 compilation: 2.345678 s

    >>> with Timer(verbose=False) as t:
    ...     system.compile()
    >>> t.elapsed
    """
    def __init__(self, name="Operation", verbose=True):
        """
        Parameters
        ----------
        name : str, optional
            Label printed with the elapsed time (default: "Operation")
        verbose : bool, optional
            Print the elapsed time on exit (default: True)
        """
        self.name = name
        self.verbose = verbose
        self.elapsed = None

    def __enter__(self):
        self.start = perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = perf_counter() - self.start
        if self.verbose:
            print(f"{self.name}: {format_duration(self.elapsed)}")


def validation_error(message: str, error_class: Type[Exception] = ValueError,
                     stacklevel: int = 4):
    """
    Raise or warn about suspicious binary parameters.

    Super-extremal spins and velocity parameters outside (0, 1) are
    outside the PN regime, but users sometimes want to start an evolution
    there and watch the terminators catch it. ``config.STRICT_VALIDATION``
    decides which behaviour applies.

    Parameters
    ----------
    message : str
        Description of the offending parameter
    error_class : Type[Exception], optional
        Exception raised under strict validation (default: ValueError)
    stacklevel : int, optional
        Passed to ``warnings.warn``; the default points at the code that
        constructed the parameters (default: 4)

    Raises
    ------
    Exception (of type error_class)
        If config.STRICT_VALIDATION is True

    Warns
    -----
    PNValidationWarning
        If config.STRICT_VALIDATION is False

    Examples
    --------
    >>> from pnevolve import temp_config
    >>> with temp_config(STRICT_VALIDATION=False):
    ...     BinaryParams(M1=0.5, M2=0.5, chi1=(0, 0, 1.2))  # warns
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    warnings.warn(message, PNValidationWarning, stacklevel=stacklevel)
