"""
Termination criteria for PN evolutions.

Continuous terminators are vectors of root-finding conditions: the
driver stops exactly where one of them crosses zero. Discrete
terminators are checked after every accepted step.

Reaching the target velocity is the expected way for an evolution to
end and is reported with an informational message (suppressed with
``quiet=True``). Every other path means the PN equations have left
their domain of validity and issues a ``PNTerminationWarning``, which
``quiet`` does not silence. Use ``warnings.catch_warnings`` (or
``pytest.warns``) to handle those.
"""

import warnings
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np

from .system import CHI1_SLICE, CHI2_SLICE, M1_INDEX, M2_INDEX, V_INDEX


class PNTerminationWarning(UserWarning):
    """An evolution stopped before reaching its target velocity."""


class TerminationReason(Enum):
    """Why an evolution stopped."""
    M1_NONPOSITIVE = "M1 <= 0"
    M2_NONPOSITIVE = "M2 <= 0"
    CHI1_SUPEREXTREMAL = "|chi1| > 1"
    CHI2_SUPEREXTREMAL = "|chi2| > 1"
    TARGET_REACHED = "target v reached"
    STEP_TOO_SMALL = "|dt| < sqrt(eps)"
    NONFINITE = "non-finite state"
    TIME_LIMIT = "maximum evolution time reached"

    @property
    def is_success(self) -> bool:
        return self is TerminationReason.TARGET_REACHED


# Reasons in the order of the continuous conditions
CONTINUOUS_REASONS = (
    TerminationReason.M1_NONPOSITIVE,
    TerminationReason.M2_NONPOSITIVE,
    TerminationReason.CHI1_SUPEREXTREMAL,
    TerminationReason.CHI2_SUPEREXTREMAL,
    TerminationReason.TARGET_REACHED,
)


class IntegratorView:
    """
    The slice of an ODE integrator that terminators act on.

    Attributes
    ----------
    u : np.ndarray
        Current state
    t : float
        Current time
    dt : float
        Size of the last step
    reason : TerminationReason or None
        Set by ``terminate``
    """

    def __init__(self, u, t, dt):
        self.u = np.asarray(u, dtype=float)
        self.t = t
        self.dt = dt
        self.reason: Optional[TerminationReason] = None

    @property
    def terminated(self) -> bool:
        return self.reason is not None

    def terminate(self, reason: TerminationReason):
        """Request the driver to stop; the first reason wins."""
        if self.reason is None:
            self.reason = reason

    def __repr__(self):
        return (f"IntegratorView(t={self.t}, dt={self.dt}, "
                f"reason={self.reason})")


# ========== CONTINUOUS TERMINATORS ==========
class ContinuousTerminator:
    """
    Vector of root-finding conditions with a condition-specific affect.

    Conditions (each positive inside the valid domain)::

        [M1, M2, 1 - |chi1|^2, 1 - |chi2|^2, v_target - v]

    For backwards evolution ``v`` decreases towards ``v_target``, so the
    last condition is negative inside the domain and crosses zero the same
    way.

    Parameters
    ----------
    direction : {'forwards', 'backwards'}
    v_target : float
        Velocity at which the evolution ends
    quiet : bool, optional
        Suppress the informational message on reaching ``v_target``
    """
    n_conditions = len(CONTINUOUS_REASONS)

    _WARNINGS = {
        "forwards": (
            "M1 has become non-positive.  This is unusual.",
            "M2 has become non-positive.  This is unusual.",
            "chi1>1.  Suggests early breakdown of PN.",
            "chi2>1.  Suggests early breakdown of PN.",
        ),
        "backwards": (
            "M1 has become non-positive.  Suggests problem with PN.",
            "M2 has become non-positive.  Suggests problem with PN.",
            "chi1>1.  Suggests problem with PN.",
            "chi2>1.  Suggests problem with PN.",
        ),
    }
    _TARGET_NAMES = {"forwards": "v_end", "backwards": "v_start"}

    def __init__(self, direction: str, v_target: float, quiet: bool = False):
        if direction not in self._WARNINGS:
            raise ValueError(
                f"direction must be 'forwards' or 'backwards', got '{direction}'"
            )
        self.direction = direction
        self.v_target = float(v_target)
        self.quiet = quiet

    @staticmethod
    def condition_values(u, v_target) -> List:
        """
        The five conditions for state ``u``.

        Works on numeric arrays and on sequences of symbolic variables
        (heyoka expressions), so the driver can compile them into events.
        """
        chi1 = u[CHI1_SLICE]
        chi2 = u[CHI2_SLICE]
        return [
            u[M1_INDEX],
            u[M2_INDEX],
            1 - (chi1[0]**2 + chi1[1]**2 + chi1[2]**2),
            1 - (chi2[0]**2 + chi2[1]**2 + chi2[2]**2),
            v_target - u[V_INDEX],
        ]

    def conditions(self, u, t=None, integrator=None) -> np.ndarray:
        """Numeric condition vector at state ``u``."""
        return np.array(self.condition_values(np.asarray(u, dtype=float),
                                              self.v_target))

    def message(self, event_index: int) -> str:
        """Log message for condition ``event_index`` (0-based)."""
        prefix = f"Terminating {self.direction} evolution because "
        if CONTINUOUS_REASONS[event_index] is TerminationReason.TARGET_REACHED:
            name = self._TARGET_NAMES[self.direction]
            return (prefix + f"the PN parameter v has reached "
                    f"{name}={self.v_target}.  This is ideal.")
        return prefix + self._WARNINGS[self.direction][event_index]

    def affect(self, integrator, event_index: int):
        """Report condition ``event_index`` and stop the integrator."""
        reason = CONTINUOUS_REASONS[event_index]
        if reason.is_success:
            if not self.quiet:
                print(self.message(event_index))
        else:
            warnings.warn(self.message(event_index), PNTerminationWarning,
                          stacklevel=2)
        integrator.terminate(reason)

    def __repr__(self):
        return (f"ContinuousTerminator(direction='{self.direction}', "
                f"v_target={self.v_target}, quiet={self.quiet})")


def termination_forwards(v_end: float, quiet: bool = False) -> ContinuousTerminator:
    """
    Termination criteria for evolving forwards in time.

    Stops when a mass becomes non-positive, a spin exceeds the Kerr bound,
    or ``v`` reaches ``v_end``.

    Parameters
    ----------
    v_end : float
        Target velocity parameter
    quiet : bool, optional
        Silence the informational message on reaching ``v_end``; warnings
        for the other conditions are still issued (default: False)
    """
    return ContinuousTerminator("forwards", v_end, quiet)


def termination_backwards(v_start: float, quiet: bool = False) -> ContinuousTerminator:
    """
    Termination criteria for evolving backwards in time.

    Same conditions as ``termination_forwards``, with ``v`` decreasing
    towards ``v_start``.
    """
    return ContinuousTerminator("backwards", v_start, quiet)


# ========== DISCRETE TERMINATORS ==========
class DiscreteTerminator:
    """
    Post-step check: ``affect`` runs when ``condition`` holds.

    Parameters
    ----------
    condition : callable
        ``condition(u, t, integrator) -> bool``
    affect : callable
        ``affect(integrator)``; expected to call ``integrator.terminate``
    """

    def __init__(self, condition: Callable, affect: Callable, name: str = ""):
        self.condition = condition
        self.affect = affect
        self.name = name

    def __call__(self, integrator) -> bool:
        """Check the integrator; True if it was told to stop."""
        if self.condition(integrator.u, integrator.t, integrator):
            self.affect(integrator)
            return True
        return False

    def __repr__(self):
        return f"DiscreteTerminator('{self.name}')"


def dtmin_terminator(dtype=float) -> DiscreteTerminator:
    """
    Stop when the step size drops below ``sqrt(eps(dtype))``.

    Drivers should keep their own minimum step at or below this value so
    that this check, and not an internal failure of the driver, ends the
    run.
    """
    epsilon = float(np.sqrt(np.finfo(dtype).eps))

    def condition(u, t, integrator):
        return abs(integrator.dt) < epsilon

    def affect(integrator):
        warnings.warn(
            f"Terminating evolution because |dt={integrator.dt}| < eps={epsilon}",
            PNTerminationWarning, stacklevel=2,
        )
        integrator.terminate(TerminationReason.STEP_TOO_SMALL)

    terminator = DiscreteTerminator(condition, affect, "dtmin")
    terminator.epsilon = epsilon
    return terminator


def nonfinite_terminator() -> DiscreteTerminator:
    """Stop when the state, the time or the step size is not finite."""
    def condition(u, t, integrator):
        return not (np.all(np.isfinite(u)) and np.isfinite(t)
                    and np.isfinite(integrator.dt))

    def affect(integrator):
        warnings.warn(
            "Terminating evolution because a non-finite number was found",
            PNTerminationWarning, stacklevel=2,
        )
        integrator.terminate(TerminationReason.NONFINITE)

    return DiscreteTerminator(condition, affect, "nonfinite")


def default_discrete_terminators(dtype=float) -> Tuple[DiscreteTerminator, ...]:
    """The discrete checks every evolution runs after each step."""
    return dtmin_terminator(dtype), nonfinite_terminator()
