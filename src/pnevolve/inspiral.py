"""
Inspiral: the result of an evolution with continuous-time state access.

An inspiral holds one forwards segment and, when a backwards evolution
was requested, one backwards segment. Both carry heyoka's continuous
output, so states can be queried at any time inside the evolution, not
only at the accepted steps.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .system import PHI_INDEX, STATE_NAMES, V_INDEX, NumericPNSystem
from .termination import TerminationReason

if TYPE_CHECKING:
    from .evolution import InspiralSystem


@dataclass
class Segment:
    """
    One propagation in a single time direction.

    Attributes
    ----------
    direction : {'forwards', 'backwards'}
    times : np.ndarray
        Accepted step times, in the order they were taken
    states : np.ndarray
        States at ``times``, shape (n, 14)
    c_output : callable or None
        heyoka continuous output over the segment
    reason : TerminationReason or None
        Why the propagation stopped
    """
    direction: str
    times: np.ndarray
    states: np.ndarray
    c_output: Any
    reason: Optional[TerminationReason]

    @property
    def t_min(self) -> float:
        return float(np.min(self.times))

    @property
    def t_max(self) -> float:
        return float(np.max(self.times))

    def contains(self, t: float) -> bool:
        return self.t_min <= t <= self.t_max

    def evaluate(self, times) -> np.ndarray:
        """States at ``times`` (scalar -> (14,), array -> (n, 14))."""
        if self.c_output is not None:
            # heyoka reuses its output buffer between calls
            return np.array(self.c_output(times), copy=True)
        # Without dense output, interpolate linearly between steps
        order = np.argsort(self.times)
        t_sorted = self.times[order]
        s_sorted = self.states[order]
        times_arr = np.atleast_1d(np.asarray(times, dtype=float))
        result = np.column_stack([
            np.interp(times_arr, t_sorted, s_sorted[:, k])
            for k in range(s_sorted.shape[1])
        ])
        return result[0] if np.ndim(times) == 0 else result


class Inspiral:
    """
    Evolved binary with continuous-time state access.

    Parameters
    ----------
    system : InspiralSystem
        System that produced the evolution
    segments : list of Segment
        Backwards segment (optional) first, then the forwards segment
    Lambda1, Lambda2 : float
        Tidal deformabilities used in the evolution

    Examples
    --------
    >>> inspiral = system.evolve(BinaryParams(M1=0.5, M2=0.5, v=0.2), v_end=0.3)
    >>> inspiral.tf
    >>> inspiral.state_at(0.5 * inspiral.tf).v
    >>> df = inspiral.to_dataframe(n_points=500)
    """
    # ========== CONSTRUCTION ==========
    def __init__(self, system: "InspiralSystem", segments: Sequence[Segment],
                 Lambda1: float = 0.0, Lambda2: float = 0.0):
        if not segments:
            raise ValueError("An Inspiral needs at least one segment")
        self._system = system
        self._segments = list(segments)
        self._Lambda1 = Lambda1
        self._Lambda2 = Lambda2

        # Join in time order; the shared initial state appears once
        times, states = [], []
        for segment in self._segments:
            t, s = segment.times, segment.states
            if segment.direction == "backwards":
                t, s = t[::-1], s[::-1]
            if times and t.size and t[0] == times[-1][-1]:
                t, s = t[1:], s[1:]
            times.append(t)
            states.append(s)
        self._times = np.concatenate(times)
        self._states = np.concatenate(states)

    # ========== PROPERTY ACCESS ==========
    @property
    def system(self) -> "InspiralSystem":
        return self._system

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    @property
    def times(self) -> np.ndarray:
        """Accepted step times in increasing order."""
        return self._times

    @property
    def states(self) -> np.ndarray:
        """States at ``times``, shape (n, 14)."""
        return self._states

    @property
    def v(self) -> np.ndarray:
        return self._states[:, V_INDEX]

    @property
    def Phi(self) -> np.ndarray:
        return self._states[:, PHI_INDEX]

    @property
    def termination_reasons(self) -> dict:
        """Termination reason per direction."""
        return {segment.direction: segment.reason for segment in self._segments}

    @property
    def reached_target(self) -> bool:
        """True if every segment stopped at its target velocity."""
        return all(segment.reason is TerminationReason.TARGET_REACHED
                   for segment in self._segments)

    @property
    def t0(self) -> float:
        return float(self._times[0])

    @property
    def tf(self) -> float:
        return float(self._times[-1])

    @property
    def duration(self) -> float:
        """Inspiral duration."""
        return self.tf - self.t0

    # ========== UTILITY METHODS ==========
    def _segment_for(self, t: float) -> Segment:
        for segment in self._segments:
            if segment.contains(t):
                return segment
        raise ValueError(
            f"Time {t} outside inspiral bounds [{self.t0}, {self.tf}]"
        )

    def state_at(self, t: float) -> NumericPNSystem:
        """
        PNSystem at time ``t`` (must be in [t0, tf]).

        The returned system has the PN order and tidal deformabilities of
        the evolution, so PN quantities can be evaluated on it directly.
        """
        return NumericPNSystem(self.state_at_raw(t), self._system.pn_order,
                               self._Lambda1, self._Lambda2)

    def state_at_raw(self, t: float) -> np.ndarray:
        """Raw state array at time ``t``."""
        self._validate_time(t)
        return self._segment_for(float(t)).evaluate(float(t))

    def evaluate_raw(self, times: Union[float, np.ndarray, list]) -> np.ndarray:
        """
        Evaluate at one or more times, returning raw arrays.

        Parameters
        ----------
        times : float or array_like
            Query times inside [t0, tf]

        Returns
        -------
        np.ndarray
            Shape (14,) for a scalar time, (n_times, 14) otherwise
        """
        if isinstance(times, (int, float)):
            return self.state_at_raw(times)

        times = np.asarray(times, dtype=float)
        result = np.empty((times.size, len(STATE_NAMES)))
        for segment in self._segments:
            mask = (times >= segment.t_min) & (times <= segment.t_max)
            if np.any(mask):
                result[mask] = segment.evaluate(times[mask])
        outside = (times < self.t0) | (times > self.tf)
        if np.any(outside):
            raise ValueError(
                f"Times {times[outside]} outside inspiral bounds "
                f"[{self.t0}, {self.tf}]"
            )
        return result

    def sample_raw(self, n_points: int = 100) -> np.ndarray:
        """Uniformly sample the inspiral in time, shape (n_points, 14)."""
        if n_points < 2:
            raise ValueError("n_points must be at least 2, use .state_at_raw()")
        return self.evaluate_raw(self.get_times(n_points))

    def _validate_time(self, t: float):
        """Validate that time is within inspiral bounds."""
        if not (self.t0 <= t <= self.tf):
            raise ValueError(
                f"Time {t} outside inspiral bounds [{self.t0}, {self.tf}]"
            )

    def contains_time(self, t: float) -> bool:
        return self.t0 <= t <= self.tf

    def get_times(self, n_points: int = 100) -> np.ndarray:
        """Uniform time array spanning the inspiral."""
        return np.linspace(self.t0, self.tf, n_points)

    def to_dataframe(self, times: Optional[np.ndarray] = None,
                     n_points: Optional[int] = None) -> pd.DataFrame:
        """
        Export the inspiral to a pandas DataFrame.

        Parameters
        ----------
        times : array_like, optional
            Times to evaluate at
        n_points : int, optional
            Number of uniform samples. If neither argument is given, the
            accepted steps are exported.

        Returns
        -------
        pd.DataFrame
            A ``time`` column followed by one column per state component
        """
        if times is not None:
            times = np.asarray(times, dtype=float)
            states = self.evaluate_raw(times)
        elif n_points is not None:
            times = self.get_times(n_points)
            states = self.evaluate_raw(times)
        else:
            times, states = self._times, self._states

        data = {"time": times}
        data.update({name: states[:, i] for i, name in enumerate(STATE_NAMES)})
        return pd.DataFrame(data)

    # ========== SPECIAL METHODS ==========
    def __len__(self):
        return len(self._times)

    def __repr__(self):
        reasons = {k: (r.name if r else None)
                   for k, r in self.termination_reasons.items()}
        return (f"Inspiral(approximant='{self._system.approximant}', "
                f"pn_order={self._system.pn_order}, t0={self.t0}, tf={self.tf}, "
                f"v=[{self.v.min():.4g}, {self.v.max():.4g}], reasons={reasons})")

    def __call__(self, t: float) -> NumericPNSystem:
        """Syntactic sugar for ``.state_at(t)``."""
        return self.state_at(t)
