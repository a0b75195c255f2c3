"""
InspiralSystem: heyoka-driven evolution of a PN approximant.

The approximant is evaluated once on a ``SymbolicPNSystem`` of the
requested PN order. The resulting sympy right-hand side is expanded down
to the fundamental state variables, stripped of ``hold`` markers and
handed to heyoka, which compiles a Taylor integrator for it. Tidal
deformabilities and the target velocity are runtime parameters, so one
compiled integrator serves any binary and any target.

Termination follows ``pnevolve.termination``: the five continuous
conditions become heyoka terminal events, the discrete checks run in the
step callback.
"""

import math
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import heyoka as hy
import numpy as np
import sympy

from .approximants import get_approximant
from .config import config
from .inspiral import Inspiral, Segment
from .symbolic import SymbolicPipelineError, evaluate_constants, placeholder, unhold
from .system import (
    STATE_LENGTH, STATE_NAMES, V_INDEX, BinaryParams, NumericPNSystem,
    SymbolicPNSystem, prepare_pn_order,
)
from .termination import (
    ContinuousTerminator, IntegratorView,
    PNTerminationWarning, TerminationReason, default_discrete_terminators,
    termination_backwards, termination_forwards,
)
from .utils import Timer
from .variables import expand_derived

# Nominal state used while compiling (any state inside the domain works)
_COMPILE_STATE = BinaryParams(M1=0.5, M2=0.5).state


def _double_precision(expr):
    """
    Fundamental-variable form of ``expr`` with every number a double.

    heyoka converts sympy floats only at the precisions it can represent,
    and rationals only with power-of-two denominators, so constants are
    evaluated and every float and non-integer rational becomes a 53-bit
    float.
    """
    expr = evaluate_constants(unhold(expand_derived(expr)))
    numbers = {
        node: sympy.Float(float(node))
        for node in sympy.preorder_traversal(expr)
        if node.is_Float or (node.is_Rational and not node.is_Integer)
    }
    return expr.xreplace(numbers)


@dataclass
class _Run:
    """Mutable bookkeeping of one propagation."""
    terminator: ContinuousTerminator
    view: IntegratorView
    discrete: Tuple
    times: List[float] = field(default_factory=list)
    states: List[np.ndarray] = field(default_factory=list)


class InspiralSystem:
    """
    Compiled PN evolution for one approximant at one PN order.

    Parameters
    ----------
    approximant : str, optional
        Name in ``pnevolve.APPROXIMANTS`` (default:
        ``config.DEFAULT_APPROXIMANT``)
    pn_order : float, optional
        PN order, a non-negative multiple of 1/2 (default:
        ``config.DEFAULT_PN_ORDER``). Must be finite.
    compile : bool, optional
        Compile the heyoka integrator now (default:
        ``config.DEFAULT_COMPILE``). Otherwise compilation happens on the
        first call to ``evolve``.

    Raises
    ------
    ValueError
        For an unknown approximant or an invalid PN order
    SymbolicPipelineError
        If the right-hand side cannot be converted for heyoka

    Notes
    -----
    Compilation is the expensive step (seconds to minutes at high PN
    order). An instance warns when more than 10 are alive at once.

    Examples
    --------
    >>> from pnevolve import InspiralSystem, BinaryParams
    >>> system = InspiralSystem('TaylorT1', 3.5)
    >>> inspiral = system.evolve(BinaryParams(M1=0.6, M2=0.4, v=0.2), v_end=0.4)
    """
    # ========== CLASS CONSTANTS ==========
    _instance_count = 0
    _instance_warning_threshold = 10
    # hy.par[] layout
    _PARAM_MAP = (("Lambda1", 0), ("Lambda2", 1), ("v_target", 2))
    _PARAM_DESCRIPTION = {
        "Lambda1": "Dimensionless tidal deformability of body 1",
        "Lambda2": "Dimensionless tidal deformability of body 2",
        "v_target": "Velocity parameter at which the evolution stops",
    }

    # ========== CONSTRUCTION ==========
    def __init__(self, approximant: Optional[str] = None, pn_order=None,
                 compile: Optional[bool] = None):
        if approximant is None:
            approximant = config.DEFAULT_APPROXIMANT
        self._approximant_name = approximant
        self._approximant = get_approximant(approximant)
        self._pn_order = prepare_pn_order(pn_order)
        if self._pn_order == math.inf:
            raise ValueError("InspiralSystem needs a finite PN order")

        self._state_vars = hy.make_vars(*STATE_NAMES)
        self._cached_eom = None
        self._cached_integrator = None
        self._active_run: Optional[_Run] = None

        InspiralSystem._instance_count += 1
        self._counted = True
        if InspiralSystem._instance_count > InspiralSystem._instance_warning_threshold:
            warnings.warn(
                f"{InspiralSystem._instance_count} InspiralSystem instances exist. "
                f"Each holds a compiled integrator; reuse instances where possible.",
                UserWarning, stacklevel=2,
            )

        if compile is None:
            compile = config.DEFAULT_COMPILE
        if compile:
            self._compile_integrator()

    # ========== PROPERTIES ==========
    @property
    def approximant(self) -> str:
        return self._approximant_name

    @property
    def pn_order(self) -> float:
        return self._pn_order

    @property
    def is_compiled(self) -> bool:
        """True if the heyoka integrator has been built."""
        return self._cached_integrator is not None

    @property
    def cached_eom(self) -> Optional[List[Tuple]]:
        """Heyoka equations of motion, once built."""
        return self._cached_eom

    @property
    def param_info(self) -> Dict[str, Any]:
        """Layout of the runtime parameters ``hy.par[]``."""
        return {
            "param_map": list(self._PARAM_MAP),
            "description": dict(self._PARAM_DESCRIPTION),
        }

    # ========== EVOLUTION ==========
    def evolve(self, initial_state, v_end: float, v_start: Optional[float] = None,
               Lambda1: Optional[float] = None, Lambda2: Optional[float] = None,
               t0: float = 0.0, quiet: bool = False) -> Inspiral:
        """
        Evolve a binary forwards to ``v_end`` and optionally backwards to
        ``v_start``.

        Parameters
        ----------
        initial_state : BinaryParams, NumericPNSystem or array_like
            State at ``t0`` in the fixed 14-component layout
        v_end : float
            Velocity at which the forwards evolution stops; must exceed
            the initial ``v``
        v_start : float, optional
            If given, also evolve backwards in time until ``v`` drops to
            this value; must be below the initial ``v``
        Lambda1, Lambda2 : float, optional
            Tidal deformabilities. Default: taken from ``initial_state``
            when it carries them, else 0.
        t0 : float, optional
            Time of the initial state [M] (default: 0)
        quiet : bool, optional
            Silence the messages on reaching the targets (default: False)

        Returns
        -------
        Inspiral
            Both segments joined in time order

        Raises
        ------
        ValueError
            For malformed or non-finite initial data or targets on the
            wrong side of the initial velocity
        """
        state, Lambda1, Lambda2 = self._prepare_initial_state(
            initial_state, Lambda1, Lambda2
        )
        v0 = state[V_INDEX]
        if not v_end > v0:
            raise ValueError(f"v_end ({v_end}) must exceed the initial v ({v0})")
        if v_start is not None and not v_start < v0:
            raise ValueError(f"v_start ({v_start}) must be below the initial v ({v0})")

        if not self.is_compiled:
            self._compile_integrator()

        t0 = float(t0)
        segments = [self._propagate(state, t0, Lambda1, Lambda2,
                                    termination_forwards(v_end, quiet), +1)]
        if v_start is not None:
            segments.insert(0, self._propagate(state, t0, Lambda1, Lambda2,
                                               termination_backwards(v_start, quiet), -1))
        return Inspiral(self, segments, Lambda1, Lambda2)

    def _prepare_initial_state(self, initial_state, Lambda1, Lambda2):
        """State array and tidal parameters from any accepted input."""
        if isinstance(initial_state, BinaryParams):
            state = initial_state.state
            defaults = (initial_state.Lambda1, initial_state.Lambda2)
        elif isinstance(initial_state, NumericPNSystem):
            state = initial_state.state.copy()
            defaults = (initial_state.Lambda1, initial_state.Lambda2)
        else:
            state = np.array(initial_state, dtype=float)
            defaults = (0.0, 0.0)
            if state.shape != (STATE_LENGTH,):
                raise ValueError(
                    f"Initial state must have shape ({STATE_LENGTH},), got {state.shape}"
                )
        if not np.all(np.isfinite(state)):
            raise ValueError(f"Initial state contains NaN or Inf values: {state}")
        Lambda1 = defaults[0] if Lambda1 is None else float(Lambda1)
        Lambda2 = defaults[1] if Lambda2 is None else float(Lambda2)
        return state, Lambda1, Lambda2

    def _propagate(self, state, t0, Lambda1, Lambda2,
                   terminator: ContinuousTerminator, direction: int) -> Segment:
        """One propagation until a terminator fires."""
        ta = self._cached_integrator
        assert ta is not None, "Integrator should be compiled"

        ta.time = t0
        ta.state[:] = state
        ta.pars[:] = [Lambda1, Lambda2, terminator.v_target]
        ta.reset_cooldowns()

        run = _Run(
            terminator=terminator,
            view=IntegratorView(ta.state.copy(), t0, np.inf),
            discrete=default_discrete_terminators(),
            times=[t0],
            states=[ta.state.copy()],
        )
        self._active_run = run

        # Plain function: heyoka may deep-copy callbacks
        def step_callback(ta):
            return self._step_callback(ta)

        try:
            result = ta.propagate_until(
                t0 + direction * config.MAX_EVOLUTION_TIME,
                callback=step_callback,
                c_output=True,
            )
        finally:
            self._active_run = None

        outcome, c_output = result[0], result[4]
        if not run.view.terminated:
            if outcome == hy.taylor_outcome.err_nf_state:
                warnings.warn(
                    f"Terminating {terminator.direction} evolution because "
                    f"a non-finite number was found",
                    PNTerminationWarning, stacklevel=3,
                )
                run.view.terminate(TerminationReason.NONFINITE)
            elif outcome == hy.taylor_outcome.time_limit:
                warnings.warn(
                    f"Terminating {terminator.direction} evolution because the "
                    f"maximum evolution time {config.MAX_EVOLUTION_TIME} was reached",
                    PNTerminationWarning, stacklevel=3,
                )
                run.view.terminate(TerminationReason.TIME_LIMIT)

        # Keep the final state if the last step was not recorded
        if ta.time != run.times[-1] and np.all(np.isfinite(ta.state)):
            run.times.append(ta.time)
            run.states.append(ta.state.copy())

        return Segment(
            direction=terminator.direction,
            times=np.array(run.times),
            states=np.array(run.states),
            c_output=c_output,
            reason=run.view.reason,
        )

    # ========== CALLBACKS ==========
    def _step_callback(self, ta) -> bool:
        """Record the step and run the discrete terminators."""
        run = self._active_run
        if run is None or run.view.terminated:
            return False
        t = ta.time
        run.view.dt = t - run.times[-1]
        run.view.t = t
        run.view.u = ta.state.copy()
        if np.all(np.isfinite(run.view.u)):
            run.times.append(t)
            run.states.append(run.view.u)
        for terminator in run.discrete:
            if terminator(run.view):
                break
        return not run.view.terminated

    def _event_callback(self, index: int):
        """Terminal-event callback for continuous condition ``index``."""
        def callback(ta, *args) -> bool:
            run = self._active_run
            if run is None:
                return False
            run.view.t = ta.time
            run.view.u = ta.state.copy()
            run.terminator.affect(run.view, index)
            return not run.view.terminated
        return callback

    # ========== COMPILATION ==========
    def _build_eom(self):
        """
        Convert the symbolic right-hand side into heyoka expressions.

        Returns
        -------
        list of tuple
            ``(variable, derivative)`` pairs for ``hy.taylor_adaptive``
        """
        symbolic = SymbolicPNSystem(self._pn_order)
        try:
            rhs = self._approximant(symbolic)
            s_dict = {
                placeholder(name): var
                for name, var in zip(STATE_NAMES, self._state_vars)
            }
            s_dict[placeholder("Lambda1")] = hy.par[0]
            s_dict[placeholder("Lambda2")] = hy.par[1]
            return [
                (var, hy.from_sympy(_double_precision(expr), s_dict))
                for var, expr in zip(self._state_vars, rhs)
            ]
        except Exception as exc:
            raise SymbolicPipelineError(
                f"Could not convert the {self._approximant_name} right-hand side "
                f"at {self._pn_order}PN for heyoka: {exc}"
            ) from exc

    def _build_events(self):
        """Terminal heyoka events, one per continuous condition."""
        conditions = ContinuousTerminator.condition_values(self._state_vars, hy.par[2])
        return [
            hy.t_event(condition, callback=self._event_callback(index))
            for index, condition in enumerate(conditions)
        ]

    def _compile_integrator(self):
        """
        Build and compile the heyoka integrator (expensive operation).

        The sympy-to-heyoka conversion and the LLVM compilation of the
        Taylor integrator together take seconds at low PN order and can
        take minutes at the highest orders.
        """
        if self._cached_integrator is not None:
            return  # Already compiled

        if self._cached_eom is None:
            self._cached_eom = self._build_eom()

        if config.VERBOSE:
            print(f"Compiling {self._approximant_name} integrator "
                  f"at {self._pn_order:g}PN...")
        kwargs = {"compact_mode": config.COMPACT_MODE}
        if config.INTEGRATION_TOL is not None:
            kwargs["tol"] = config.INTEGRATION_TOL
        with Timer("Compilation", verbose=config.VERBOSE):
            self._cached_integrator = hy.taylor_adaptive(
                sys=self._cached_eom,
                state=list(_COMPILE_STATE),
                pars=[0.0] * len(self._PARAM_MAP),
                t_events=self._build_events(),
                **kwargs,
            )
        if config.VERBOSE:
            print("Compilation complete")

    def compile(self):
        """
        Compile the integrator if it is not compiled yet.

        Returns
        -------
        self
            For method chaining
        """
        self._compile_integrator()
        return self

    # ========== SPECIAL METHODS ==========
    def __del__(self):
        if getattr(self, "_counted", False):
            InspiralSystem._instance_count -= 1

    def __repr__(self):
        return (f"InspiralSystem(approximant='{self._approximant_name}', "
                f"pn_order={self._pn_order}, compiled={self.is_compiled})")

    # ========== CLASS METHODS ==========
    @classmethod
    def get_instance_count(cls) -> int:
        """Number of live InspiralSystem instances."""
        return cls._instance_count

    @classmethod
    def reset_instance_count(cls):
        """Reset the instance counter (for tests)."""
        cls._instance_count = 0
