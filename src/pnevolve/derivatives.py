"""
Symbolic derivative pipeline.

Some quantities the approximants need are derived from hand-written
formulas rather than written themselves; the prime example is
``d𝓔/dv``. Instead of differentiating on every right-hand-side call,
the formula is evaluated once on the symbolic PNSystem, differentiated and
expanded with sympy, and then turned back into an ordinary Python
function:

1. evaluate the formula on ``symbolic_pnsystem``,
2. differentiate with respect to a placeholder and expand,
3. strip the ``hold`` markers and flatten the top-level sum,
4. drop the terms beyond the requested PN order,
5. print the result as a Python function and ``exec`` it.

Steps 1-2 run when the ``SymbolicDerivative`` is created (at import for
the module-level ``binding_energy_deriv``). Steps 3-5 run once per PN
order, on first numeric use, and the compiled function is cached.
Failures are fatal and raise ``SymbolicPipelineError``.
"""

import math
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
import sympy
from sympy.printing.numpy import NumPyPrinter

from . import variables
from .binding_energy import binding_energy
from .expansion import apply_pn_expansion, series_terms, truncated_series_quotient
from .symbolic import (
    SymbolicPipelineError, evaluate_constants, flatten_add, unhold,
)
from .system import is_symbolic, symbolic_pnsystem

_ARGUMENT = "pnsystem"


def _order_suffix(pn_order) -> str:
    """Identifier-safe form of a PN order (3.5 -> '3p5', inf -> 'inf')."""
    if pn_order == math.inf:
        return "inf"
    return f"{pn_order:g}".replace(".", "p")


class FunctionDefinition:
    """
    A generated Python function: signature, variable bindings and result.

    The function takes a single PNSystem argument. Its body binds every
    placeholder used in the result to the matching accessor of
    ``pnevolve.variables`` and returns the printed expression, e.g.::

        def binding_energy_deriv_2(pnsystem):
            mu = variables.mu(pnsystem)
            nu = variables.nu(pnsystem)
            v = variables.v(pnsystem)
            return -mu*v + ...

    Parameters
    ----------
    name : str
        Function name (must be a valid identifier)
    bindings : list of str
        Placeholder names bound at the top of the body
    result : sympy.Expr
        Returned expression
    """

    def __init__(self, name: str, bindings: List[str], result):
        self.name = name
        self.bindings = list(bindings)
        self.result = result

    def map_return(self, transform: Callable) -> "FunctionDefinition":
        """New definition whose result is ``transform(result)``."""
        return build_function(transform(self.result), self.name)

    def source(self) -> str:
        """Python source of the function."""
        printer = NumPyPrinter({"fully_qualified_modules": True})
        lines = [f"def {self.name}({_ARGUMENT}):"]
        for name in self.bindings:
            lines.append(f"    {name} = variables.{name}({_ARGUMENT})")
        lines.append(f"    return {printer.doprint(self.result)}")
        return "\n".join(lines) + "\n"

    def compile(self) -> Callable:
        """Execute the source and return the resulting function."""
        namespace = {"numpy": np, "variables": variables}
        code = compile(self.source(), f"<generated {self.name}>", "exec")
        exec(code, namespace)
        return namespace[self.name]

    def __repr__(self):
        return (f"FunctionDefinition(name='{self.name}', "
                f"bindings={self.bindings})")


def build_function(expr, name: str) -> FunctionDefinition:
    """
    Wrap ``expr`` in a function definition binding its free placeholders.

    Raises
    ------
    SymbolicPipelineError
        If a free symbol has no accessor in ``pnevolve.variables``.
    """
    expr = sympy.sympify(expr)
    names = sorted(symbol.name for symbol in expr.free_symbols)
    unknown = [n for n in names if not callable(getattr(variables, n, None))]
    if unknown:
        raise SymbolicPipelineError(
            f"No accessor for placeholders {unknown} in generated function '{name}'"
        )
    return FunctionDefinition(name, names, expr)


class _CompiledPerOrder:
    """Shared dispatch: symbolic callers get expressions, numeric callers
    get a function compiled once per PN order."""

    def __init__(self, name: str):
        self.name = name
        self._compiled: Dict[float, Callable] = {}

    def expression(self, pn_order):
        """Truncated symbolic result (with ``hold`` markers) at ``pn_order``."""
        raise NotImplementedError

    def function(self, pn_order) -> Callable:
        """Numeric function for ``pn_order`` (compiled on first use)."""
        if pn_order not in self._compiled:
            self._compiled[pn_order] = self._compile(pn_order)
        return self._compiled[pn_order]

    def _compile(self, pn_order) -> Callable:
        try:
            definition = build_function(
                unhold(self.expression(pn_order)),
                f"{self.name}_{_order_suffix(pn_order)}",
            )
            return definition.map_return(evaluate_constants).compile()
        except SymbolicPipelineError:
            raise
        except Exception as exc:
            raise SymbolicPipelineError(
                f"Could not compile '{self.name}' at PN order {pn_order}: {exc}"
            ) from exc

    def __call__(self, pnsystem):
        if is_symbolic(pnsystem):
            return self.expression(pnsystem.pn_order)
        return self.function(pnsystem.pn_order)(pnsystem)


class SymbolicDerivative(_CompiledPerOrder):
    """
    Derivative of a PN formula, built symbolically and compiled on demand.

    Parameters
    ----------
    formula : callable
        PN formula taking a PNSystem
    wrt : callable
        Accessor of the variable to differentiate by (e.g.
        ``variables.v``)
    offset : float, optional
        Extra power of ``v`` used when truncating the derivative: a formula
        ``v² (1 + ... + v^k)`` differentiated by ``v`` is
        ``v (2 + ... + v^k)``, so its relative powers are the absolute ones
        minus one (``offset=-1``). Default: 0
    name : str, optional
        Base name of the generated functions
        (default: ``<formula>_deriv``)

    Raises
    ------
    SymbolicPipelineError
        If the formula cannot be evaluated symbolically or differentiated.

    Examples
    --------
    >>> deriv = SymbolicDerivative(binding_energy, variables.v, offset=-1)
    >>> deriv(pnsystem)            # numeric PNSystem -> float
    >>> deriv(symbolic_pnsystem)   # sympy expression
    """

    def __init__(self, formula: Callable, wrt: Callable, offset=0,
                 name: Optional[str] = None):
        super().__init__(name or f"{formula.__name__}_deriv")
        self.formula = formula
        self.offset = offset
        self.variable = wrt(symbolic_pnsystem)
        try:
            symbolic_formula = sympy.sympify(formula(symbolic_pnsystem))
            self.derivative = sympy.expand(sympy.diff(symbolic_formula, self.variable))
        except Exception as exc:
            raise SymbolicPipelineError(
                f"Could not differentiate '{formula.__name__}' with respect to "
                f"{self.variable}: {exc}"
            ) from exc

    def expression(self, pn_order):
        return apply_pn_expansion(
            self.derivative, variables.v(symbolic_pnsystem), pn_order, self.offset
        )

    def _compile(self, pn_order) -> Callable:
        # Strip markers and flatten before the PN directive, as in expression()
        try:
            expr = flatten_add(unhold(self.derivative))
            expr = apply_pn_expansion(
                expr, variables.v(symbolic_pnsystem), pn_order, self.offset
            )
            definition = build_function(expr, f"{self.name}_{_order_suffix(pn_order)}")
            return definition.map_return(evaluate_constants).compile()
        except SymbolicPipelineError:
            raise
        except Exception as exc:
            raise SymbolicPipelineError(
                f"Could not compile '{self.name}' at PN order {pn_order}: {exc}"
            ) from exc

    def __repr__(self):
        return (f"SymbolicDerivative(formula={self.formula.__name__}, "
                f"wrt={self.variable}, offset={self.offset})")


class SeriesQuotient(_CompiledPerOrder):
    """
    Power-series quotient of two PN formulas, truncated per PN order.

    ``numerator/denominator`` is re-expanded as a series in ``v`` and cut
    after ``series_terms(pn_order)`` terms relative to its leading power.
    Both formulas are evaluated once on ``symbolic_pnsystem``; the
    truncated quotients and the compiled functions are cached per order.

    Parameters
    ----------
    numerator, denominator : callable
        PN formulas taking a PNSystem
    name : str
        Base name of the generated functions
    """

    def __init__(self, numerator: Callable, denominator: Callable, name: str):
        super().__init__(name)
        self.numerator = numerator
        self.denominator = denominator
        self._expressions: Dict[float, object] = {}
        self._operands: Optional[Tuple] = None

    def expression(self, pn_order):
        if pn_order not in self._expressions:
            if self._operands is None:
                self._operands = (
                    sympy.sympify(self.numerator(symbolic_pnsystem)),
                    sympy.sympify(self.denominator(symbolic_pnsystem)),
                )
            self._expressions[pn_order] = truncated_series_quotient(
                *self._operands, variables.v(symbolic_pnsystem),
                series_terms(pn_order),
            )
        return self._expressions[pn_order]

    def __repr__(self):
        return (f"SeriesQuotient(name='{self.name}', "
                f"orders={sorted(self._expressions)})")


binding_energy_deriv = SymbolicDerivative(
    binding_energy, variables.v, offset=-1, name="binding_energy_deriv"
)
