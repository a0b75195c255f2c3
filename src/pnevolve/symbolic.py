"""
Symbolic building blocks shared by every PN formula.

This module holds the pieces of the sympy side of the dual-mode
evaluation: the ``hold`` marker that keeps exact constants such as π out
of the reach of sympy's numeric folding, the single factory for named
placeholders, and the expression-tree rewrites applied before symbolic
results are turned back into numeric code.
"""

from typing import Any

import sympy
from sympy.core.function import ArgumentIndexError


class SymbolicPipelineError(RuntimeError):
    """A formula could not be built, differentiated or compiled symbolically."""


class hold(sympy.Function):
    """
    Delay evaluation of the argument in symbolic expressions.

    ``hold(x)`` behaves like the identity, but sympy never evaluates it,
    so ``hold(pi)**2`` stays exact instead of collapsing to a float when it
    meets floating-point coefficients. Its derivative with respect to its
    argument is 1, which makes differentiation pass straight through it,
    and ``evalf`` evaluates the argument.

    You rarely need this directly; ``convert_for_system`` wraps literals
    for symbolic systems, and ``unhold`` removes the markers again.

    Examples
    --------
    >>> from sympy import pi
    >>> expr = 2 * hold(pi)
    >>> expr
    2*hold(pi)
    >>> expr.evalf()
    6.28318530717959
    """
    nargs = 1

    def fdiff(self, argindex=1):
        if argindex != 1:
            raise ArgumentIndexError(self, argindex)
        return sympy.S.One

    def _eval_evalf(self, prec):
        return self.args[0]._evalf(prec)

    def _eval_is_real(self):
        return self.args[0].is_real

    def _eval_is_positive(self):
        return self.args[0].is_positive


def placeholder(name: str) -> sympy.Symbol:
    """
    Named symbolic placeholder for a PN variable.

    All placeholders are created here so that the same name always yields
    the same sympy symbol (sympy distinguishes symbols by name *and*
    assumptions).
    """
    return sympy.Symbol(name, real=True)


def is_symbolic_value(x: Any) -> bool:
    """True if ``x`` is a sympy object rather than a plain number."""
    return isinstance(x, sympy.Basic)


def unhold(expr):
    """Replace every ``hold(x)`` in ``expr`` by ``x``."""
    expr = sympy.sympify(expr)
    return expr.replace(hold, lambda arg: arg)


def flatten_add(expr):
    """
    Flatten nested additions at the top of ``expr`` into a single sum.

    Sums built with ``evaluate=False`` (or assembled piecewise) can nest
    as ``Add(Add(a, b), c)``; term classification by power needs every
    additive term as a direct argument of one ``Add``. Non-sums are
    returned unchanged.

    Parameters
    ----------
    expr : sympy.Expr

    Returns
    -------
    sympy.Expr
        An unevaluated ``Add`` whose arguments are all non-sums, or
        ``expr`` itself when it is not a sum.
    """
    expr = sympy.sympify(expr)
    if not expr.is_Add:
        return expr

    terms = []

    def _collect(node):
        for arg in node.args:
            if arg.is_Add:
                _collect(arg)
            else:
                terms.append(arg)

    _collect(expr)
    return sympy.Add(*terms, evaluate=False)


def evaluate_constants(expr, digits: int = 17):
    """
    Replace exact irrational constants by floating-point numbers.

    π, γ_E, logarithms of integers, ζ(3) and any product of them are
    numbers to sympy but have no direct counterpart in numpy or heyoka.
    Rationals are left alone.

    Parameters
    ----------
    expr : sympy.Expr
        Expression, usually already passed through ``unhold``.
    digits : int, optional
        Significant digits of the replacement floats (default: 17)

    Returns
    -------
    sympy.Expr
    """
    expr = sympy.sympify(expr)
    constants = {}
    for node in sympy.preorder_traversal(expr):
        if node.is_number and not node.is_Rational and not node.is_Float:
            constants[node] = node.evalf(digits)
    return expr.xreplace(constants)
