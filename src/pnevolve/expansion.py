"""
PN expansion and truncation.

Formulas are written as sums of terms at increasing powers of the
velocity parameter ``v``. Two mechanisms cut such sums at the PN order of
a system:

* ``pn_expansion`` is used while a formula is being built. It receives
  the terms as ``(power, coefficient)`` pairs and only ever adds the ones
  the PN order allows, in either representation.
* ``apply_pn_expansion`` works on a finished sympy expression (the result
  of a symbolic derivative, for instance) and drops every top-level term
  whose power of ``v`` is too high.

A term at relative power ``v**k`` is a ``k/2``-PN correction, so a PN order
``N`` keeps the powers ``k <= 2N``. ``log(v)`` factors never count towards
the power of a term.

``collect_by_power`` and the series helpers below turn expressions into
coefficient lists, which the TaylorT4/T5 approximants divide as power
series.
"""

import math
from typing import List, Sequence, Tuple

import sympy

from .config import config
from .symbolic import flatten_add
from .system import is_symbolic
from .variables import v


# ========== FORMULA-LEVEL TRUNCATION ==========
def pn_order_includes(pnsystem, power, offset=0) -> bool:
    """True if a term at ``v**power`` survives the PN order of ``pnsystem``."""
    return power + offset <= 2 * pnsystem.pn_order


def pn_expansion(pnsystem, terms: Sequence[Tuple[float, object]], offset=0):
    """
    Sum the terms of a PN series allowed by the PN order of ``pnsystem``.

    Parameters
    ----------
    pnsystem : PNSystem
    terms : sequence of (power, coefficient)
        ``coefficient`` multiplies ``v**power``. Several entries may share a
        power (e.g. non-spinning and spin-orbit parts of one order).
    offset : float, optional
        Extra power of ``v`` carried by the whole series, added to each
        power before the comparison with ``2 * pn_order`` (default: 0)

    Returns
    -------
    float or sympy.Expr
        Terms of higher power are not evaluated into the result at all.

    Examples
    --------
    >>> pnsystem = NumericPNSystem(state, pn_order=1.0)
    >>> pn_expansion(pnsystem, [(0, 1), (2, 0.5), (3, 7.0)])  # v**3 dropped
    """
    velocity = v(pnsystem)
    kept = [
        coefficient * velocity**power
        for power, coefficient in terms
        if pn_order_includes(pnsystem, power, offset)
    ]
    if is_symbolic(pnsystem):
        return sympy.Add(*kept)
    return sum(kept)


# ========== TREE-LEVEL TRUNCATION ==========
def _is_log_of(expr, var) -> bool:
    return isinstance(expr, sympy.log) and expr.args[0] == var


def v_power(term, var):
    """
    Power of ``var`` in a product.

    Parameters
    ----------
    term : sympy.Expr
        A single additive term, i.e. a product of factors.
    var : sympy.Symbol

    Returns
    -------
    sympy.Number
        Sum of the exponents of ``var`` over all factors. ``log(var)``
        (and powers of it) counts as zero.

    Raises
    ------
    ValueError
        If ``var`` appears inside anything other than a power or a log.
    """
    power = sympy.S.Zero
    for factor in sympy.Mul.make_args(sympy.sympify(term)):
        base, exponent = factor.as_base_exp()
        if base == var:
            power += exponent
        elif _is_log_of(base, var):
            continue
        elif base.has(var):
            raise ValueError(
                f"Cannot classify the power of {var} in factor {factor}"
            )
    return power


def apply_pn_expansion(expr, var, pn_order, offset=0):
    """
    Keep the top-level terms of ``expr`` allowed at ``pn_order``.

    ``expr`` is flattened first, so every additive term is classified on
    its own. A term at ``var**k`` is kept when ``k + offset <= 2*pn_order``;
    the others are dropped from the tree. With ``pn_order = inf`` the
    flattened sum is returned unchanged.

    Parameters
    ----------
    expr : sympy.Expr
    var : sympy.Symbol
        Expansion variable (the ``v`` placeholder)
    pn_order : float
    offset : float, optional
        Extra power of ``var`` to add when classifying (default: 0)
    """
    expr = flatten_add(expr)
    if pn_order == math.inf:
        return expr
    kept = [
        term for term in sympy.Add.make_args(expr)
        if float(v_power(term, var)) + offset <= 2 * pn_order
    ]
    return sympy.Add(*kept)


# ========== COEFFICIENT COLLECTION ==========
def collect_by_power(expr, var, max_power=None, max_gap=None) -> List:
    """
    Coefficients of ``var**0, var**1, ...`` in ``expr``.

    The expression is expanded into a sum of products. The ``var**0``
    coefficient is what remains after subtracting every term containing
    ``var``; the ``var**i`` coefficient comes from substituting
    ``var**i -> 1`` and every other power of ``var`` by 0, then subtracting
    the constant part again. ``log(var)`` factors are kept inside the
    coefficients.

    Parameters
    ----------
    expr : sympy.Expr
        Polynomial in ``var`` (with ``log(var)`` allowed in coefficients).
    var : sympy.Symbol
    max_power : int, optional
        Highest power searched (default: ``config.COLLECT_MAX_POWER``)
    max_gap : int, optional
        Stop after this many consecutive zero coefficients
        (default: ``config.COLLECT_MAX_GAP``)

    Returns
    -------
    list of sympy.Expr
        Coefficients indexed by power. A run of ``max_gap`` zeros that ends
        the search is dropped.

    Examples
    --------
    >>> x = sympy.Symbol('x')
    >>> collect_by_power(3 + 2*x + 5*x**3*sympy.log(x), x, 10, 2)
    [3, 2, 0, 5*log(x)]
    """
    if max_power is None:
        max_power = config.COLLECT_MAX_POWER
    if max_gap is None:
        max_gap = config.COLLECT_MAX_GAP

    log_var = sympy.Dummy(f"log_{var}")
    expr = sympy.expand(sympy.sympify(expr)).xreplace({sympy.log(var): log_var})

    var_powers = {node for node in expr.atoms(sympy.Pow) if node.base == var}
    with_var = [term for term in sympy.Add.make_args(expr) if term.has(var)]
    constant = expr - sympy.Add(*with_var)

    coefficients = [constant]
    gap = 0
    for i in range(1, max_power + 1):
        rule = {node: sympy.S.One if node.exp == i else sympy.S.Zero
                for node in var_powers}
        rule[var] = sympy.S.One if i == 1 else sympy.S.Zero
        coefficient = expr.xreplace(rule) - constant
        coefficients.append(coefficient)
        if coefficient == 0:
            gap += 1
            if gap >= max_gap:
                # Trailing run of zeros is dropped only when it ends the search
                coefficients = coefficients[:-gap]
                break
        else:
            gap = 0

    unmask = {log_var: sympy.log(var)}
    return [c.xreplace(unmask) for c in coefficients]


def series_coefficients(expr, var) -> Tuple[int, List]:
    """
    Lowest power and coefficient list of a series in ``var``.

    The series is shifted by its lowest power before collecting, so
    leading zeros (``v**10`` in the flux, say) never end the search.

    Returns
    -------
    lowest : sympy.Number
        Power of ``var`` in the first term
    coefficients : list of sympy.Expr
        ``coefficients[k]`` multiplies ``var**(lowest + k)``
    """
    expr = sympy.expand(sympy.sympify(expr))
    lowest = min(v_power(term, var) for term in sympy.Add.make_args(expr))
    shifted = sympy.expand(expr * var**(-lowest))
    return lowest, collect_by_power(shifted, var)


def truncated_series_quotient(numerator, denominator, var, n_terms: int):
    """
    Power-series quotient ``numerator/denominator`` cut after ``n_terms``.

    Parameters
    ----------
    numerator, denominator : sympy.Expr
        Series in ``var``; the denominator must not vanish at its lowest
        power.
    var : sympy.Symbol
    n_terms : int
        Number of terms of the quotient kept, counted from its lowest power

    Returns
    -------
    sympy.Expr
        ``sum(c_k * var**(p + k), k < n_terms)`` with ``p`` the difference of
        the lowest powers.

    Raises
    ------
    ValueError
        If the denominator series is empty or ``n_terms < 1``.
    """
    if n_terms < 1:
        raise ValueError(f"n_terms must be at least 1, got {n_terms}")
    p_num, a = series_coefficients(numerator, var)
    p_den, b = series_coefficients(denominator, var)
    if not b or b[0] == 0:
        raise ValueError("Denominator series vanishes at its lowest order")

    a = a + [sympy.S.Zero] * (n_terms - len(a))
    b = b + [sympy.S.Zero] * (n_terms - len(b))
    c = []
    for k in range(n_terms):
        c.append((a[k] - sum(b[j] * c[k - j] for j in range(1, k + 1))) / b[0])

    lowest = p_num - p_den
    return sympy.Add(*(c_k * var**(lowest + k) for k, c_k in enumerate(c)))


def series_terms(pn_order) -> int:
    """
    Number of relative terms a series keeps at ``pn_order``.

    Unbounded orders fall back to ``config.UNBOUNDED_SERIES_PN_ORDER``,
    since a quotient series never terminates by itself.
    """
    if pn_order == math.inf:
        pn_order = config.UNBOUNDED_SERIES_PN_ORDER
    return int(2 * pn_order) + 1
