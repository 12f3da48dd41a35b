# Copyright (c) 2025, Spaghetti Software Inc
#
# MIT License
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software and 
# associated documentation files (the "Software"), to deal in the Software without restriction, 
# including without limitation the rights to use, copy, modify, merge, publish, distribute, 
# sublicense, and/or sell copies of the Software, and to permit persons to whom the Software is 
# furnished to do so, subject to the following conditions:
# The above copyright notice and this permission notice shall be included in all copies or 
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR IMPLIED, INCLUDING 
# BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND 
# NONINFRINGEMENT. IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, 
# DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM, 
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
#
# Expression engine. An expression is a coefficient times a product of
# unit terms:
#
#   [<coefficient>*]<unit>[^<exponent>]*...*<unit>[^<exponent>]
#
# e.g. "36*km*h^-1". Evaluating an expression replaces every derived unit
# by its definition until only base units remain, then combines like terms:
# with km = 1000*m and h = 3600*s, "36*km*h^-1" evaluates to "10*m*s^-1".
#

import logging
import math
import re
from dataclasses import dataclass, field
from typing import List

from uniterrors import CycleDetectedError, ParseError, UnitsError

logger = logging.getLogger(__name__)

# ASCII digits only; no "_" separators
_INTEGER_RE = re.compile(r"[+-]?[0-9]+\Z")
_NUMBER_RE = re.compile(r"[0-9A-Za-z+\-.]+\Z")

##############################################
# 1. TERMS & EXPRESSIONS
##############################################

@dataclass(frozen=True)
class Term:
    """A single factor unit^exponent."""
    unit: str
    exponent: int = 1

    def __str__(self):
        if self.exponent == 0:
            return "1"
        if self.exponent == 1:
            return self.unit
        return f"{self.unit}^{self.exponent}"


@dataclass
class Expression:
    coefficient: float = 1.0
    terms: List[Term] = field(default_factory=list)

    def __str__(self):
        return format_expression(self)

##############################################
# 2. PARSER
##############################################

def parse_expression(text):
    """
    Split `text` on '*'. Only the first factor may be a number; it becomes
    the coefficient. Every other factor is parsed as a term, so "m*2" is
    rejected only later, when unit '2' cannot be found.
    """
    tokens = text.split("*")
    coefficient = 1.0
    first = tokens[0].strip()
    if _NUMBER_RE.match(first):
        try:
            coefficient = float(first)
            tokens = tokens[1:]
        except ValueError:
            pass
    return Expression(coefficient, [parse_term(token) for token in tokens])


def parse_term(token):
    """
    e.g. "m"     -> Term("m", 1)
         "s^-2"  -> Term("s", -2)
         " kg ^ 3 " -> Term("kg", 3)
    """
    parts = token.split("^")
    if len(parts) > 2:
        raise ParseError(f"Invalid term '{token}': more than one '^'")
    unit = parts[0].strip()
    if not unit:
        raise ParseError(f"Invalid term '{token}': missing unit name")
    exponent = 1
    if len(parts) == 2:
        digits = parts[1].strip()
        if not _INTEGER_RE.match(digits):
            raise ParseError(
                f"Invalid term '{token}': exponent '{digits}' is not an integer"
            )
        exponent = int(digits)
    return Term(unit, exponent)

##############################################
# 3. CHECKS AGAINST A REGISTRY
##############################################

def validate(expr, registry):
    """Raise UnitNotFoundError for the first term whose unit is unknown."""
    for term in expr.terms:
        registry.get(term.unit)


def refers_to_unit(expr, name):
    # direct references only; units used through other definitions don't count
    return any(term.unit == name for term in expr.terms)


def find_users(registry, name):
    """Names of the units whose formula refers directly to `name`."""
    users = []
    for unit in registry:
        if unit.name == name:
            continue
        if refers_to_unit(parse_expression(unit.formula), name):
            users.append(unit.name)
    return users

##############################################
# 4. EXPANSION & NORMALIZATION
##############################################

def expand_derived_units(expr, registry, _chain=()):
    """
    Replace every derived unit in `expr` by its (recursively expanded)
    formula. The exponent of each substituted term is multiplied by the
    exponent of the term it replaces, and the formula's coefficient is
    raised to that exponent.

    `_chain` holds the derived units currently being expanded; meeting one
    of them again means the definitions form a cycle.
    """
    coefficient = expr.coefficient
    terms = []

    for term in expr.terms:
        unit = registry.get(term.unit)
        if unit.is_base_unit:
            terms.append(term)
            continue

        if unit.name in _chain:
            start = _chain.index(unit.name)
            raise CycleDetectedError(_chain[start:] + (unit.name,))

        logger.debug("Expanding %s = %s", unit.name, unit.formula)
        sub = expand_derived_units(
            parse_expression(unit.formula), registry, _chain + (unit.name,)
        )
        terms.extend(Term(t.unit, t.exponent * term.exponent) for t in sub.terms)
        if sub.coefficient != 1.0:
            try:
                factor = sub.coefficient ** float(term.exponent)
            except (ZeroDivisionError, OverflowError) as e:
                raise UnitsError(
                    f"Cannot raise coefficient of unit '{unit.name}' "
                    f"({sub.coefficient:g}) to the power {term.exponent}: {e}"
                ) from e
            product = coefficient * factor
            if math.isinf(product) and not math.isinf(coefficient):
                raise UnitsError(
                    f"Coefficient overflow while substituting unit '{unit.name}' "
                    f"({coefficient:g} * {factor:g})"
                )
            coefficient = product

    return Expression(coefficient, terms)


def normalize(expr):
    """
    Combine terms over the same unit and drop the ones whose exponents
    cancel out. Terms come back sorted by unit name.
    """
    exponents = {}
    for term in expr.terms:
        exponents[term.unit] = exponents.get(term.unit, 0) + term.exponent
    terms = [Term(unit, exponents[unit]) for unit in sorted(exponents) if exponents[unit] != 0]
    return Expression(expr.coefficient, terms)


def evaluate(text, registry):
    """Parse, validate, expand and normalize `text`."""
    expr = parse_expression(text)
    validate(expr, registry)
    return normalize(expand_derived_units(expr, registry))

##############################################
# 5. PRINTING
##############################################

def format_expression(expr):
    """
    e.g. Expression(1.0, [m, s^-1])        -> "m*s^-1"
         Expression(2e6, [m^2])            -> "2000000.000000*m^2"
         Expression(5.0, [])               -> "1"
    """
    if not expr.terms:
        return "1"
    parts = [str(term) for term in expr.terms]
    if expr.coefficient != 1:
        parts.insert(0, f"{expr.coefficient:f}")
    return "*".join(parts)
