"""
Formula-valued bounds for resources, dice pools and ability uses.

Bound expressions are a closed grammar: integers, attribute and level
variables, and the operators +, - and *. They are validated when content is
loaded and evaluated on every read against the character's current values.
"""

from typing import Optional
import logging
import re

from sidekick.data_models import ATTRIBUTE_SHORTHANDS, AttributeName, ValueSpec
from sidekick.errors import FormulaError

logger = logging.getLogger(__name__)


_TOKEN_PATTERN = re.compile(r"\s*(?:(\d+)|([A-Za-z_]+)|([+\-*]))")

LEVEL_VARIABLES = ("LVL", "LEVEL")


def known_variables() -> set[str]:
    """All variable names a bound expression may reference."""
    names = set(ATTRIBUTE_SHORTHANDS) | set(LEVEL_VARIABLES)
    names |= {a.value.upper() for a in AttributeName}
    return names


def build_variables(attributes: dict[str, int], level: int) -> dict[str, int]:
    """
    Build the variable map for formula evaluation.

    Args:
        attributes: Computed attribute values keyed by attribute name
        level: Character level

    Returns:
        Mapping of upper-case variable names (STR, STRENGTH, LVL, ...) to values
    """
    variables = {name: level for name in LEVEL_VARIABLES}
    for shorthand, attribute in ATTRIBUTE_SHORTHANDS.items():
        value = attributes.get(attribute.value, 0)
        variables[shorthand] = value
        variables[attribute.value.upper()] = value
    return variables


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens = []
    position = 0
    text = expression.rstrip()
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if not match:
            raise FormulaError(
                f"Unexpected character '{text[position:].strip()[:1]}' in '{expression}'"
            )
        number, name, operator = match.groups()
        if number is not None:
            tokens.append(("number", number))
        elif name is not None:
            tokens.append(("name", name.upper()))
        else:
            tokens.append(("op", operator))
        position = match.end()
    return tokens


def _split_terms(expression: str) -> list[tuple[int, list[tuple[str, str]]]]:
    """
    Split tokens into signed products: "WIL + 2 * LVL" -> [(+1, [WIL]), (+1, [2, LVL])].

    Raises:
        FormulaError: On an empty expression or misplaced operator
    """
    tokens = _tokenize(expression)
    if not tokens:
        raise FormulaError("Empty formula")

    terms: list[tuple[int, list[tuple[str, str]]]] = []
    sign = 1
    factors: list[tuple[str, str]] = []
    expect_operand = True
    for kind, text in tokens:
        if expect_operand:
            if kind == "op" and text == "-" and not factors:
                sign = -sign
                continue
            if kind == "op":
                raise FormulaError(f"Operand expected before '{text}' in '{expression}'")
            factors.append((kind, text))
            expect_operand = False
        else:
            if kind != "op":
                raise FormulaError(f"Operator expected before '{text}' in '{expression}'")
            if text == "*":
                expect_operand = True
                continue
            terms.append((sign, factors))
            sign = -1 if text == "-" else 1
            factors = []
            expect_operand = True

    if expect_operand:
        raise FormulaError(f"Formula ends with an operator: '{expression}'")
    terms.append((sign, factors))
    return terms


def validate_expression(expression: str) -> None:
    """
    Check that an expression uses only the closed grammar.

    Raises:
        FormulaError: On bad syntax or an unknown variable
    """
    allowed = known_variables()
    for _, factors in _split_terms(expression):
        for kind, text in factors:
            if kind == "name" and text not in allowed:
                raise FormulaError(f"Unknown variable '{text}' in '{expression}'")


def evaluate_expression(expression: str, variables: Optional[dict[str, int]] = None) -> int:
    """
    Evaluate a bound expression.

    Unknown variables evaluate to 0 with a logged warning; content is
    validated at load time so this only happens for hand-edited data.
    """
    variables = variables or {}
    total = 0
    for sign, factors in _split_terms(expression):
        product = 1
        for kind, text in factors:
            if kind == "number":
                product *= int(text)
            elif text in variables:
                product *= variables[text]
            else:
                logger.warning(f"Unknown variable '{text}' in '{expression}', using 0")
                product = 0
        total += sign * product
    return total


def resolve_value(spec: ValueSpec, variables: Optional[dict[str, int]] = None) -> int:
    """Resolve a fixed or formula value specification to an integer."""
    if spec.is_formula:
        return evaluate_expression(spec.expression, variables)
    return spec.value
