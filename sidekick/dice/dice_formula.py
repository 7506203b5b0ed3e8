"""
Dice formula evaluator.

Parses and evaluates dice notation such as "2d6+5", "1d20!a2+STR" or
"(LEVELd6+3)*2" into a RollResult with a per-die breakdown.

Supported notation:
- NdM: roll N dice of size M (N defaults to 1, may be a variable: STRd6)
- d44 / d66 / d88: double-digit dice (tens and ones), never crit or explode
- !  : the primary die explodes on its maximum face
- !! : every die showing its maximum face explodes, exploded dice included
- v  : vicious, one extra die of the same size on a critical
- aN / dN : advantage / disadvantage, roll N extra dice and drop them
- + - * and parentheses, integer constants, variables (STR, DEX, INT,
  WIL, LEVEL, LVL, ...)

Postfixes must appear in that order: exploding, then vicious, then
advantage or disadvantage.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union
import logging

from sidekick.dice.dice_roller import DiceRoller, RandomSource
from sidekick.errors import DiceFormulaError

logger = logging.getLogger(__name__)


# Double-digit die sizes and the component die they are built from
DOUBLE_DIGIT_SIZES: dict[int, int] = {44: 4, 66: 6, 88: 8}

MAX_DICE = 1000
MIN_DIE_SIZE = 1
MAX_DIE_SIZE = 1000
MAX_EXPLOSIONS = 100

OPERATORS = "+-*"


# =============================================================================
# RESULT STRUCTURES
# =============================================================================


@dataclass
class DieRoll:
    """A single rolled die."""
    value: int
    size: int
    kept: bool = True
    exploded_from_previous: bool = False    # rolled because the previous die exploded
    triggered_explosion: bool = False       # this die showed max and exploded
    vicious: bool = False                   # bonus die from the vicious postfix

    def __str__(self) -> str:
        text = str(self.value)
        if self.triggered_explosion:
            text += "!"
        if self.vicious:
            text += "v"
        if not self.kept:
            text = f"~{text}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "size": self.size,
            "kept": self.kept,
            "explodedFromPrevious": self.exploded_from_previous,
            "triggeredExplosion": self.triggered_explosion,
            "vicious": self.vicious,
        }


@dataclass
class DieGroupResult:
    """All dice rolled for one NdM term of a formula."""
    notation: str
    dice_size: int
    count: int
    rolls: list[DieRoll] = field(default_factory=list)
    is_double_digit: bool = False
    is_primary: bool = False

    @property
    def subtotal(self) -> int:
        return sum(r.value for r in self.rolls if r.kept)

    @property
    def kept_rolls(self) -> list[DieRoll]:
        return [r for r in self.rolls if r.kept]

    def __str__(self) -> str:
        return f"{self.notation} [{', '.join(str(r) for r in self.rolls)}]"

    def to_dict(self) -> dict[str, Any]:
        return {
            "notation": self.notation,
            "diceSize": self.dice_size,
            "count": self.count,
            "rolls": [r.to_dict() for r in self.rolls],
            "subtotal": self.subtotal,
            "isDoubleDigit": self.is_double_digit,
            "isPrimary": self.is_primary,
        }


@dataclass
class RollResult:
    """Result of evaluating a dice formula."""
    formula: str
    total: int
    groups: list[DieGroupResult] = field(default_factory=list)
    is_fumble: bool = False
    num_criticals: int = 0
    is_critical: bool = False
    missing_variables: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    breakdown: str = ""

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    @property
    def rolls(self) -> list[int]:
        """Values of all kept dice, in roll order."""
        return [r.value for g in self.groups for r in g.rolls if r.kept]

    def __str__(self) -> str:
        return self.breakdown

    def to_dict(self) -> dict[str, Any]:
        return {
            "formula": self.formula,
            "total": self.total,
            "groups": [g.to_dict() for g in self.groups],
            "isFumble": self.is_fumble,
            "numCriticals": self.num_criticals,
            "isCritical": self.is_critical,
            "missingVariables": list(self.missing_variables),
            "warnings": list(self.warnings),
            "breakdown": self.breakdown,
        }


# =============================================================================
# TOKENS AND SYNTAX TREE
# =============================================================================


@dataclass
class _Token:
    kind: str                       # number, ident, dice, op, lparen, rparen, end
    text: str
    position: int
    value: int = 0
    spec: Optional["_DiceSpec"] = None


@dataclass
class _DiceSpec:
    text: str
    count: Union[int, str, None]    # None means one die; str is a variable name
    size: int
    explode: str = ""               # "", "!" or "!!"
    vicious: bool = False
    keep_mode: str = ""             # "", "a" (advantage) or "d" (disadvantage)
    keep_extra: int = 0
    position: int = 0


@dataclass
class _Number:
    value: int


@dataclass
class _Variable:
    name: str


@dataclass
class _Dice:
    spec: _DiceSpec


@dataclass
class _Negate:
    operand: Any


@dataclass
class _Group:
    inner: Any


@dataclass
class _BinaryOp:
    op: str
    left: Any
    right: Any


class _Scanner:
    """Turns a formula string into tokens."""

    def __init__(self, formula: str):
        self.formula = formula
        self.pos = 0

    def _peek(self, offset: int = 0) -> str:
        index = self.pos + offset
        return self.formula[index] if index < len(self.formula) else ""

    def tokens(self) -> list[_Token]:
        result = []
        while True:
            token = self._next()
            result.append(token)
            if token.kind == "end":
                return result

    def _next(self) -> _Token:
        while self._peek().isspace():
            self.pos += 1

        start = self.pos
        char = self._peek()
        if not char:
            return _Token("end", "", start)

        if char in OPERATORS:
            self.pos += 1
            return _Token("op", char, start)
        if char == "(":
            self.pos += 1
            return _Token("lparen", char, start)
        if char == ")":
            self.pos += 1
            return _Token("rparen", char, start)

        if char.isdigit():
            number = self._read_digits()
            if self._peek().lower() == "d" and self._peek(1).isdigit():
                self.pos += 1
                return self._read_dice(start, int(number))
            return _Token("number", number, start, value=int(number))

        if char.isalpha() or char == "_":
            word = self._read_word()
            if word.lower() == "d":
                if not self._peek().isdigit():
                    raise DiceFormulaError("Die size expected", word, start)
                return self._read_dice(start, None)
            if len(word) > 1 and word[-1] in "dD" and self._peek().isdigit():
                return self._read_dice(start, word[:-1].upper())
            return _Token("ident", word.upper(), start)

        raise DiceFormulaError("Unexpected character", char, start)

    def _read_digits(self) -> str:
        start = self.pos
        while self._peek().isdigit():
            self.pos += 1
        return self.formula[start:self.pos]

    def _read_word(self) -> str:
        start = self.pos
        while self._peek().isalpha() or self._peek() == "_":
            self.pos += 1
        return self.formula[start:self.pos]

    def _read_dice(self, start: int, count: Union[int, str, None]) -> _Token:
        size = int(self._read_digits())
        if not MIN_DIE_SIZE <= size <= MAX_DIE_SIZE:
            raise DiceFormulaError("Invalid die size", self.formula[start:self.pos], start)
        spec = _DiceSpec(text="", count=count, size=size, position=start)

        if self.formula.startswith("!!", self.pos):
            spec.explode = "!!"
            self.pos += 2
        elif self._peek() == "!":
            spec.explode = "!"
            self.pos += 1

        if self._peek().lower() == "v":
            spec.vicious = True
            self.pos += 1

        if self._peek().lower() in ("a", "d"):
            spec.keep_mode = self._peek().lower()
            self.pos += 1
            digits = self._read_digits()
            spec.keep_extra = int(digits) if digits else 1

        trailing = self._peek()
        if trailing in ("!", "v", "V") or (trailing and trailing in "aAdD" and spec.keep_mode):
            raise DiceFormulaError(
                "Postfix out of order: use exploding (!, !!), then vicious (v), "
                "then advantage/disadvantage (a, d)",
                trailing,
                self.pos,
            )
        if trailing.isalpha() or trailing == "_" or trailing.isdigit():
            raise DiceFormulaError("Unexpected token after dice", trailing, self.pos)

        spec.text = self.formula[start:self.pos]
        return _Token("dice", spec.text, start, spec=spec)


class _Parser:
    """Recursive-descent parser over scanner tokens."""

    def __init__(self, tokens: list[_Token]):
        self.tokens = tokens
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _advance(self) -> _Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def parse(self) -> Any:
        if self.current.kind == "end":
            raise DiceFormulaError("Empty formula")
        node = self._expression()
        if self.current.kind != "end":
            raise DiceFormulaError("Unexpected token", self.current.text, self.current.position)
        return node

    def _expression(self) -> Any:
        node = self._term()
        while self.current.kind == "op" and self.current.text in "+-":
            op = self._advance().text
            node = _BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Any:
        node = self._unary()
        while self.current.kind == "op" and self.current.text == "*":
            self._advance()
            node = _BinaryOp("*", node, self._unary())
        return node

    def _unary(self) -> Any:
        if self.current.kind == "op" and self.current.text == "-":
            self._advance()
            return _Negate(self._unary())
        return self._primary()

    def _primary(self) -> Any:
        token = self.current
        if token.kind == "number":
            self._advance()
            return _Number(token.value)
        if token.kind == "ident":
            self._advance()
            return _Variable(token.text)
        if token.kind == "dice":
            self._advance()
            return _Dice(token.spec)
        if token.kind == "lparen":
            self._advance()
            inner = self._expression()
            if self.current.kind != "rparen":
                raise DiceFormulaError(
                    "Missing closing parenthesis", self.current.text, self.current.position
                )
            self._advance()
            return _Group(inner)
        if token.kind == "end":
            raise DiceFormulaError("Unexpected end of formula", "", token.position)
        raise DiceFormulaError("Unexpected token", token.text, token.position)


def parse_formula(formula: str) -> Any:
    """Parse a formula into a syntax tree, raising DiceFormulaError if malformed."""
    return _Parser(_Scanner(formula).tokens()).parse()


def validate_formula(formula: str) -> None:
    """Check that a formula parses; used when loading content."""
    parse_formula(formula)


# =============================================================================
# EVALUATOR
# =============================================================================


class _Evaluation:
    """State for a single evaluate() call."""

    def __init__(
        self,
        random_source: RandomSource,
        variables: dict[str, int],
        allow_criticals: bool,
        allow_fumbles: bool,
    ):
        self.random_source = random_source
        self.variables = variables
        self.allow_criticals = allow_criticals
        self.allow_fumbles = allow_fumbles
        self.groups: list[DieGroupResult] = []
        self.missing: list[str] = []
        self.num_criticals = 0
        self.is_fumble = False
        self.is_critical = False

    def lookup(self, name: str) -> int:
        if name in self.variables:
            return self.variables[name]
        if name not in self.missing:
            self.missing.append(name)
        return 0

    def visit(self, node: Any) -> tuple[int, str]:
        if isinstance(node, _Number):
            return node.value, str(node.value)
        if isinstance(node, _Variable):
            value = self.lookup(node.name)
            return value, f"{node.name}({value})"
        if isinstance(node, _Group):
            value, text = self.visit(node.inner)
            return value, f"({text})"
        if isinstance(node, _Negate):
            value, text = self.visit(node.operand)
            return -value, f"-{text}"
        if isinstance(node, _BinaryOp):
            left, left_text = self.visit(node.left)
            right, right_text = self.visit(node.right)
            if node.op == "+":
                value = left + right
            elif node.op == "-":
                value = left - right
            else:
                value = left * right
            return value, f"{left_text} {node.op} {right_text}"
        if isinstance(node, _Dice):
            group = self.roll_group(node.spec)
            return group.subtotal, str(group)
        raise TypeError(f"Unknown formula node: {node!r}")

    def _roll_one(self, size: int) -> int:
        component = DOUBLE_DIGIT_SIZES.get(size)
        if component:
            return self.random_source(component) * 10 + self.random_source(component)
        return self.random_source(size)

    def roll_group(self, spec: _DiceSpec) -> DieGroupResult:
        if not MIN_DIE_SIZE <= spec.size <= MAX_DIE_SIZE:
            raise DiceFormulaError("Invalid die size", spec.text, spec.position)

        if spec.count is None:
            count = 1
        elif isinstance(spec.count, str):
            count = max(0, self.lookup(spec.count))
        else:
            count = spec.count
        extra = spec.keep_extra if spec.keep_mode else 0
        if count + extra > MAX_DICE:
            raise DiceFormulaError("Too many dice", spec.text, spec.position)

        is_double_digit = spec.size in DOUBLE_DIGIT_SIZES
        group = DieGroupResult(
            notation=spec.text,
            dice_size=spec.size,
            count=count,
            is_double_digit=is_double_digit,
            is_primary=not self.groups,
        )
        self.groups.append(group)
        if count == 0:
            return group

        rolled = [DieRoll(self._roll_one(spec.size), spec.size) for _ in range(count + extra)]
        if extra:
            # Keep the best `count` dice; ties favour the earlier die
            order = sorted(
                range(len(rolled)),
                key=lambda i: (-rolled[i].value if spec.keep_mode == "a" else rolled[i].value, i),
            )
            kept = set(order[:count])
            for index, roll in enumerate(rolled):
                roll.kept = index in kept

        can_crit = not is_double_digit and spec.size > 1 and self.allow_criticals
        kept_rolls = [r for r in rolled if r.kept]

        if can_crit:
            if spec.explode == "!!":
                exploding = kept_rolls
            elif spec.explode == "!":
                exploding = kept_rolls[:1]
            else:
                exploding = []
        else:
            exploding = []

        exploding_ids = {id(r) for r in exploding}
        for roll in rolled:
            group.rolls.append(roll)
            if id(roll) in exploding_ids:
                group.rolls.extend(self._explode(roll, spec.size))

        group_crit = can_crit and any(r.value == spec.size for r in kept_rolls)
        if spec.vicious and group_crit:
            group.rolls.append(
                DieRoll(self.random_source(spec.size), spec.size, vicious=True)
            )

        if group.is_primary:
            self.is_critical = group_crit
            first = kept_rolls[0]
            if (
                self.allow_fumbles
                and not is_double_digit
                and spec.size > 1
                and first.value == 1
            ):
                self.is_fumble = True

        return group

    def _explode(self, roll: DieRoll, size: int) -> list[DieRoll]:
        chain = []
        current = roll
        while current.value == size and len(chain) < MAX_EXPLOSIONS:
            current.triggered_explosion = True
            self.num_criticals += 1
            current = DieRoll(self.random_source(size), size, exploded_from_previous=True)
            chain.append(current)
        return chain


class DiceFormulaEvaluator:
    """
    Evaluates dice formulas against an injected random source.

    Usage:
        evaluator = DiceFormulaEvaluator(DiceRoller(seed=42))
        result = evaluator.evaluate("1d20!+STR", variables={"STR": 3})
    """

    def __init__(self, random_source: Optional[RandomSource] = None):
        self.random_source = random_source or DiceRoller()

    def evaluate(
        self,
        formula: str,
        allow_criticals: bool = True,
        allow_fumbles: bool = False,
        variables: Optional[dict[str, int]] = None,
    ) -> RollResult:
        """
        Evaluate a dice formula.

        Args:
            formula: Dice notation string
            allow_criticals: Primary die explodes on max, crits are reported
            allow_fumbles: Report a fumble when the primary die shows 1
            variables: Values for variable tokens (case-insensitive)

        Returns:
            RollResult with total, breakdown and crit/fumble flags

        Raises:
            DiceFormulaError: If the formula is malformed
        """
        tree = parse_formula(formula)
        normalized = {k.upper(): v for k, v in (variables or {}).items()}
        state = _Evaluation(self.random_source, normalized, allow_criticals, allow_fumbles)
        total, text = state.visit(tree)

        warnings = [f"Unknown variable '{name}' treated as 0" for name in state.missing]
        for warning in warnings:
            logger.warning(f"{warning} in formula '{formula}'")

        result = RollResult(
            formula=formula,
            total=total,
            groups=state.groups,
            is_fumble=state.is_fumble,
            num_criticals=state.num_criticals,
            is_critical=state.is_critical or state.num_criticals > 0,
            missing_variables=state.missing,
            warnings=warnings,
            breakdown=f"{text} = {total}",
        )
        logger.debug(f"Rolled {result.breakdown}")
        return result


def evaluate(
    formula: str,
    allow_criticals: bool = True,
    allow_fumbles: bool = False,
    variables: Optional[dict[str, int]] = None,
    random_source: Optional[RandomSource] = None,
) -> RollResult:
    """Evaluate a formula with a throwaway evaluator."""
    return DiceFormulaEvaluator(random_source).evaluate(
        formula,
        allow_criticals=allow_criticals,
        allow_fumbles=allow_fumbles,
        variables=variables,
    )
