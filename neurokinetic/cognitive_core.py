from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Sequence, TypeVar

T = TypeVar("T")


class Side(str, Enum):
    LEFT = "LEFT"
    RIGHT = "RIGHT"

    def flipped(self) -> "Side":
        return Side.RIGHT if self is Side.LEFT else Side.LEFT


class ColorState(str, Enum):
    RED = "RED"
    BLUE = "BLUE"

    def flipped(self) -> "ColorState":
        return ColorState.BLUE if self is ColorState.RED else ColorState.RED

    @classmethod
    def for_side(cls, side: Side) -> "ColorState":
        # Left pad selects RED, right pad selects BLUE.
        return cls.RED if side is Side.LEFT else cls.BLUE


class ModifierType(str, Enum):
    KEEP = "KEEP"
    INVERT = "INVERT"

    def flipped(self) -> "ModifierType":
        return ModifierType.INVERT if self is ModifierType.KEEP else ModifierType.KEEP


class SymbolShape(str, Enum):
    STAR = "STAR"
    CIRCLE = "CIRCLE"


class ContextColor(str, Enum):
    GREEN = "GREEN"  # obey
    RED = "RED"  # invert


class ComplexityLevel(IntEnum):
    BASELINE = 0
    SPEED_UP = 1
    FLUX_INTRO = 2
    JITTER_INTRO = 3
    NOISE_INTRO = 4
    MAXIMUM_LOAD = 5

    def stepped(self, delta: int) -> "ComplexityLevel":
        value = max(int(ComplexityLevel.BASELINE), min(int(ComplexityLevel.MAXIMUM_LOAD), int(self) + delta))
        return ComplexityLevel(value)


_CONSONANTS = "BDFGKLMNPRSTVZX"
_VOWELS = "AEIOU"


@dataclass(frozen=True, slots=True)
class SessionCipher:
    """Two distinct tokens standing for LEFT and RIGHT."""

    left_token: str
    right_token: str

    def __post_init__(self) -> None:
        if not self.left_token or not self.right_token:
            raise ValueError("cipher tokens must be non-empty")
        if self.left_token == self.right_token:
            raise ValueError("cipher tokens must differ")

    def token_for(self, side: Side) -> str:
        return self.left_token if side is Side.LEFT else self.right_token

    def decode(self, token: str) -> Side | None:
        if token == self.left_token:
            return Side.LEFT
        if token == self.right_token:
            return Side.RIGHT
        return None

    @classmethod
    def generate(cls, rng: "SeededRng", *, avoid: "SessionCipher | None" = None) -> "SessionCipher":
        taken = set() if avoid is None else {avoid.left_token, avoid.right_token}
        tokens: list[str] = []
        while len(tokens) < 2:
            token = rng.choice(list(_CONSONANTS)) + rng.choice(list(_VOWELS)) + rng.choice(list(_CONSONANTS))
            if token in taken or token in tokens:
                continue
            tokens.append(token)
        return cls(left_token=tokens[0], right_token=tokens[1])


# Reference cipher of the discrete protocol: ZID points right, DAX points left.
DEFAULT_CIPHER = SessionCipher(left_token="DAX", right_token="ZID")


@dataclass(frozen=True, slots=True)
class RuleMapping:
    """Bijection between the two modifier kinds and the two rendered shapes."""

    keep: SymbolShape = SymbolShape.CIRCLE
    invert: SymbolShape = SymbolShape.STAR

    def __post_init__(self) -> None:
        if self.keep is self.invert:
            raise ValueError("rule mapping must be a bijection")

    def symbol_for(self, modifier: ModifierType) -> SymbolShape:
        return self.keep if modifier is ModifierType.KEEP else self.invert

    def modifier_for(self, symbol: SymbolShape) -> ModifierType:
        return ModifierType.KEEP if symbol is self.keep else ModifierType.INVERT

    @classmethod
    def randomize(cls, rng: "SeededRng") -> "RuleMapping":
        if rng.random() > 0.5:
            return cls(keep=SymbolShape.STAR, invert=SymbolShape.CIRCLE)
        return cls(keep=SymbolShape.CIRCLE, invert=SymbolShape.STAR)


@dataclass(frozen=True, slots=True)
class ChaosFlags:
    flux_active: bool = False
    input_inverted: bool = False
    lure_active: bool = False

    @property
    def any_active(self) -> bool:
        return self.flux_active or self.input_inverted or self.lure_active


class SeededRng:
    """Simple seeded RNG wrapper to keep deterministic streams explicit."""

    def __init__(self, seed: int) -> None:
        self._rng = random.Random(int(seed))

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def random(self) -> float:
        return self._rng.random()

    def chance(self, p: float) -> bool:
        return self._rng.random() < p


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x <= lo else hi if x >= hi else float(x)


def clamp01(x: float) -> float:
    return clamp(x, 0.0, 1.0)
