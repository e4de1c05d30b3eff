"""Stimulus generation for both protocols.

Each semantic class has its own small builder sharing one signature; the
level-to-class lookup is kept apart from the builders so policy and mechanism
can change independently.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .cognitive_core import (
    ChaosFlags,
    ColorState,
    ComplexityLevel,
    ContextColor,
    ModifierType,
    RuleMapping,
    SeededRng,
    SessionCipher,
    Side,
    SymbolShape,
)


class SemanticClass(str, Enum):
    LITERAL = "literal"
    SYMBOLIC = "symbolic"
    CONTEXTUAL = "contextual"
    RELATIONAL = "relational"
    COMPOUND = "compound"


class Relation(str, Enum):
    EQUAL = "="
    NOT_EQUAL = "≠"


class CompoundModifier(str, Enum):
    SAME = "SAME"
    FLIP = "FLIP"


@dataclass(frozen=True, slots=True)
class TrialSpec:
    display_text: str
    semantic_class: SemanticClass
    correct_side: Side
    context: ContextColor | None = None


@dataclass(frozen=True, slots=True)
class StreamRound:
    """One round of the continuous protocol.

    ``expected_state`` already has flux applied; the next round's reference
    state is derived from it, never from the raw modifier.
    """

    reference_state: ColorState
    modifier: ModifierType
    symbol: SymbolShape
    chaos: ChaosFlags
    lure_symbol: SymbolShape | None = None

    @property
    def effective_modifier(self) -> ModifierType:
        return effective_modifier(self.modifier, flux_active=self.chaos.flux_active)

    @property
    def expected_state(self) -> ColorState:
        return resolve(self.reference_state, self.modifier, flux_active=self.chaos.flux_active)

    @property
    def correct_side(self) -> Side:
        return Side.LEFT if self.expected_state is ColorState.RED else Side.RIGHT

    def to_trial_spec(self) -> TrialSpec:
        return TrialSpec(
            display_text=self.symbol.value,
            semantic_class=SemanticClass.RELATIONAL,
            correct_side=self.correct_side,
            context=ContextColor.RED if self.chaos.flux_active else ContextColor.GREEN,
        )


def effective_modifier(modifier: ModifierType, *, flux_active: bool) -> ModifierType:
    return modifier.flipped() if flux_active else modifier


def resolve(current: ColorState, modifier: ModifierType, *, flux_active: bool = False) -> ColorState:
    """Expected next state for a reference state and a (possibly fluxed) modifier."""

    if effective_modifier(modifier, flux_active=flux_active) is ModifierType.INVERT:
        return current.flipped()
    return current


def resolve_contextual(semantic_side: Side, context: ContextColor) -> Side:
    return semantic_side if context is ContextColor.GREEN else semantic_side.flipped()


def resolve_relational(anchor: Side, relation: Relation) -> Side:
    return anchor if relation is Relation.EQUAL else anchor.flipped()


def resolve_compound(base: Side, modifier: CompoundModifier) -> Side:
    return base if modifier is CompoundModifier.SAME else base.flipped()


_Builder = Callable[[SeededRng, SessionCipher | None, float], TrialSpec]


def _pick_side(rng: SeededRng) -> Side:
    return Side.RIGHT if rng.random() > 0.5 else Side.LEFT


def _build_literal(rng: SeededRng, cipher: SessionCipher | None, interference_p: float) -> TrialSpec:
    target = _pick_side(rng)
    return TrialSpec(display_text=target.value, semantic_class=SemanticClass.LITERAL, correct_side=target)


def _build_symbolic(rng: SeededRng, cipher: SessionCipher | None, interference_p: float) -> TrialSpec:
    if cipher is None:
        return _build_literal(rng, cipher, interference_p)
    target = _pick_side(rng)
    return TrialSpec(
        display_text=cipher.token_for(target),
        semantic_class=SemanticClass.SYMBOLIC,
        correct_side=target,
    )


def _build_contextual(rng: SeededRng, cipher: SessionCipher | None, interference_p: float) -> TrialSpec:
    semantic = _pick_side(rng)
    context = ContextColor.RED if rng.random() < interference_p else ContextColor.GREEN
    text = semantic.value if cipher is None else cipher.token_for(semantic)
    return TrialSpec(
        display_text=text,
        semantic_class=SemanticClass.CONTEXTUAL,
        correct_side=resolve_contextual(semantic, context),
        context=context,
    )


def _build_relational(rng: SeededRng, cipher: SessionCipher | None, interference_p: float) -> TrialSpec:
    anchor = _pick_side(rng)
    relation = Relation.EQUAL if rng.random() > 0.5 else Relation.NOT_EQUAL
    return TrialSpec(
        display_text=f"{relation.value} {anchor.value}",
        semantic_class=SemanticClass.RELATIONAL,
        correct_side=resolve_relational(anchor, relation),
    )


def _build_compound(rng: SeededRng, cipher: SessionCipher | None, interference_p: float) -> TrialSpec:
    if cipher is None:
        return _build_relational(rng, cipher, interference_p)
    base = _pick_side(rng)
    modifier = CompoundModifier.SAME if rng.random() > 0.5 else CompoundModifier.FLIP
    return TrialSpec(
        display_text=f"{cipher.token_for(base)} {modifier.value}",
        semantic_class=SemanticClass.COMPOUND,
        correct_side=resolve_compound(base, modifier),
    )


BUILDERS: dict[SemanticClass, _Builder] = {
    SemanticClass.LITERAL: _build_literal,
    SemanticClass.SYMBOLIC: _build_symbolic,
    SemanticClass.CONTEXTUAL: _build_contextual,
    SemanticClass.RELATIONAL: _build_relational,
    SemanticClass.COMPOUND: _build_compound,
}

_CLASS_BY_LEVEL: dict[ComplexityLevel, SemanticClass] = {
    ComplexityLevel.BASELINE: SemanticClass.LITERAL,
    ComplexityLevel.SPEED_UP: SemanticClass.SYMBOLIC,
    ComplexityLevel.FLUX_INTRO: SemanticClass.CONTEXTUAL,
    ComplexityLevel.JITTER_INTRO: SemanticClass.RELATIONAL,
    ComplexityLevel.NOISE_INTRO: SemanticClass.COMPOUND,
}


def class_for_level(level: ComplexityLevel, rng: SeededRng) -> SemanticClass:
    fixed = _CLASS_BY_LEVEL.get(level)
    if fixed is not None:
        return fixed
    return rng.choice(list(SemanticClass))


class RuleGenerator:
    def __init__(self, rng: SeededRng, *, interference_p: float = 0.3) -> None:
        if not (0.0 <= interference_p <= 1.0):
            raise ValueError("interference_p must be in [0.0, 1.0]")
        self._rng = rng
        self._interference_p = float(interference_p)

    def next_trial(
        self,
        *,
        level: ComplexityLevel,
        cipher: SessionCipher | None,
        semantic_class: SemanticClass | None = None,
    ) -> TrialSpec:
        kind = semantic_class if semantic_class is not None else class_for_level(level, self._rng)
        return BUILDERS[kind](self._rng, cipher, self._interference_p)

    def next_round(
        self,
        *,
        rule_mapping: RuleMapping,
        chaos: ChaosFlags,
        reference_state: ColorState,
    ) -> StreamRound:
        modifier = ModifierType.KEEP if self._rng.random() > 0.5 else ModifierType.INVERT
        symbol = rule_mapping.symbol_for(modifier)
        lure = rule_mapping.symbol_for(modifier.flipped()) if chaos.lure_active else None
        return StreamRound(
            reference_state=reference_state,
            modifier=modifier,
            symbol=symbol,
            chaos=chaos,
            lure_symbol=lure,
        )

    def generate(
        self,
        level: ComplexityLevel,
        cipher: SessionCipher | None,
        rule_mapping: RuleMapping | None = None,
        chaos: ChaosFlags | None = None,
        reference_state: ColorState | None = None,
    ) -> TrialSpec:
        """Single entry point: a stream round when a reference state is given."""

        if reference_state is None:
            return self.next_trial(level=level, cipher=cipher)
        round_ = self.next_round(
            rule_mapping=rule_mapping if rule_mapping is not None else RuleMapping(),
            chaos=chaos if chaos is not None else ChaosFlags(),
            reference_state=reference_state,
        )
        return round_.to_trial_spec()
