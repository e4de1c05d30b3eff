from __future__ import annotations

import pytest

from neurokinetic.cognitive_core import (
    DEFAULT_CIPHER,
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
from neurokinetic.rules import (
    CompoundModifier,
    Relation,
    RuleGenerator,
    SemanticClass,
    StreamRound,
    class_for_level,
    resolve,
    resolve_compound,
    resolve_contextual,
    resolve_relational,
)


def test_generator_is_deterministic_for_same_seed() -> None:
    g1 = RuleGenerator(SeededRng(2024))
    g2 = RuleGenerator(SeededRng(2024))

    seq1 = [g1.next_trial(level=ComplexityLevel.MAXIMUM_LOAD, cipher=DEFAULT_CIPHER) for _ in range(25)]
    seq2 = [g2.next_trial(level=ComplexityLevel.MAXIMUM_LOAD, cipher=DEFAULT_CIPHER) for _ in range(25)]

    assert seq1 == seq2


def test_flux_inverts_the_modifier_once() -> None:
    assert resolve(ColorState.RED, ModifierType.KEEP) is ColorState.RED
    assert resolve(ColorState.RED, ModifierType.INVERT) is ColorState.BLUE
    # Flux on an INVERT symbol cancels out; flux on KEEP flips.
    assert resolve(ColorState.RED, ModifierType.INVERT, flux_active=True) is ColorState.RED
    assert resolve(ColorState.BLUE, ModifierType.KEEP, flux_active=True) is ColorState.RED


def test_contextual_decoding_with_reference_cipher() -> None:
    semantic = DEFAULT_CIPHER.decode("ZID")
    assert semantic is Side.RIGHT
    assert resolve_contextual(semantic, ContextColor.GREEN) is Side.RIGHT
    assert resolve_contextual(semantic, ContextColor.RED) is Side.LEFT
    assert DEFAULT_CIPHER.decode("QUX") is None


def test_relational_and_compound_resolution() -> None:
    assert resolve_relational(Side.LEFT, Relation.EQUAL) is Side.LEFT
    assert resolve_relational(Side.LEFT, Relation.NOT_EQUAL) is Side.RIGHT
    assert resolve_compound(Side.RIGHT, CompoundModifier.SAME) is Side.RIGHT
    assert resolve_compound(Side.RIGHT, CompoundModifier.FLIP) is Side.LEFT


@pytest.mark.parametrize("level", list(ComplexityLevel))
def test_every_level_yields_a_resolvable_trial(level: ComplexityLevel) -> None:
    gen = RuleGenerator(SeededRng(int(level) + 11), interference_p=0.5)
    cipher = DEFAULT_CIPHER

    for _ in range(60):
        spec = gen.next_trial(level=level, cipher=cipher)
        assert spec.display_text
        assert spec.correct_side in (Side.LEFT, Side.RIGHT)

        if spec.semantic_class is SemanticClass.LITERAL:
            assert spec.display_text == spec.correct_side.value
        elif spec.semantic_class is SemanticClass.SYMBOLIC:
            assert cipher.decode(spec.display_text) is spec.correct_side
        elif spec.semantic_class is SemanticClass.CONTEXTUAL:
            assert spec.context is not None
            semantic = cipher.decode(spec.display_text)
            assert semantic is not None
            assert resolve_contextual(semantic, spec.context) is spec.correct_side
        elif spec.semantic_class is SemanticClass.RELATIONAL:
            relation, anchor = spec.display_text.split(" ")
            assert resolve_relational(Side(anchor), Relation(relation)) is spec.correct_side
        else:
            token, modifier = spec.display_text.split(" ")
            base = cipher.decode(token)
            assert base is not None
            assert resolve_compound(base, CompoundModifier(modifier)) is spec.correct_side


def test_level_to_class_ladder() -> None:
    rng = SeededRng(1)
    assert class_for_level(ComplexityLevel.BASELINE, rng) is SemanticClass.LITERAL
    assert class_for_level(ComplexityLevel.SPEED_UP, rng) is SemanticClass.SYMBOLIC
    assert class_for_level(ComplexityLevel.FLUX_INTRO, rng) is SemanticClass.CONTEXTUAL
    assert class_for_level(ComplexityLevel.JITTER_INTRO, rng) is SemanticClass.RELATIONAL
    assert class_for_level(ComplexityLevel.NOISE_INTRO, rng) is SemanticClass.COMPOUND

    seen = {class_for_level(ComplexityLevel.MAXIMUM_LOAD, rng) for _ in range(200)}
    assert seen == set(SemanticClass)


def test_cipher_dependent_classes_degrade_without_a_cipher() -> None:
    gen = RuleGenerator(SeededRng(5))

    symbolic = gen.next_trial(level=ComplexityLevel.SPEED_UP, cipher=None)
    assert symbolic.semantic_class is SemanticClass.LITERAL

    compound = gen.next_trial(level=ComplexityLevel.NOISE_INTRO, cipher=None)
    assert compound.semantic_class is SemanticClass.RELATIONAL

    contextual = gen.next_trial(level=ComplexityLevel.FLUX_INTRO, cipher=None)
    assert contextual.display_text in ("LEFT", "RIGHT")


def test_interference_probability_bounds() -> None:
    all_red = RuleGenerator(SeededRng(3), interference_p=1.0)
    never_red = RuleGenerator(SeededRng(3), interference_p=0.0)

    for _ in range(20):
        a = all_red.next_trial(level=ComplexityLevel.BASELINE, cipher=DEFAULT_CIPHER, semantic_class=SemanticClass.CONTEXTUAL)
        b = never_red.next_trial(level=ComplexityLevel.BASELINE, cipher=DEFAULT_CIPHER, semantic_class=SemanticClass.CONTEXTUAL)
        assert a.context is ContextColor.RED
        assert b.context is ContextColor.GREEN

    with pytest.raises(ValueError):
        RuleGenerator(SeededRng(3), interference_p=1.5)


def test_stream_round_uses_mapping_and_lure_shows_the_other_symbol() -> None:
    gen = RuleGenerator(SeededRng(8))
    mapping = RuleMapping(keep=SymbolShape.STAR, invert=SymbolShape.CIRCLE)

    for _ in range(20):
        r = gen.next_round(rule_mapping=mapping, chaos=ChaosFlags(lure_active=True), reference_state=ColorState.BLUE)
        assert mapping.modifier_for(r.symbol) is r.modifier
        assert r.lure_symbol is not None and r.lure_symbol is not r.symbol

    calm = gen.next_round(rule_mapping=mapping, chaos=ChaosFlags(), reference_state=ColorState.BLUE)
    assert calm.lure_symbol is None


def test_stream_round_expected_state_and_side() -> None:
    r = StreamRound(
        reference_state=ColorState.RED,
        modifier=ModifierType.KEEP,
        symbol=SymbolShape.CIRCLE,
        chaos=ChaosFlags(flux_active=True),
    )
    assert r.effective_modifier is ModifierType.INVERT
    assert r.expected_state is ColorState.BLUE
    assert r.correct_side is Side.RIGHT

    spec = r.to_trial_spec()
    assert spec.correct_side is Side.RIGHT
    assert spec.context is ContextColor.RED


def test_generate_entry_point_covers_both_protocols() -> None:
    gen = RuleGenerator(SeededRng(21))

    discrete = gen.generate(ComplexityLevel.SPEED_UP, DEFAULT_CIPHER)
    assert discrete.semantic_class is SemanticClass.SYMBOLIC

    mirror = RuleGenerator(SeededRng(21))
    mirror.generate(ComplexityLevel.SPEED_UP, DEFAULT_CIPHER)
    expected_round = mirror.next_round(
        rule_mapping=RuleMapping(),
        chaos=ChaosFlags(),
        reference_state=ColorState.RED,
    )

    stream = gen.generate(ComplexityLevel.BASELINE, None, reference_state=ColorState.RED)
    assert stream.semantic_class is SemanticClass.RELATIONAL
    assert stream.correct_side is expected_round.correct_side


def test_cipher_and_mapping_validation() -> None:
    with pytest.raises(ValueError):
        SessionCipher(left_token="ZID", right_token="ZID")
    with pytest.raises(ValueError):
        SessionCipher(left_token="", right_token="DAX")
    with pytest.raises(ValueError):
        RuleMapping(keep=SymbolShape.STAR, invert=SymbolShape.STAR)


def test_generated_cipher_avoids_previous_tokens() -> None:
    rng = SeededRng(77)
    previous = SessionCipher.generate(rng)
    for _ in range(30):
        nxt = SessionCipher.generate(rng, avoid=previous)
        assert nxt.left_token != nxt.right_token
        assert {nxt.left_token, nxt.right_token}.isdisjoint({previous.left_token, previous.right_token})
        assert len(nxt.left_token) == 3
        previous = nxt
