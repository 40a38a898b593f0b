"""
Question type registry for TentaGen Export
Single source of truth for what each question type means; every encoder
reads its branch from here instead of switching on type ids.
"""
from typing import Dict, List, Optional, Iterable

from models import (
    QuestionTypeDefinition, QuestionTier, QuestionCategory,
    QtiInteraction, JsonShape, AnswerLayout
)

def _define(type_id: str, tier: QuestionTier, target_schema_type: str,
            qti_interaction: QtiInteraction, category: QuestionCategory,
            has_options: bool, has_correct_answer: bool, supports_rubric: bool,
            json_shape: JsonShape, answer_layout: AnswerLayout) -> QuestionTypeDefinition:
    return QuestionTypeDefinition(
        id=type_id,
        tier=tier,
        target_schema_type=target_schema_type,
        qti_interaction=qti_interaction,
        default_enabled=tier != QuestionTier.SPECIALIZED,
        can_disable=tier != QuestionTier.CORE,
        category=category,
        has_options=has_options,
        has_correct_answer=has_correct_answer,
        supports_rubric=supports_rubric,
        json_shape=json_shape,
        answer_layout=answer_layout,
    )

# Downstream schema types
MCQ_SCHEMA = "mcq"
SHORT_TEXT_SCHEMA = "plaintext"
LONG_TEXT_SCHEMA = "longtextV2"

_CORE = QuestionTier.CORE
_EXT = QuestionTier.EXTENDED
_SPEC = QuestionTier.SPECIALIZED

# =============================================================================
# Registry
# =============================================================================

QUESTION_TYPES: Dict[str, QuestionTypeDefinition] = {
    definition.id: definition for definition in [
        # Core tier (always on)
        _define("mcq", _CORE, MCQ_SCHEMA, QtiInteraction.CHOICE, QuestionCategory.CHOICE,
                True, True, False, JsonShape.CHOICE, AnswerLayout.CHOICE),
        _define("true_false", _CORE, MCQ_SCHEMA, QtiInteraction.CHOICE, QuestionCategory.CHOICE,
                True, True, False, JsonShape.CHOICE, AnswerLayout.CHOICE),
        _define("longtextV2", _CORE, LONG_TEXT_SCHEMA, QtiInteraction.EXTENDED_TEXT, QuestionCategory.TEXT,
                False, False, True, JsonShape.LONG_TEXT, AnswerLayout.ESSAY),
        _define("short_answer", _CORE, SHORT_TEXT_SCHEMA, QtiInteraction.EXTENDED_TEXT, QuestionCategory.TEXT,
                False, False, True, JsonShape.SHORT_TEXT, AnswerLayout.ESSAY),
        _define("fill_blank", _CORE, LONG_TEXT_SCHEMA, QtiInteraction.TEXT_ENTRY, QuestionCategory.CLOZE,
                False, True, False, JsonShape.LONG_TEXT, AnswerLayout.TEXT),

        # Extended tier (on by default)
        _define("multiple_response", _EXT, MCQ_SCHEMA, QtiInteraction.CHOICE, QuestionCategory.CHOICE,
                True, True, False, JsonShape.MULTIPLE_RESPONSE, AnswerLayout.CHOICE),
        _define("matching", _EXT, LONG_TEXT_SCHEMA, QtiInteraction.MATCH, QuestionCategory.INTERACTIVE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.PAIRS),
        _define("ordering", _EXT, LONG_TEXT_SCHEMA, QtiInteraction.ORDER, QuestionCategory.INTERACTIVE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.SEQUENCE),

        # Specialized tier (opt-in)
        _define("choicematrix", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.MATCH, QuestionCategory.INTERACTIVE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.MATRIX),
        _define("clozetext", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.TEXT_ENTRY, QuestionCategory.CLOZE,
                False, True, False, JsonShape.LONG_TEXT, AnswerLayout.TEXT),
        _define("clozedropdown", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.INLINE_CHOICE, QuestionCategory.CLOZE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.DROPDOWN),
        _define("orderlist", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.ORDER, QuestionCategory.INTERACTIVE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.SEQUENCE),
        _define("tokenhighlight", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.HOTTEXT, QuestionCategory.INTERACTIVE,
                False, True, False, JsonShape.LONG_TEXT, AnswerLayout.TEXT),
        _define("clozeassociation", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.GAP_MATCH, QuestionCategory.CLOZE,
                True, True, False, JsonShape.LONG_TEXT, AnswerLayout.PAIRS),
        _define("imageclozeassociationV2", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.GRAPHIC_GAP_MATCH,
                QuestionCategory.INTERACTIVE, True, True, False, JsonShape.LONG_TEXT, AnswerLayout.PAIRS),
        _define("plaintext", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.EXTENDED_TEXT, QuestionCategory.TEXT,
                False, False, True, JsonShape.LONG_TEXT, AnswerLayout.ESSAY),
        _define("formulaessayV2", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.EXTENDED_TEXT, QuestionCategory.SCIENTIFIC,
                False, False, True, JsonShape.LONG_TEXT, AnswerLayout.ESSAY),
        _define("chemistryessayV2", _SPEC, LONG_TEXT_SCHEMA, QtiInteraction.EXTENDED_TEXT, QuestionCategory.SCIENTIFIC,
                False, False, True, JsonShape.LONG_TEXT, AnswerLayout.ESSAY),
    ]
}

# Unknown and legacy ids export as essays
FALLBACK_TYPE_ID = "longtextV2"

# Kept only so stored questions of these types still load
LEGACY_TYPE_IDS = ("hotspot", "rating_scale")

# =============================================================================
# Lookup Helpers
# =============================================================================

def lookup(type_id: Optional[str]) -> QuestionTypeDefinition:
    """Get the definition for a type id, falling back to the essay type"""
    return QUESTION_TYPES.get(type_id or "", QUESTION_TYPES[FALLBACK_TYPE_ID])

def is_valid_question_type(type_id: str) -> bool:
    """Check if a type id exists in the registry"""
    return type_id in QUESTION_TYPES

def types_by_tier(tier) -> List[QuestionTypeDefinition]:
    """Get all types of a tier in registry order"""
    tier = QuestionTier(tier)
    return [t for t in QUESTION_TYPES.values() if t.tier == tier]

def core_type_ids() -> List[str]:
    """Type ids that are always enabled and cannot be disabled"""
    return [t.id for t in QUESTION_TYPES.values() if t.tier == QuestionTier.CORE]

def default_enabled_type_ids() -> List[str]:
    """Type ids enabled for a user with no saved preference"""
    return [t.id for t in QUESTION_TYPES.values() if t.default_enabled]

def normalize_enabled_types(enabled_types: Optional[Iterable[str]]) -> List[str]:
    """Validate a saved preference: core types are forced on, unknown ids dropped"""
    enabled = list(enabled_types or [])
    if not enabled:
        return default_enabled_type_ids()

    normalized = []
    for type_id in core_type_ids() + enabled:
        if type_id in QUESTION_TYPES and type_id not in normalized:
            normalized.append(type_id)
    return normalized

def specialized_by_category() -> Dict[str, List[QuestionTypeDefinition]]:
    """Specialized types grouped by category, for the settings UI"""
    grouped: Dict[str, List[QuestionTypeDefinition]] = {}
    for definition in types_by_tier(QuestionTier.SPECIALIZED):
        grouped.setdefault(definition.category.value, []).append(definition)
    return grouped
