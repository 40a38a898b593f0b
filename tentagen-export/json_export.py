"""
JSON dialect encoder
Builds the two exam-platform JSON shapes: the "legacy" document with label
objects and the "current" (utgaende) flat item array with numeric ids.
"""
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from config import settings
from export_utils import find_option_index, question_title, resolve_score, slugify, export_date
from models import ExportMetadata, Question, JsonShape
from question_types import lookup
from tags import build_question_tags, build_labels

logger = logging.getLogger(__name__)

LEGACY_DIALECT = "legacy"
CURRENT_DIALECT = "utgaende"
DIALECT_ALIASES = {
    "current": CURRENT_DIALECT,
    "json": LEGACY_DIALECT,
}

# Id offsets expected by the downstream system for the current dialect
BASE_ID_START = 3500001
ITEM_ID_START = 700001
QUESTION_ID_START = 6000001

SHORT_TEXT_MAX_WORDS = 200
LONG_TEXT_MAX_WORDS = 10000
FORMATTING_OPTIONS = ["bold", "italic", "underline"]

def normalize_dialect(dialect: Optional[str]) -> str:
    """Map aliases onto the two dialect names; unknown values raise ValueError"""
    name = (dialect or LEGACY_DIALECT).strip().lower()
    name = DIALECT_ALIASES.get(name, name)
    if name not in (LEGACY_DIALECT, CURRENT_DIALECT):
        raise ValueError(f"Unknown JSON dialect: {dialect}")
    return name

# =============================================================================
# Question Data
# =============================================================================

def _add_choice_block(data: Dict[str, Any], question: Question, shape: JsonShape,
                      type_id: str, score) -> None:
    options = question.options or []
    if not options:
        return

    # Options are re-indexed: the text becomes the label, the position the value
    data["options"] = [
        {"label": option.value, "value": str(i)} for i, option in enumerate(options)
    ]

    valid_values: List[str] = []
    for reference in question.answers:
        index = find_option_index(options, reference)
        if index is None:
            logger.warning(f"Dropping correct answer {reference!r}: no such option in {type_id} question")
            continue
        if str(index) not in valid_values:
            valid_values.append(str(index))

    multiple = shape == JsonShape.MULTIPLE_RESPONSE
    data["shuffle_options"] = type_id != "true_false"
    if multiple:
        data["multiple_responses"] = True

    validation: Dict[str, Any] = {
        "scoring_type": "partialMatchV2" if multiple else "exactMatch",
        "valid_response": {
            "score": score,
            "value": valid_values,
        },
    }
    if multiple:
        validation["penalty"] = 0
    data["validation"] = validation

def build_question_data(question: Question, metadata: ExportMetadata) -> Dict[str, Any]:
    """Question-schema data object for one question"""
    definition = lookup(question.type)
    score = resolve_score(question, metadata.difficulty)
    shape = definition.json_shape

    data: Dict[str, Any] = {
        "type": definition.target_schema_type,
        "stimulus": question.stimulus,
    }

    if shape in (JsonShape.CHOICE, JsonShape.MULTIPLE_RESPONSE):
        _add_choice_block(data, question, shape, definition.id, score)
    elif shape == JsonShape.SHORT_TEXT:
        data["max_length"] = SHORT_TEXT_MAX_WORDS
        data["submit_over_limit"] = False
        if question.instructor_stimulus:
            data["instructor_stimulus"] = question.instructor_stimulus
    else:
        data["max_length"] = LONG_TEXT_MAX_WORDS
        data["formatting_options"] = list(FORMATTING_OPTIONS)
        data["submit_over_limit"] = False
        if question.instructor_stimulus:
            data["instructor_stimulus"] = question.instructor_stimulus
        data["validation"] = {"max_score": score}

    data["score"] = score
    data["minScore"] = 0
    return data

# =============================================================================
# Items
# =============================================================================

def build_legacy_item(question: Question, index: int, metadata: ExportMetadata) -> Dict[str, Any]:
    """Legacy item: UUID references and label objects"""
    data = build_question_data(question, metadata)
    return {
        "reference": str(uuid.uuid4()),
        "title": question_title(question, index, metadata.subject, metadata.topic),
        "status": "published",
        "labels": build_labels(build_question_tags(question, metadata)),
        "questions": [
            {
                "reference": str(uuid.uuid4()),
                "type": data["type"],
                "widget_type": "response",
                "data": data,
            }
        ],
    }

def build_current_item(question: Question, index: int, metadata: ExportMetadata) -> Dict[str, Any]:
    """Current item: ids are a pure function of the position"""
    data = build_question_data(question, metadata)
    return {
        "id": BASE_ID_START + index,
        "itemId": ITEM_ID_START + index,
        "title": question_title(question, index, metadata.subject, metadata.topic),
        "tags": build_question_tags(question, metadata),
        "questions": [
            {
                "id": QUESTION_ID_START + index,
                "type": data["type"],
                "data": data,
            }
        ],
    }

# =============================================================================
# Documents
# =============================================================================

def build_legacy_document(questions: List[Question], metadata: ExportMetadata,
                          now: Optional[datetime] = None) -> Dict[str, Any]:
    """{data: Item[], metadata: {...}}"""
    now = now or datetime.now()
    return {
        "data": [build_legacy_item(q, i, metadata) for i, q in enumerate(questions)],
        "metadata": {
            "subject": metadata.subject,
            "topic": metadata.topic,
            "difficulty": metadata.difficulty,
            "language": metadata.language,
            "exportFormat": LEGACY_DIALECT,
            "questionCount": len(questions),
            "exportedAt": now.isoformat(),
            "generator": settings.BRAND_NAME,
        },
    }

def build_current_document(questions: List[Question], metadata: ExportMetadata) -> List[Dict[str, Any]]:
    """Flat item array"""
    return [build_current_item(q, i, metadata) for i, q in enumerate(questions)]

def export_to_json(questions: List[Question], metadata: ExportMetadata,
                   dialect: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Serialize questions in the requested dialect as indented JSON text"""
    dialect = normalize_dialect(dialect or metadata.export_format)
    logger.info(f"Encoding {len(questions)} questions as {dialect} JSON")

    if dialect == LEGACY_DIALECT:
        document = build_legacy_document(questions, metadata, now)
    else:
        document = build_current_document(questions, metadata)

    return json.dumps(document, indent=2, ensure_ascii=False)

def json_filename(metadata: ExportMetadata, dialect: Optional[str] = None,
                  now: Optional[datetime] = None) -> str:
    dialect = normalize_dialect(dialect or metadata.export_format)
    return f"{slugify(metadata.subject)}_{dialect}_{export_date(now)}.json"
