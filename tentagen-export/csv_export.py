"""
CSV export for spreadsheet review of generated questions
"""
import logging
from datetime import datetime
from typing import List, Optional

from export_utils import question_title, slugify, export_date, strip_markup
from models import ExportMetadata, Question, Language
from tags import build_question_tags, translate_difficulty, translate_type

logger = logging.getLogger(__name__)

# Spreadsheet applications need the BOM to detect UTF-8
BOM = "\ufeff"
LINE_END = "\r\n"

HEADERS = {
    Language.SWEDISH.value: [
        "Typ", "Titel", "Fråga", "Alternativ", "Rätt svar",
        "Lärarinstruktioner", "Ämne", "Svårighetsgrad", "Taggar",
    ],
    Language.ENGLISH.value: [
        "Type", "Title", "Question", "Options", "Correct Answer(s)",
        "Instructor Notes", "Subject", "Difficulty", "Tags",
    ],
}

_QUOTE_TRIGGERS = (",", '"', "\n", "\r", ";")

def escape_csv_field(value: Optional[str]) -> str:
    """Quote a field containing a comma, quote, line break or semicolon"""
    if not value:
        return ""
    if any(trigger in value for trigger in _QUOTE_TRIGGERS):
        return '"' + value.replace('"', '""') + '"'
    return value

def csv_headers(language: Optional[str]) -> List[str]:
    return HEADERS[Language.SWEDISH.value] if language == Language.SWEDISH.value else HEADERS[Language.ENGLISH.value]

def question_row(question: Question, index: int, metadata: ExportMetadata) -> List[str]:
    language = metadata.language
    options = " | ".join(
        f"{option.label}. {strip_markup(option.value)}" for option in (question.options or [])
    )
    return [
        translate_type(question.type, language),
        question_title(question, index, metadata.subject, metadata.topic),
        strip_markup(question.stimulus),
        options,
        ", ".join(question.answers),
        strip_markup(question.instructor_stimulus),
        question.subject or metadata.subject,
        translate_difficulty(question.difficulty or metadata.difficulty, language),
        ", ".join(build_question_tags(question, metadata)),
    ]

def export_to_csv(questions: List[Question], metadata: ExportMetadata) -> str:
    """CSV text with a header row, one row per question, CRLF line ends and a BOM"""
    logger.info(f"Encoding {len(questions)} questions as CSV")

    lines = [",".join(escape_csv_field(header) for header in csv_headers(metadata.language))]
    for index, question in enumerate(questions):
        row = question_row(question, index, metadata)
        lines.append(",".join(escape_csv_field(field) for field in row))

    return BOM + LINE_END.join(lines) + LINE_END

def csv_filename(metadata: ExportMetadata, now: Optional[datetime] = None) -> str:
    return f"tentagen-{slugify(metadata.subject, '-')}-{export_date(now)}.csv"
