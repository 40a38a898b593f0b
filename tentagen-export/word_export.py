"""
Word (.docx) export for TentaGen
Renders an exam-question document for review and printing: title block,
metadata table, one block per question with its answer key, instructor
notes and a closing branding block.
"""
import logging
from datetime import datetime
from io import BytesIO
from typing import Callable, Dict, List, Optional

import requests
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

from config import settings
from export_utils import find_option_index, resolve_score, slugify, export_date, split_choices, strip_markup
from models import AnswerLayout, ExportMetadata, Question, Language
from question_types import lookup
from tags import translate_difficulty, translate_type

logger = logging.getLogger(__name__)

# Colors
CORRECT_COLOR = RGBColor(0x2E, 0x7D, 0x32)
INCORRECT_COLOR = RGBColor(0x9E, 0x9E, 0x9E)
MUTED_COLOR = RGBColor(0x66, 0x66, 0x66)
NOTES_COLOR = RGBColor(0x79, 0x55, 0x48)
BRAND_COLOR = RGBColor(0x1E, 0x3A, 0x5F)
BRAND_ACCENT_COLOR = RGBColor(0x4A, 0x6F, 0xA5)
NOTES_FILL = "FFF8E1"
BRANDING_FILL = "F0F4FF"
SEPARATOR_COLOR = "CCCCCC"

CORRECT_MARK = "✓"
INCORRECT_MARK = "✗"

TEXT = {
    Language.SWEDISH.value: {
        "title": "Tentafrågor",
        "generated_with": "Genererad med",
        "subject": "Ämne:",
        "topic": "Ämnesområde:",
        "count": "Antal frågor:",
        "examiner": "Examinator:",
        "question": "Fråga",
        "points": "p",
        "options": "Svarsalternativ:",
        "correct_answer": "Korrekt svar:",
        "correct_order": "Korrekt ordning:",
        "pairs": "Korrekta par:",
        "gap": "Lucka",
        "notes": "Bedömningsanvisning:",
        "end": "Slut på tentafrågor",
        "tagline": "AI-driven tentafråge-generator för högre utbildning",
        "developed_by": "Utvecklad av",
        "exported": "Exporterad",
        "question_singular": "fråga",
        "question_plural": "frågor",
    },
    Language.ENGLISH.value: {
        "title": "Exam Questions",
        "generated_with": "Generated with",
        "subject": "Subject:",
        "topic": "Topic:",
        "count": "Question count:",
        "examiner": "Examiner:",
        "question": "Question",
        "points": "pts",
        "options": "Answer options:",
        "correct_answer": "Correct answer:",
        "correct_order": "Correct order:",
        "pairs": "Correct pairs:",
        "gap": "Gap",
        "notes": "Grading guide:",
        "end": "End of exam questions",
        "tagline": "AI-powered exam question generator for higher education",
        "developed_by": "Developed by",
        "exported": "Exported",
        "question_singular": "question",
        "question_plural": "questions",
    },
}

LogoFetcher = Callable[[], Optional[bytes]]

def fetch_logo(url: Optional[str] = None, timeout: Optional[float] = None) -> Optional[bytes]:
    """Download the branding logo; any failure means no logo"""
    url = url or settings.LOGO_URL
    if not url:
        return None

    try:
        response = requests.get(url, timeout=timeout or settings.LOGO_FETCH_TIMEOUT)
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        logger.warning(f"Logo fetch failed, using text-only branding: {e}")
        return None

def _shade(properties, fill: str) -> None:
    """Add a solid w:shd fill to paragraph or cell properties"""
    shading = OxmlElement("w:shd")
    shading.set(qn("w:val"), "clear")
    shading.set(qn("w:color"), "auto")
    shading.set(qn("w:fill"), fill)
    properties.append(shading)

def _bottom_border(paragraph, color: str = SEPARATOR_COLOR) -> None:
    borders = OxmlElement("w:pBdr")
    bottom = OxmlElement("w:bottom")
    bottom.set(qn("w:val"), "single")
    bottom.set(qn("w:sz"), "4")
    bottom.set(qn("w:space"), "1")
    bottom.set(qn("w:color"), color)
    borders.append(bottom)
    paragraph._p.get_or_add_pPr().append(borders)

def _add_run(paragraph, text: str, bold: bool = False, italic: bool = False,
             color: Optional[RGBColor] = None, size: Optional[float] = None):
    run = paragraph.add_run(text)
    run.bold = bold
    run.italic = italic
    if color is not None:
        run.font.color.rgb = color
    if size is not None:
        run.font.size = Pt(size)
    return run

class WordExporter:
    """Builds a python-docx Document for a list of questions"""

    def __init__(self, metadata: ExportMetadata, logo_fetcher: Optional[LogoFetcher] = None,
                 now: Optional[datetime] = None):
        self.metadata = metadata
        self.language = metadata.language
        self.text = TEXT[Language.SWEDISH.value] if metadata.is_swedish else TEXT[Language.ENGLISH.value]
        self.logo_fetcher = logo_fetcher or fetch_logo
        self.now = now or datetime.now()

        self.layout_renderers: Dict[AnswerLayout, Callable] = {
            AnswerLayout.CHOICE: self._render_choice,
            AnswerLayout.MATRIX: self._render_matrix,
            AnswerLayout.SEQUENCE: self._render_sequence,
            AnswerLayout.DROPDOWN: self._render_dropdown,
            AnswerLayout.PAIRS: self._render_pairs,
            AnswerLayout.TEXT: self._render_text,
            AnswerLayout.ESSAY: self._render_essay,
        }

    @property
    def document_title(self) -> str:
        return f"{self.metadata.subject} - {self.text['title']}"

    def format_date(self) -> str:
        if self.metadata.is_swedish:
            return self.now.strftime("%Y-%m-%d")
        return self.now.strftime("%m/%d/%Y")

    def build(self, questions: List[Question]):
        doc = Document()

        style = doc.styles['Normal']
        style.font.name = 'Arial'
        style.font.size = Pt(11)

        properties = doc.core_properties
        properties.author = settings.BRAND_NAME
        properties.title = self.document_title
        properties.subject = self.metadata.subject
        properties.comments = f"{self.text['title']} - {self.metadata.subject}"

        self._add_title_block(doc)
        self._add_metadata_table(doc, len(questions))
        doc.add_paragraph()

        for index, question in enumerate(questions):
            self._add_question(doc, question, index)

        end = doc.add_paragraph()
        end.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(end, f"- {self.text['end']} -", italic=True, color=INCORRECT_COLOR, size=9)

        self._add_branding(doc, len(questions))
        return doc

    def export(self, questions: List[Question]) -> bytes:
        buffer = BytesIO()
        self.build(questions).save(buffer)
        return buffer.getvalue()

    # =========================================================================
    # Document Sections
    # =========================================================================

    def _add_title_block(self, doc) -> None:
        heading = doc.add_heading(self.document_title, level=1)
        heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

        subtitle = doc.add_paragraph()
        subtitle.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(subtitle, f"{self.text['generated_with']} ", italic=True, color=MUTED_COLOR, size=10)
        _add_run(subtitle, settings.BRAND_NAME, bold=True, color=BRAND_COLOR, size=11)
        _add_run(subtitle, f" - {self.format_date()}", italic=True, color=MUTED_COLOR, size=10)

        url = doc.add_paragraph()
        url.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(url, settings.BRAND_URL, color=BRAND_ACCENT_COLOR, size=9)

    def _add_metadata_table(self, doc, question_count: int) -> None:
        rows = [
            (self.text["subject"], self.metadata.subject),
            (self.text["topic"], self.metadata.topic or "-"),
            (self.text["count"], str(question_count)),
        ]
        if self.metadata.tutor_initials:
            rows.append((self.text["examiner"], self.metadata.tutor_initials.strip()))

        table = doc.add_table(rows=0, cols=2)
        table.style = 'Table Grid'
        for label, value in rows:
            cells = table.add_row().cells
            _add_run(cells[0].paragraphs[0], label, bold=True, size=10)
            _add_run(cells[1].paragraphs[0], value, size=10)

    def _add_question(self, doc, question: Question, index: int) -> None:
        definition = lookup(question.type)
        score = resolve_score(question, self.metadata.difficulty)
        meta = " • ".join(part for part in [
            translate_type(question.type, self.language),
            translate_difficulty(question.difficulty or self.metadata.difficulty, self.language),
            f"{score} {self.text['points']}",
        ] if part)

        header = doc.add_paragraph()
        _add_run(header, f"{self.text['question']} {index + 1}", bold=True, size=13)
        _add_run(header, f"  ({meta})", italic=True, color=MUTED_COLOR, size=10)

        doc.add_paragraph(strip_markup(question.stimulus))

        layout = definition.answer_layout
        if layout not in (AnswerLayout.TEXT, AnswerLayout.ESSAY) and not question.has_options:
            # Option layouts without options still show a stored answer key
            layout = AnswerLayout.TEXT
        self.layout_renderers[layout](doc, question)

        notes = strip_markup(question.instructor_stimulus)
        if notes:
            paragraph = doc.add_paragraph()
            _shade(paragraph._p.get_or_add_pPr(), NOTES_FILL)
            _add_run(paragraph, f"{self.text['notes']} ", bold=True, italic=True, color=NOTES_COLOR, size=10)
            _add_run(paragraph, notes, italic=True, color=NOTES_COLOR, size=10)

        _bottom_border(doc.add_paragraph())

    def _add_branding(self, doc, question_count: int) -> None:
        table = doc.add_table(rows=1, cols=1)
        cell = table.rows[0].cells[0]
        _shade(cell._tc.get_or_add_tcPr(), BRANDING_FILL)

        logo = self.logo_fetcher()
        first = cell.paragraphs[0]
        first.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if logo:
            try:
                first.add_run().add_picture(BytesIO(logo), width=Inches(0.8))
                first = cell.add_paragraph()
                first.alignment = WD_ALIGN_PARAGRAPH.CENTER
            except Exception as e:
                logger.warning(f"Logo could not be embedded, using text-only branding: {e}")

        _add_run(first, f"✦ {settings.BRAND_NAME}", bold=True, color=BRAND_COLOR, size=14)

        tagline = cell.add_paragraph()
        tagline.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(tagline, self.text["tagline"], color=BRAND_ACCENT_COLOR, size=9)

        credits = cell.add_paragraph()
        credits.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(credits, settings.BRAND_URL, bold=True, color=BRAND_COLOR, size=10)
        _add_run(credits, f"  •  {self.text['developed_by']} {settings.BRAND_AUTHOR}", color=MUTED_COLOR, size=9)

        noun = self.text["question_singular"] if question_count == 1 else self.text["question_plural"]
        stamp = cell.add_paragraph()
        stamp.alignment = WD_ALIGN_PARAGRAPH.CENTER
        _add_run(stamp, f"{self.text['exported']} {self.format_date()}  •  {question_count} {noun}",
                 italic=True, color=INCORRECT_COLOR, size=8)

    # =========================================================================
    # Answer Layouts
    # =========================================================================

    def _label(self, doc, key: str) -> None:
        _add_run(doc.add_paragraph(), self.text[key], bold=True, size=10)

    def _correct_indexes(self, question: Question) -> List[int]:
        indexes: List[int] = []
        for reference in question.answers:
            index = find_option_index(question.options, reference)
            if index is not None and index not in indexes:
                indexes.append(index)
        return indexes

    def _render_choice(self, doc, question: Question) -> None:
        self._label(doc, "options")
        correct = set(self._correct_indexes(question))
        for i, option in enumerate(question.options):
            paragraph = doc.add_paragraph()
            paragraph.paragraph_format.left_indent = Inches(0.3)
            _add_run(paragraph, f"{option.label}: ", bold=True, size=10)
            _add_run(paragraph, strip_markup(option.value), size=10)
            if i in correct:
                _add_run(paragraph, f" {CORRECT_MARK}", bold=True, color=CORRECT_COLOR, size=10)
            else:
                _add_run(paragraph, f" {INCORRECT_MARK}", color=INCORRECT_COLOR, size=10)

    def _render_matrix(self, doc, question: Question) -> None:
        columns: List[str] = []
        for option in question.options:
            for column in split_choices(option.value):
                if column not in columns:
                    columns.append(column)
        if not columns:
            self._render_pairs(doc, question)
            return

        answers = question.answers
        table = doc.add_table(rows=1, cols=len(columns) + 1)
        table.style = 'Table Grid'
        for j, column in enumerate(columns, 1):
            _add_run(table.rows[0].cells[j].paragraphs[0], column, bold=True, size=10)

        folded = [column.casefold() for column in columns]
        for k, option in enumerate(question.options):
            cells = table.add_row().cells
            _add_run(cells[0].paragraphs[0], strip_markup(option.label), size=10)
            if k < len(answers) and answers[k].strip().casefold() in folded:
                j = folded.index(answers[k].strip().casefold()) + 1
                _add_run(cells[j].paragraphs[0], CORRECT_MARK, bold=True, color=CORRECT_COLOR, size=10)

    def _render_sequence(self, doc, question: Question) -> None:
        self._label(doc, "correct_order")
        order = self._correct_indexes(question) or list(range(len(question.options)))
        for n, i in enumerate(order, 1):
            paragraph = doc.add_paragraph()
            paragraph.paragraph_format.left_indent = Inches(0.3)
            _add_run(paragraph, f"{n}. ", bold=True, size=10)
            _add_run(paragraph, strip_markup(question.options[i].value) or question.options[i].label, size=10)

    def _render_dropdown(self, doc, question: Question) -> None:
        answers = question.answers
        for k, option in enumerate(question.options):
            expected = answers[k].strip().casefold() if k < len(answers) else None
            paragraph = doc.add_paragraph()
            paragraph.paragraph_format.left_indent = Inches(0.3)
            _add_run(paragraph, f"{self.text['gap']} {k + 1}: ", bold=True, size=10)
            for j, choice in enumerate(split_choices(option.value) or [option.label]):
                if j:
                    _add_run(paragraph, " / ", color=MUTED_COLOR, size=10)
                correct = expected is not None and choice.casefold() == expected
                _add_run(paragraph, choice, bold=correct, color=CORRECT_COLOR if correct else None, size=10)

    def _render_pairs(self, doc, question: Question) -> None:
        self._label(doc, "pairs")
        for option in question.options:
            paragraph = doc.add_paragraph()
            paragraph.paragraph_format.left_indent = Inches(0.3)
            _add_run(paragraph, strip_markup(option.label), bold=True, size=10)
            _add_run(paragraph, f" → {strip_markup(option.value)}", size=10)

    def _render_text(self, doc, question: Question) -> None:
        if not question.answers:
            return
        paragraph = doc.add_paragraph()
        _add_run(paragraph, self.text["correct_answer"], bold=True, size=10)
        _add_run(paragraph, f" {', '.join(question.answers)}", size=10)

    def _render_essay(self, doc, question: Question) -> None:
        """Essays carry no answer key; the grading guide follows"""

def export_to_word(questions: List[Question], metadata: ExportMetadata,
                   logo_fetcher: Optional[LogoFetcher] = None, now: Optional[datetime] = None) -> bytes:
    """Word document as .docx bytes"""
    logger.info(f"Rendering {len(questions)} questions to Word")
    return WordExporter(metadata, logo_fetcher, now).export(questions)

def word_filename(metadata: ExportMetadata, now: Optional[datetime] = None) -> str:
    return f"tentagen-{slugify(metadata.subject, '-')}-{export_date(now)}.docx"
