"""
Tag generation for exported questions
Auto tags (subject, topic, type, difficulty, language, AI marker, tutor),
manual tags from the tagging form, and the numeric label ids used by the
legacy JSON dialect.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from models import ExportMetadata, Question, Language

# (Swedish, English) display names keyed by internal id
TYPE_DISPLAY_NAMES: Dict[str, Tuple[str, str]] = {
    "mcq": ("Flervalsfråga", "MCQ"),
    "true_false": ("Sant/Falskt", "True/False"),
    "longtextV2": ("Essä", "Essay"),
    "short_answer": ("Kort svar", "Short Answer"),
    "fill_blank": ("Ifyllnad", "Fill in the Blank"),
    "multiple_response": ("Flera rätt", "Multiple Response"),
    "matching": ("Matchning", "Matching"),
    "ordering": ("Ordningsföljd", "Ordering"),
    "hotspot": ("Bildmarkering", "Image Hotspot"),
    "rating_scale": ("Betygsskala", "Rating Scale"),
    "choicematrix": ("Valsmatris", "Choice Matrix"),
    "clozetext": ("Lucktext", "Cloze Text"),
    "clozedropdown": ("Rullgardinslucka", "Cloze Dropdown"),
    "orderlist": ("Ordningslista", "Order List"),
    "tokenhighlight": ("Tokenmarkering", "Token Highlight"),
    "clozeassociation": ("Dra-och-släpp lucka", "Cloze Association"),
    "imageclozeassociationV2": ("Bildlucka", "Image Cloze"),
    "plaintext": ("Fritext", "Plain Text"),
    "formulaessayV2": ("Formeluppsats", "Formula Essay"),
    "chemistryessayV2": ("Kemiuppsats", "Chemistry Essay"),
}

DIFFICULTY_DISPLAY_NAMES: Dict[str, Tuple[str, str]] = {
    "easy": ("Lätt", "Easy"),
    "medium": ("Medel", "Medium"),
    "hard": ("Svår", "Hard"),
}

LANGUAGE_MARKERS: Dict[str, str] = {
    Language.SWEDISH.value: "Svenska",
    Language.ENGLISH.value: "English",
}

AI_MARKER = ("AI-genererad", "AI-generated")

# Legacy dialect label ids live in [LABEL_ID_MIN, LABEL_ID_MIN + LABEL_ID_SPAN)
LABEL_ID_MIN = 100000
LABEL_ID_SPAN = 900000
LABEL_TYPE = "personal"

def _localized(entry: Tuple[str, str], language: Optional[str]) -> str:
    return entry[0] if language == Language.SWEDISH.value else entry[1]

# =============================================================================
# Translations
# =============================================================================

def translate_type(type_id: str, language: Optional[str]) -> str:
    """Display name of a question type; unknown ids are returned raw"""
    entry = TYPE_DISPLAY_NAMES.get(type_id)
    return _localized(entry, language) if entry else (type_id or "")

def translate_difficulty(difficulty: str, language: Optional[str]) -> str:
    """Display name of a difficulty; unknown values are returned raw"""
    entry = DIFFICULTY_DISPLAY_NAMES.get(difficulty)
    return _localized(entry, language) if entry else (difficulty or "")

def language_marker(language: str) -> str:
    return LANGUAGE_MARKERS.get(language, language or "")

def ai_marker(language: Optional[str]) -> str:
    return _localized(AI_MARKER, language)

# =============================================================================
# Tag Generation
# =============================================================================

def _append_unique(target: List[str], seen: set, candidates: Iterable[Optional[str]]) -> None:
    for candidate in candidates:
        tag = (candidate or "").strip()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        target.append(tag)

def generate_auto_tags(metadata: ExportMetadata, question_type: str,
                       existing_tags: Optional[Iterable[str]] = None) -> List[str]:
    """Classification tags for one question, skipping any already present.

    Order: subject, topic, type, difficulty, language marker, AI marker,
    tutor initials. Comparison is exact on the translated string.
    """
    language = metadata.language
    candidates = [
        metadata.subject,
        metadata.topic,
        translate_type(question_type, language),
        translate_difficulty(metadata.difficulty, language),
    ]
    if metadata.include_language_tag is not False:
        candidates.append(language_marker(language))
    if metadata.include_ai_tag is True:
        candidates.append(ai_marker(language))
    if metadata.tutor_initials:
        candidates.append(metadata.tutor_initials.strip())

    tags: List[str] = []
    _append_unique(tags, set(existing_tags or []), candidates)
    return tags

def generate_manual_tags(metadata: ExportMetadata) -> List[str]:
    """Tags typed into the tagging form"""
    tags = [
        value.strip()
        for value in (metadata.term, metadata.semester, metadata.exam_type, metadata.course_code)
        if value and value.strip()
    ]
    if metadata.additional_tags:
        tags.extend(tag.strip() for tag in metadata.additional_tags.split(",") if tag.strip())
    return tags

def build_question_tags(question: Question, metadata: ExportMetadata) -> List[str]:
    """Stored tags, then auto tags, then manual tags, without duplicates"""
    tags: List[str] = []
    seen: set = set()
    _append_unique(tags, seen, question.tags)
    _append_unique(tags, seen, generate_auto_tags(metadata, question.type, tags))
    _append_unique(tags, seen, generate_manual_tags(metadata))
    return tags

# =============================================================================
# Legacy Labels
# =============================================================================

def tag_label_id(tag: str) -> int:
    """Stable numeric id for a tag string.

    A 31-multiplier string hash wrapped to signed 32 bits, folded into the
    label id range. Not cryptographic: two tags can share an id.
    """
    h = 0
    for char in tag:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return LABEL_ID_MIN + abs(h) % LABEL_ID_SPAN

def build_labels(tags: Iterable[str]) -> List[Dict[str, object]]:
    """Legacy label objects for a list of tags"""
    return [{"id": tag_label_id(tag), "name": tag, "type": LABEL_TYPE} for tag in tags]
