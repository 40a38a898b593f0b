"""
Shared helpers for the export encoders
Markup stripping, short titles, score resolution, file names and the
option/gap lookups that several formats need.
"""
import html
import re
from datetime import datetime
from typing import List, Optional, Union

from config import settings
from models import Question, QuestionOption

Number = Union[int, float]

# Default points when a question carries no positive score
DIFFICULTY_DEFAULT_SCORES = {
    "easy": 1,
    "medium": 2,
    "hard": 3,
}

SHORT_TITLE_WORDS = 5
ELLIPSIS = "..."

# Blank/gap marker used by cloze style stimuli, e.g. "The [___] is red"
GAP_PATTERN = re.compile(r"\[_+\]")

_BREAK_TAG = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_END_TAG = re.compile(r"</(?:p|div|li|h[1-6]|tr|blockquote)\s*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<(?:/?[A-Za-z][^>]*|!--.*?--)>", re.DOTALL)
_EXTRA_NEWLINES = re.compile(r"\n{3,}")
_SLUG_UNSAFE = re.compile(r"[^\w\-]+")

# =============================================================================
# Text
# =============================================================================

def strip_markup(text: Optional[str]) -> str:
    """Convert user-authored HTML to plain text.

    Line breaks and block ends become newlines, all other tags are dropped
    and entities are decoded. Runs of blank lines collapse to one.
    """
    if not text:
        return ""

    text = _BREAK_TAG.sub("\n", text)
    text = _BLOCK_END_TAG.sub("\n", text)
    text = _ANY_TAG.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()

def derive_short_title(stimulus: Optional[str], max_length: Optional[int] = None) -> str:
    """Short display title from the first words of the stimulus"""
    max_length = max_length or settings.SHORT_TITLE_MAX_LENGTH
    words = strip_markup(stimulus).split()[:SHORT_TITLE_WORDS]
    title = " ".join(words)

    if len(title) > max_length:
        title = title[:max_length - len(ELLIPSIS)].rstrip() + ELLIPSIS
    return title

def question_title(question: Question, index: int, subject: str = "", topic: str = "") -> str:
    """Title for an exported item.

    Uses the stored title when it fits the title bound, otherwise a title
    derived from the stimulus, and finally "<subject> - <topic> - Question n".
    """
    max_length = settings.SHORT_TITLE_MAX_LENGTH
    stored = (question.title or "").strip()
    if stored and len(stored) <= max_length:
        return stored

    derived = derive_short_title(question.stimulus, max_length)
    if derived:
        return derived

    parts = [part for part in (subject, topic) if part]
    parts.append(f"Question {index + 1}")
    return " - ".join(parts)

# =============================================================================
# Scores
# =============================================================================

def resolve_score(question: Question, difficulty: Optional[str]) -> Number:
    """Points for a question: score, then maxScore, then a difficulty default"""
    for candidate in (question.score, question.max_score):
        if candidate is not None and candidate > 0:
            return candidate
    return DIFFICULTY_DEFAULT_SCORES.get(difficulty or "", 1)

def score_out_of_range(question: Question) -> bool:
    """True when minScore <= score <= maxScore does not hold for the stored values"""
    score, low, high = question.score, question.min_score, question.max_score
    if score is None:
        return low is not None and high is not None and low > high
    if low is not None and score < low:
        return True
    if high is not None and score > high:
        return True
    return False

# =============================================================================
# Options and Gaps
# =============================================================================

def find_option_index(options: Optional[List[QuestionOption]], reference: str) -> Optional[int]:
    """Resolve a correct-answer reference to an option position.

    References are option labels; values and case-insensitive matches are
    accepted for records that stored the option text instead.
    """
    if not options or reference is None:
        return None

    for i, option in enumerate(options):
        if option.label == reference:
            return i
    for i, option in enumerate(options):
        if option.value == reference:
            return i

    wanted = reference.strip().casefold()
    for i, option in enumerate(options):
        if option.label.strip().casefold() == wanted or option.value.strip().casefold() == wanted:
            return i
    return None

def split_choices(value: Optional[str]) -> List[str]:
    """Split a comma-separated column/choice list ("Yes, No, Maybe")"""
    if not value:
        return []
    return [choice.strip() for choice in value.split(",") if choice.strip()]

def split_gaps(text: Optional[str], limit: int = 0) -> List[str]:
    """Split text on gap markers; n markers give n + 1 segments.

    With a positive limit only the first limit markers split, the rest stay
    in the last segment as literal text.
    """
    return GAP_PATTERN.split(text or "", maxsplit=limit)

# =============================================================================
# File Names
# =============================================================================

def slugify(text: Optional[str], separator: str = "_") -> str:
    """File-name friendly version of a subject"""
    words = (text or "").strip().lower().split()
    slug = separator.join(_SLUG_UNSAFE.sub("", word) for word in words)
    slug = re.sub(rf"{re.escape(separator)}+", separator, slug).strip(separator)
    return slug or "export"

def export_date(now: Optional[datetime] = None) -> str:
    """YYYY-MM-DD stamp used in export file names"""
    return (now or datetime.now()).strftime("%Y-%m-%d")
