"""
Pydantic models for TentaGen Export
"""
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Union
from enum import Enum

# =============================================================================
# Enums
# =============================================================================

class DifficultyLevel(str, Enum):
    """Difficulty levels for exam questions"""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class Language(str, Enum):
    """Languages questions are generated and exported in"""
    SWEDISH = "sv"
    ENGLISH = "en"

class QuestionTier(str, Enum):
    """Default-visibility classification of a question type"""
    CORE = "core"                # always enabled
    EXTENDED = "extended"        # enabled by default, can be disabled
    SPECIALIZED = "specialized"  # disabled by default, opt-in

class QuestionCategory(str, Enum):
    """Grouping of question types for the settings UI"""
    CHOICE = "choice"
    TEXT = "text"
    CLOZE = "cloze"
    INTERACTIVE = "interactive"
    SCIENTIFIC = "scientific"

class QtiInteraction(str, Enum):
    """QTI 2.x interaction element a question type serializes to"""
    CHOICE = "ChoiceInteraction"
    TEXT_ENTRY = "TextEntryInteraction"
    ORDER = "OrderInteraction"
    MATCH = "MatchInteraction"
    GAP_MATCH = "GapMatchInteraction"
    GRAPHIC_GAP_MATCH = "GraphicGapMatchInteraction"
    HOTTEXT = "HottextInteraction"
    INLINE_CHOICE = "InlineChoiceInteraction"
    EXTENDED_TEXT = "ExtendedTextInteraction"

class JsonShape(str, Enum):
    """Which question-data block the JSON dialects emit"""
    CHOICE = "choice"
    MULTIPLE_RESPONSE = "multiple_response"
    SHORT_TEXT = "short_text"
    LONG_TEXT = "long_text"

class AnswerLayout(str, Enum):
    """How documents render the answer part of a question"""
    CHOICE = "choice"      # options with correct/incorrect markers
    MATRIX = "matrix"      # rows x columns grid
    SEQUENCE = "sequence"  # numbered in correct order
    DROPDOWN = "dropdown"  # one choice list per gap
    PAIRS = "pairs"        # label -> value associations
    TEXT = "text"          # literal expected answers
    ESSAY = "essay"        # no answer key, rubric only

class ExportFormat(str, Enum):
    """Export format selectors"""
    LEGACY = "legacy"
    UTGAENDE = "utgaende"
    QTI21 = "qti21"
    QTI22 = "qti22"
    QTI21_INSPERA = "qti21_inspera"
    QTI22_INSPERA = "qti22_inspera"
    CSV = "csv"
    DOCX = "docx"

def _enum_value(v):
    return v.value if isinstance(v, Enum) else v

# =============================================================================
# Question Type Registry Model
# =============================================================================

class QuestionTypeDefinition(BaseModel):
    """Static metadata describing one supported question type"""
    id: str
    tier: QuestionTier
    target_schema_type: str = Field(..., description="Type name expected by the downstream JSON schema")
    qti_interaction: QtiInteraction
    default_enabled: bool
    can_disable: bool
    category: QuestionCategory
    has_options: bool
    has_correct_answer: bool
    supports_rubric: bool
    json_shape: JsonShape = JsonShape.LONG_TEXT
    answer_layout: AnswerLayout = AnswerLayout.ESSAY

    class Config:
        frozen = True

# =============================================================================
# Export Input Models
# =============================================================================

class QuestionOption(BaseModel):
    """One answer option; for matrix and dropdown types value lists the choices"""
    label: str
    value: str = ""

    @validator('label', 'value', pre=True)
    def coerce_to_text(cls, v):
        return "" if v is None else str(v)

class Question(BaseModel):
    """One exam question as consumed by the export layer"""
    type: str = Field(..., description="Question type id, may be unknown or legacy")
    stimulus: str = ""
    options: Optional[List[QuestionOption]] = None
    correct_answer: Optional[List[str]] = Field(default=None, alias="correctAnswer")
    instructor_stimulus: Optional[str] = Field(default=None, alias="instructorStimulus")
    score: Optional[Union[int, float]] = None
    min_score: Optional[Union[int, float]] = Field(default=None, alias="minScore")
    max_score: Optional[Union[int, float]] = Field(default=None, alias="maxScore")
    title: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    difficulty: Optional[str] = None
    subject: Optional[str] = None

    class Config:
        populate_by_name = True

    @validator('correct_answer', pre=True)
    def coerce_correct_answer(cls, v):
        """Stored data sometimes carries a single answer instead of a list"""
        if v is None:
            return None
        if isinstance(v, (str, int, float)):
            return [str(v)]
        return [str(item) for item in v]

    @validator('tags', pre=True)
    def coerce_tags(cls, v):
        return [] if v is None else v

    @property
    def has_options(self) -> bool:
        return bool(self.options)

    @property
    def answers(self) -> List[str]:
        """Correct answers, empty when none are stored"""
        return list(self.correct_answer or [])

class ExportMetadata(BaseModel):
    """Export options built by the UI from form state"""
    subject: str = ""
    topic: str = ""
    difficulty: str = DifficultyLevel.MEDIUM.value
    language: str = Language.SWEDISH.value
    export_format: str = Field(default=ExportFormat.LEGACY.value, alias="exportFormat")

    # Optional tagging fields
    term: Optional[str] = None
    semester: Optional[str] = None
    exam_type: Optional[str] = Field(default=None, alias="examType")
    course_code: Optional[str] = Field(default=None, alias="courseCode")
    additional_tags: Optional[str] = Field(default=None, alias="additionalTags", description="Comma-separated")
    tutor_initials: Optional[str] = Field(default=None, alias="tutorInitials")
    include_ai_tag: Optional[bool] = Field(default=None, alias="includeAITag")
    include_language_tag: Optional[bool] = Field(default=None, alias="includeLanguageTag")

    class Config:
        populate_by_name = True

    @validator('difficulty', 'language', 'export_format', pre=True)
    def unwrap_enum(cls, v):
        """Enum members are accepted; unknown strings are kept as-is"""
        return _enum_value(v)

    @property
    def is_swedish(self) -> bool:
        return self.language == Language.SWEDISH.value

# =============================================================================
# Export Output Models
# =============================================================================

class ExportArtifact(BaseModel):
    """A generated download: file name, payload and MIME type"""
    filename: str
    content: bytes
    mime_type: str

    @property
    def size(self) -> int:
        return len(self.content)

class ExportRequest(BaseModel):
    """Request model for the export endpoint"""
    questions: List[Question] = Field(default_factory=list)
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)
    format: Optional[str] = Field(default=None, description="Overrides metadata.exportFormat")
