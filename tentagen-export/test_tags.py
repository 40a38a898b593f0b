"""
Tests for auto/manual tag generation and legacy label ids
"""
import pytest

from models import ExportMetadata
from tags import (
    LABEL_ID_MIN, LABEL_ID_SPAN,
    generate_auto_tags, generate_manual_tags, build_question_tags,
    tag_label_id, build_labels, translate_type, translate_difficulty, language_marker
)

def test_auto_tags_english(metadata):
    assert generate_auto_tags(metadata, "mcq") == ["Science", "Sky", "MCQ", "Easy", "English"]

def test_auto_tags_swedish(metadata_sv):
    tags = generate_auto_tags(metadata_sv, "true_false")
    assert tags == ["Cell Biology", "Mitokondrier", "Sant/Falskt", "Medel", "Svenska", "PM"]

def test_ai_and_language_flags():
    metadata = ExportMetadata(subject="Math", language="en", includeAITag=True, includeLanguageTag=False)
    tags = generate_auto_tags(metadata, "longtextV2")
    assert "English" not in tags
    assert tags[-1] == "AI-generated"

    metadata_sv = ExportMetadata(subject="Matte", language="sv", includeAITag=True)
    assert "AI-genererad" in generate_auto_tags(metadata_sv, "longtextV2")

def test_empty_topic_is_skipped():
    metadata = ExportMetadata(subject="Math", topic="", language="en")
    assert generate_auto_tags(metadata, "mcq")[:2] == ["Math", "MCQ"]

@pytest.mark.parametrize("existing", [
    [],
    ["Science"],
    ["Science", "MCQ", "English"],
    ["sky", "Sky"],
    ["Easy", "Easy", "Other"],
])
def test_auto_tags_never_repeat_existing(metadata, existing):
    tags = generate_auto_tags(metadata, "mcq", existing)
    assert not set(tags) & set(existing)
    assert len(tags) == len(set(tags))

def test_existing_tags_match_case_sensitively(metadata):
    tags = generate_auto_tags(metadata, "mcq", ["science"])
    assert "Science" in tags

def test_unknown_values_are_displayed_raw():
    metadata = ExportMetadata(subject="Chem", difficulty="expert", language="de")
    tags = generate_auto_tags(metadata, "nonexistent_type")
    assert tags == ["Chem", "nonexistent_type", "expert", "de"]
    assert translate_type("mcq", "de") == "MCQ"
    assert translate_difficulty("hard", "sv") == "Svår"
    assert language_marker("de") == "de"

def test_tutor_initials_are_trimmed():
    metadata = ExportMetadata(subject="Chem", language="en", tutorInitials="  AB ")
    assert generate_auto_tags(metadata, "mcq")[-1] == "AB"

def test_manual_tags():
    metadata = ExportMetadata(
        term="HT24",
        semester=" 3 ",
        examType="",
        courseCode="MED101",
        additionalTags="anatomy, , physiology ,",
    )
    assert generate_manual_tags(metadata) == ["HT24", "3", "MED101", "anatomy", "physiology"]

def test_manual_tags_empty():
    assert generate_manual_tags(ExportMetadata()) == []

def test_question_tags_keep_stored_tags_first(metadata, make_question):
    metadata.course_code = "SCI1"
    question = make_question(tags=["Custom", "Science"])
    tags = build_question_tags(question, metadata)
    assert tags == ["Custom", "Science", "Sky", "MCQ", "Easy", "English", "SCI1"]

def test_label_id_is_deterministic():
    assert tag_label_id("Science") == tag_label_id("Science")
    assert tag_label_id("a") == LABEL_ID_MIN + 97
    assert tag_label_id("") == LABEL_ID_MIN

@pytest.mark.parametrize("tag", ["Science", "Flervalsfråga", "AI-genererad", "x" * 200])
def test_label_id_range(tag):
    assert LABEL_ID_MIN <= tag_label_id(tag) < LABEL_ID_MIN + LABEL_ID_SPAN

def test_build_labels():
    labels = build_labels(["Science", "MCQ"])
    assert labels == [
        {"id": tag_label_id("Science"), "name": "Science", "type": "personal"},
        {"id": tag_label_id("MCQ"), "name": "MCQ", "type": "personal"},
    ]
