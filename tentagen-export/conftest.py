"""
Shared pytest fixtures for the export tests
"""
from datetime import datetime

import pytest

from models import ExportMetadata, Question

FIXED_NOW = datetime(2026, 10, 19, 9, 30, 0)

@pytest.fixture
def now():
    return FIXED_NOW

@pytest.fixture
def metadata():
    """English metadata for a small science exam"""
    return ExportMetadata(
        subject="Science",
        topic="Sky",
        difficulty="easy",
        language="en",
        exportFormat="legacy",
    )

@pytest.fixture
def metadata_sv():
    return ExportMetadata(
        subject="Cell Biology",
        topic="Mitokondrier",
        difficulty="medium",
        language="sv",
        exportFormat="utgaende",
        courseCode="BIO101",
        tutorInitials="PM",
    )

@pytest.fixture
def make_question():
    """Factory for questions; keyword arguments use the wire (camelCase) names"""

    def _make_question(**kwargs):
        data = {
            "type": "mcq",
            "stimulus": "<p>What is the capital of France?</p>",
            "options": [{"label": "A", "value": "Paris"}, {"label": "B", "value": "Lyon"}],
            "correctAnswer": ["A"],
            "score": 1,
        }
        data.update(kwargs)
        return Question(**data)

    return _make_question

@pytest.fixture
def true_false_question(make_question):
    return make_question(
        type="true_false",
        stimulus="<p>The sky is blue.</p>",
        options=[{"label": "A", "value": "True"}, {"label": "B", "value": "False"}],
        correctAnswer=["A"],
        score=1,
    )
