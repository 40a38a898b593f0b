"""
Export module for TentaGen
Single entry point that dispatches a question list to one of the format
encoders and returns a complete downloadable artifact.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from exceptions import ErrorContext, PackagingError, UnsupportedFormatError
from export_utils import score_out_of_range
from models import ExportArtifact, ExportFormat, ExportMetadata, Question
import csv_export
import json_export
import qti_export
import word_export

# Setup logger
logger = logging.getLogger(__name__)

JSON_MIME = "application/json"
ZIP_MIME = "application/zip"
CSV_MIME = "text/csv; charset=utf-8"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

FORMAT_ALIASES = {
    "current": ExportFormat.UTGAENDE.value,
    "json": ExportFormat.LEGACY.value,
    "qti": ExportFormat.QTI21.value,
    "word": ExportFormat.DOCX.value,
}

FORMAT_INFO: Dict[str, Dict[str, str]] = {
    ExportFormat.LEGACY.value: {
        "extension": ".json", "mime_type": JSON_MIME,
        "description": "JSON with label objects (legacy exam platform import)",
    },
    ExportFormat.UTGAENDE.value: {
        "extension": ".json", "mime_type": JSON_MIME,
        "description": "JSON item array with numeric ids (current exam platform import)",
    },
    ExportFormat.QTI21.value: {
        "extension": ".zip", "mime_type": ZIP_MIME,
        "description": "QTI 2.1 content package",
    },
    ExportFormat.QTI22.value: {
        "extension": ".zip", "mime_type": ZIP_MIME,
        "description": "QTI 2.2 content package",
    },
    ExportFormat.QTI21_INSPERA.value: {
        "extension": ".zip", "mime_type": ZIP_MIME,
        "description": "QTI 2.1 content package for Inspera",
    },
    ExportFormat.QTI22_INSPERA.value: {
        "extension": ".zip", "mime_type": ZIP_MIME,
        "description": "QTI 2.2 content package for Inspera",
    },
    ExportFormat.CSV.value: {
        "extension": ".csv", "mime_type": CSV_MIME,
        "description": "Spreadsheet overview",
    },
    ExportFormat.DOCX.value: {
        "extension": ".docx", "mime_type": DOCX_MIME,
        "description": "Word document with answer key",
    },
}

class ExportManager:
    """Manager class for handling all export operations"""

    def __init__(self, logo_fetcher: Optional[word_export.LogoFetcher] = None):
        self.logo_fetcher = logo_fetcher

    def normalize_format(self, format_type: Optional[str]) -> str:
        """Resolve aliases and reject unknown selectors"""
        name = str(getattr(format_type, "value", format_type) or "").strip().lower()
        name = FORMAT_ALIASES.get(name, name)
        if name not in FORMAT_INFO:
            raise UnsupportedFormatError(
                message=f"Unsupported format: {format_type}. Supported formats: {self.get_supported_formats()}"
            )
        return name

    def export(self, questions: List[Union[Question, Dict[str, Any]]], metadata: ExportMetadata,
               format_type: Optional[str] = None, now: Optional[datetime] = None) -> ExportArtifact:
        """
        Export questions to the requested format

        Args:
            questions: Question models or their wire dicts
            metadata: Export options; metadata.export_format is used when format_type is None
            format_type: Export format (legacy, utgaende, qti21, qti22, qti21_inspera, qti22_inspera, csv, docx)
            now: Clock override for file names and timestamps

        Returns:
            ExportArtifact with filename, bytes and MIME type
        """
        format_name = self.normalize_format(format_type or metadata.export_format)
        questions = [q if isinstance(q, Question) else Question(**q) for q in questions]
        now = now or datetime.now()

        self._warn_score_ranges(questions)

        format_methods = {
            ExportFormat.LEGACY.value: self._export_json,
            ExportFormat.UTGAENDE.value: self._export_json,
            ExportFormat.QTI21.value: self._export_qti,
            ExportFormat.QTI22.value: self._export_qti,
            ExportFormat.QTI21_INSPERA.value: self._export_qti,
            ExportFormat.QTI22_INSPERA.value: self._export_qti,
            ExportFormat.CSV.value: self._export_csv,
            ExportFormat.DOCX.value: self._export_docx,
        }

        try:
            with ErrorContext(f"{format_name} export", {"questions": len(questions)}):
                filename, content = format_methods[format_name](questions, metadata, format_name, now)
        except PackagingError as e:
            logger.error(f"Export to {format_name} failed: {e}", exc_info=True)
            raise

        logger.info(f"Exported {len(questions)} questions as {filename} ({len(content)} bytes)")
        return ExportArtifact(
            filename=filename,
            content=content,
            mime_type=FORMAT_INFO[format_name]["mime_type"],
        )

    def get_supported_formats(self) -> List[str]:
        """Get list of supported export formats"""
        return list(FORMAT_INFO.keys())

    def get_format_info(self) -> List[Dict[str, str]]:
        """Formats with extension, MIME type and description"""
        return [{"format": name, **info} for name, info in FORMAT_INFO.items()]

    def _warn_score_ranges(self, questions: List[Question]) -> None:
        for index, question in enumerate(questions):
            if score_out_of_range(question):
                logger.warning(
                    f"Question {index + 1} score {question.score} outside "
                    f"[{question.min_score}, {question.max_score}], exported unchanged"
                )

    # =========================================================================
    # Format Encoders
    # =========================================================================

    def _export_json(self, questions, metadata, format_name, now):
        text = json_export.export_to_json(questions, metadata, format_name, now)
        return json_export.json_filename(metadata, format_name, now), text.encode("utf-8")

    def _export_qti(self, questions, metadata, format_name, now):
        version = format_name[3:5]
        inspera = format_name.endswith("_inspera")
        content = qti_export.export_to_qti(questions, metadata, version, inspera, now)
        return qti_export.qti_filename(metadata, version, inspera, now), content

    def _export_csv(self, questions, metadata, format_name, now):
        text = csv_export.export_to_csv(questions, metadata)
        return csv_export.csv_filename(metadata, now), text.encode("utf-8")

    def _export_docx(self, questions, metadata, format_name, now):
        content = word_export.export_to_word(questions, metadata, self.logo_fetcher, now)
        return word_export.word_filename(metadata, now), content

# Export singleton instance
export_manager = ExportManager()
