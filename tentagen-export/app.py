"""
Main FastAPI application for TentaGen Export
Serves the question type registry and turns question lists into
downloadable JSON, QTI, CSV and Word files.
"""
from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
import uvicorn
import logging
import traceback
from datetime import datetime
from io import BytesIO
from typing import Optional
from urllib.parse import quote

from config import settings
from models import ExportRequest, QuestionTier
from exporter import export_manager
from exceptions import BaseExportError, create_error_response
from question_types import QUESTION_TYPES, types_by_tier, core_type_ids, default_enabled_type_ids

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="TentaGen Export",
    version="2.0.0",
    description="Exports generated exam questions to exam platform JSON, QTI, CSV and Word",
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =============================================================================
# Global Error Handlers
# =============================================================================

@app.exception_handler(BaseExportError)
async def export_error_handler(request, exc: BaseExportError):
    """Handle custom export errors"""
    logger.error(f"Export error: {exc.error_code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc, include_technical=settings.DEBUG)
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    """Handle request validation errors"""
    error = BaseExportError(
        message="Request validation failed",
        user_message="Invalid request data. Please check your input.",
        technical_details=str(exc),
        error_code="VALIDATION_ERROR"
    )
    return JSONResponse(
        status_code=422,
        content=create_error_response(error, include_technical=settings.DEBUG)
    )

@app.exception_handler(Exception)
async def general_error_handler(request, exc: Exception):
    """Handle unexpected errors"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    error = BaseExportError(
        message=str(exc),
        user_message="An unexpected error occurred. Please try again or contact support.",
        technical_details=traceback.format_exc() if settings.DEBUG else None,
        error_code="UNEXPECTED_ERROR"
    )
    return JSONResponse(
        status_code=500,
        content=create_error_response(error, include_technical=settings.DEBUG)
    )

# =============================================================================
# API Routes
# =============================================================================

@app.get("/health")
async def health_check():
    """Simple health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": app.version,
        "question_types": len(QUESTION_TYPES),
        "logo_configured": settings.is_logo_configured(),
    }

@app.get("/api/question-types")
async def get_question_types(tier: Optional[str] = Query(default=None)):
    """List registered question types, optionally for one tier"""
    if tier:
        try:
            definitions = types_by_tier(tier)
        except ValueError:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": {
                    "code": "UNKNOWN_TIER",
                    "message": f"Unknown tier '{tier}'",
                    "recovery_action": f"Use one of: {', '.join(t.value for t in QuestionTier)}",
                }}
            )
    else:
        definitions = list(QUESTION_TYPES.values())

    return {
        "question_types": [definition.model_dump(mode="json") for definition in definitions],
        "core": core_type_ids(),
        "default_enabled": default_enabled_type_ids(),
    }

@app.get("/api/export/formats")
async def get_export_formats():
    """Get list of supported export formats"""
    return {
        "supported_formats": export_manager.get_supported_formats(),
        "format_details": export_manager.get_format_info(),
    }

@app.post("/api/export")
async def export_questions(request: ExportRequest):
    """Export questions and return the file as a download"""
    artifact = export_manager.export(request.questions, request.metadata, request.format)
    logger.info(f"Serving {artifact.filename} ({artifact.size} bytes)")

    ascii_name = artifact.filename.encode("ascii", "ignore").decode("ascii")
    return StreamingResponse(
        BytesIO(artifact.content),
        media_type=artifact.mime_type,
        headers={
            "Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(artifact.filename)}",
        }
    )

# =============================================================================
# Main execution
# =============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "app:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
