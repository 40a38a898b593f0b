"""
Custom exception classes for TentaGen Export
Provides user-friendly error messages and recovery suggestions
"""
from typing import Optional, Dict, Any

class BaseExportError(Exception):
    """Base exception class for all export errors"""

    def __init__(
        self,
        message: str = None,
        user_message: str = None,
        technical_details: str = None,
        recovery_action: str = None,
        error_code: str = None
    ):
        self.message = message or self.default_message
        self.user_message = user_message or self.default_user_message
        self.technical_details = technical_details
        self.recovery_action = recovery_action or self.default_recovery_action
        self.error_code = error_code or self.default_error_code
        super().__init__(self.message)

    # Default values to be overridden by subclasses
    default_message = "An error occurred while exporting questions"
    default_user_message = "Something went wrong. Please try again."
    default_recovery_action = "Contact support if the problem persists"
    default_error_code = "GENERAL_ERROR"
    status_code = 500

# =============================================================================
# Export Errors
# =============================================================================

class ExportError(BaseExportError):
    """Export related errors"""
    default_message = "Export failed"
    default_user_message = "Failed to export questions in the requested format."
    default_recovery_action = "Try again, or choose a different export format"
    default_error_code = "EXPORT_ERROR"

class UnsupportedFormatError(ExportError):
    """Unsupported export format"""
    default_user_message = "The requested export format is not supported."
    default_recovery_action = "Choose one of: legacy, utgaende, qti21, qti22, csv or docx"
    default_error_code = "UNSUPPORTED_FORMAT"
    status_code = 400

class PackagingError(ExportError):
    """Building the ZIP, DOCX or JSON artifact failed"""
    default_user_message = "The export file could not be created."
    default_recovery_action = "Try the export again; no partial file was produced"
    default_error_code = "PACKAGING_FAILED"

# =============================================================================
# Utility Functions
# =============================================================================

def create_error_response(error: BaseExportError, include_technical: bool = False) -> Dict[str, Any]:
    """Create standardized error response for API"""
    response = {
        "success": False,
        "error": {
            "code": error.error_code,
            "message": error.user_message,
            "recovery_action": error.recovery_action
        }
    }

    if include_technical and error.technical_details:
        response["error"]["technical_details"] = error.technical_details

    return response

# =============================================================================
# Error Context Manager
# =============================================================================

class ErrorContext:
    """Context manager that turns failures inside an operation into export errors"""

    def __init__(self, operation: str, details: Optional[Dict[str, Any]] = None,
                 error_class: type = PackagingError):
        self.operation = operation
        self.details = details or {}
        self.error_class = error_class

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type and issubclass(exc_type, BaseExportError):
            # Add context to existing custom errors
            if not exc_val.technical_details:
                exc_val.technical_details = f"During {self.operation}: {str(exc_val)}"
        elif exc_type and issubclass(exc_type, Exception):
            context_error = self.error_class(
                message=f"Error during {self.operation}: {str(exc_val)}",
                technical_details=f"Operation: {self.operation}, Details: {self.details}"
            )
            raise context_error from exc_val
        return False
