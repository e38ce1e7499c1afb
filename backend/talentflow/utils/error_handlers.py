"""
Centralized error types and user-friendly error messages.
"""
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Input rejected before any request is sent; nothing to roll back."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppError):
    """Referenced record does not exist. Fatal to the single operation, never retried."""
    def __init__(self, message: str = "Resource not found", details: dict | None = None):
        super().__init__(message, status_code=404, details=details)


class TransientWriteFailure(AppError):
    """Write rejected by the simulated network before it reached the store."""
    def __init__(self, message: str = "Simulated server error", details: dict | None = None):
        super().__init__(message, status_code=500, details=details)


# User-friendly error messages
ERROR_MESSAGES = {
    # Jobs
    "job_not_found": "Job posting not found.",
    "job_title_required": "Title is required",
    "slug_not_unique": "Slug must be unique. This slug already exists.",
    "reorder_failed": "Failed to reorder jobs. Changes have been reverted.",
    "job_status_failed": "Failed to update job status. Changes have been reverted.",
    "job_create_failed": "Failed to create job. Please try again.",
    "job_update_failed": "Failed to update job. Please try again.",

    # Candidates
    "candidate_not_found": "Candidate not found.",
    "stage_move_failed": "Failed to update candidate. Changes have been reverted.",
    "note_empty": "Note cannot be empty.",
    "note_failed": "Failed to add note. Please try again.",

    # Assessments
    "assessment_not_found": "Assessment not found.",
    "assessment_save_failed": "Failed to save assessment. Please try again.",
    "response_invalid": "Please fix the highlighted answers and try again.",
    "response_failed": "Failed to submit response. Please try again.",

    # General
    "not_found": "The requested resource was not found.",
    "server_error": "Something went wrong on our end. Please try again later.",
    "database_error": "Database connection issue. Please try again later.",
    "validation_error": "Please check your input and try again.",
}


def get_error_message(error_key: str, default: str | None = None) -> str:
    """Get a user-friendly error message."""
    return ERROR_MESSAGES.get(error_key, default or ERROR_MESSAGES["server_error"])


def create_error_response(
    status_code: int,
    message: str,
    details: dict | None = None
) -> JSONResponse:
    """Create a standardized error response."""
    content = {
        "success": False,
        "error": message,
    }

    if details:
        content["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content
    )
