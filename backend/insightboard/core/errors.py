"""
Domain exceptions, error codes and user-friendly error bodies.
"""
from typing import Dict, Optional


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    UNSUPPORTED_FORMAT = "UNSUPPORTED_FORMAT"
    PARSE_ERROR = "PARSE_ERROR"
    ANALYSIS_NOT_FOUND = "ANALYSIS_NOT_FOUND"
    QUESTION_REQUIRED = "QUESTION_REQUIRED"
    QUESTION_FAILED = "QUESTION_FAILED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class InsightBoardError(Exception):
    """Base class for errors raised by the analysis pipeline."""

    code = ErrorCodes.UNKNOWN_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFormat(InsightBoardError):
    """File extension is not one of the supported formats. No parsing is attempted."""

    code = ErrorCodes.UNSUPPORTED_FORMAT


class ParseError(InsightBoardError):
    """Malformed input for the declared format. Terminal for the upload."""

    code = ErrorCodes.PARSE_ERROR

    def __init__(self, message: str):
        super().__init__(message or "Unable to parse file")


class SummarizationUnavailable(InsightBoardError):
    """The AI summarizer failed; callers substitute fallback insights."""


class QuestionAnsweringFailed(InsightBoardError):
    code = ErrorCodes.QUESTION_FAILED


class AnalysisNotFound(InsightBoardError):
    code = ErrorCodes.ANALYSIS_NOT_FOUND


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "Your file is too large",
        "detail": "The uploaded file exceeds the size limit.",
        "suggestion": "Try uploading a smaller export, or only the columns you need."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "Your file looks empty",
        "detail": "We couldn't find any bytes in the uploaded file.",
        "suggestion": "Save the file again and retry the upload."
    },
    ErrorCodes.UNSUPPORTED_FORMAT: {
        "message": "We need a CSV, Excel or JSON file",
        "detail": "Supported formats are .csv, .xlsx, .xls and .json.",
        "suggestion": "Export your data as CSV from your spreadsheet tool and upload that."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "We're having trouble reading your file",
        "detail": "The file content doesn't match its format.",
        "suggestion": "Check that the first row holds column headers and that quotes are balanced."
    },
    ErrorCodes.ANALYSIS_NOT_FOUND: {
        "message": "Analysis not found",
        "detail": "This analysis doesn't exist or has expired.",
        "suggestion": "Upload the file again to start a fresh analysis."
    },
    ErrorCodes.QUESTION_REQUIRED: {
        "message": "Question is required",
        "detail": "Ask something about your data, for example 'Which region has the highest sales?'.",
        "suggestion": "Type a question and send it again."
    },
    ErrorCodes.QUESTION_FAILED: {
        "message": "We couldn't answer that question",
        "detail": "The AI assistant is unavailable or returned no answer.",
        "suggestion": "Try again in a moment, or rephrase your question."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Slow down a bit",
        "detail": "You're sending requests faster than we allow.",
        "suggestion": "Wait about a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "This is taking longer than expected",
        "detail": "The request didn't finish in time.",
        "suggestion": "Try a smaller file, or retry shortly."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "We encountered an issue we weren't expecting.",
        "suggestion": "Give it another try in a moment."
    }
}


def get_error_response(error_code: str, additional_detail: Optional[str] = None) -> Dict[str, str]:
    """
    Get user-friendly error response for an error code.

    Args:
        error_code: One of the ErrorCodes constants
        additional_detail: Optional additional detail to append

    Returns:
        Dictionary with code, message, detail, and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"

    return response
