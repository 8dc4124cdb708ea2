"""
Centralized custom exception definitions for the member import service.

Each exception inherits from BaseAppError, which itself extends Werkzeug's
HTTPException, allowing clean integration with Flask's error system and
JSON-formatted API responses.

Domain Groups:
--------------
1. Validation Errors (400-401)
2. Import Errors (422)
3. Database Errors (404-503)
4. System Errors (500)
"""

from werkzeug.exceptions import HTTPException


class BaseAppError(HTTPException):
    """Root application error, base for all custom exceptions."""
    code = 500
    description = "Application error"

    def __init__(self, message=None, details=None, code=None):
        super().__init__(description=message or self.description)
        self.message = message or self.description
        self.details = details or {}
        if code:
            self.code = code


# ==============================================================================
# 1. VALIDATION ERRORS (HTTP 400 / 401)
# ==============================================================================

class ValidationError(BaseAppError):
    code = 400
    description = "Validation error"


class InvalidImportPayloadError(ValidationError):
    description = "Import payload is malformed"


class AuthenticationRequiredError(BaseAppError):
    code = 401
    description = "Please log in to continue"


# ==============================================================================
# 2. IMPORT ERRORS (HTTP 422)
# ==============================================================================

class FileFormatError(BaseAppError):
    """The uploaded file is unreadable or has no recognizable name column."""
    code = 422
    description = "Unsupported or unreadable member file"


class ImportValidationError(BaseAppError):
    """
    A single record failed import-time validation.

    Raised and caught inside the importer; it is recorded against ``row``
    in the import report and never reaches the HTTP layer.
    """
    code = 422
    description = "Record failed import validation"

    def __init__(self, message=None, row=None, details=None):
        super().__init__(message, details)
        self.row = row


# ==============================================================================
# 3. DATABASE ERRORS (HTTP 404-503)
# ==============================================================================

class DatabaseConnectionError(BaseAppError):
    code = 503
    description = "Database connection failed"


class FatalImportError(BaseAppError):
    """Infrastructure problem that aborts the whole import call."""
    code = 503
    description = "Import aborted"


class RecordNotFoundError(BaseAppError):
    code = 404
    description = "Requested record not found"


class UploadSessionNotFoundError(RecordNotFoundError):
    description = "Upload session not found or expired; please re-upload the file"


# ==============================================================================
# 4. SYSTEM ERRORS (HTTP 500)
# ==============================================================================

class ConfigurationError(BaseAppError):
    code = 500
    description = "Configuration missing or invalid"
