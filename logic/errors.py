# backend/logic/errors.py


class SyncError(Exception):
    """Base class for failures surfaced by the sync engine."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class UserNotFound(SyncError):
    status_code = 404

    def __init__(self, user_id):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class UnsupportedProvider(SyncError):
    status_code = 404

    def __init__(self, provider: str):
        super().__init__(f"Syncing is not supported for provider '{provider}'")
        self.provider = provider


class MissingExternalIdentity(SyncError):
    status_code = 400

    def __init__(self, provider: str, display_name: str = None):
        super().__init__(f"{display_name or provider} username not found for this user")
        self.provider = provider


class UpstreamUnavailable(SyncError):
    status_code = 503
    suggestion = "These APIs are unofficial and rate limited. Try again in a few minutes."

    def __init__(self, provider: str, last_error: Exception = None, display_name: str = None):
        super().__init__(f"All {display_name or provider} APIs are currently unavailable. Please try again later.")
        self.provider = provider
        self.last_error = last_error

    @property
    def details(self) -> str:
        return str(self.last_error) if self.last_error else "Unknown error"

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details, "suggestion": self.suggestion}


class StorageWriteFailure(SyncError):
    def __init__(self, user_id, question_id, cause: Exception):
        super().__init__(f"Failed to write progress for user {user_id}, question {question_id}: {cause}")
        self.user_id = user_id
        self.question_id = question_id
        self.cause = cause
