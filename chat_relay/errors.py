"""
Error taxonomy for the chat relay.
Each error knows the HTTP status and public message it is reported with.
"""
from typing import Optional


class ChatRelayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    public_message = "Internal server error"
    code: Optional[str] = None

    def __init__(self, message: Optional[str] = None, public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        if public_message:
            self.public_message = public_message

    def to_dict(self) -> dict:
        body = {"error": self.public_message, "details": self.message}
        if self.code:
            body["code"] = self.code
        return body


class ValidationError(ChatRelayError):
    """Required request fields are missing."""

    status_code = 400
    public_message = "userId and message are required"

    def to_dict(self) -> dict:
        return {"error": self.message}


class StorageError(ChatRelayError):
    """A persistence call failed. Details are logged, not returned."""

    def to_dict(self) -> dict:
        return {"error": self.public_message}


class SessionUnavailableError(StorageError):
    """The chat session for a turn could not be looked up or created."""

    public_message = "Failed to create/get chat session"


class GenerationError(ChatRelayError):
    """The generation backend failed or returned an unusable response."""


class CredentialError(GenerationError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "Invalid or expired API key. Please check your Gemini API key."
        )


class QuotaExceededError(GenerationError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "API quota exceeded. Please check your Gemini API usage."
        )


class EmptyResponseError(GenerationError):
    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "No response generated by Gemini API")


class ContentFilteredError(GenerationError):
    """The prompt or reply was blocked by the safety filter."""

    status_code = 400
    public_message = (
        "Content was filtered for safety reasons. Please try rephrasing your message."
    )
    code = "content_filtered"

    def to_dict(self) -> dict:
        return {"error": self.public_message, "details": self.message, "code": self.code}


class InternalError(ChatRelayError):
    """Anything unexpected."""
