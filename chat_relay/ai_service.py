"""
Generation service using Google Gemini API.
Handles API configuration, text generation and response validation.
"""
import logging
import google.generativeai as genai
from typing import Any, Optional

from chat_relay.config import Settings
from chat_relay.errors import (
    ContentFilteredError,
    CredentialError,
    EmptyResponseError,
    GenerationError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_p": 0.8,
    "max_output_tokens": 1000,
}

PING_GENERATION_CONFIG = {
    "temperature": 0.7,
    "top_p": 0.8,
    "max_output_tokens": 100,
}

SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]

FALLBACK_REPLY = "Sorry, I couldn't generate a response."
PING_PROMPT = "Hello, this is a test message."


def _enum_name(value: Any) -> str:
    """Name of an SDK enum value, or the value itself for plain strings."""
    if value is None:
        return ""
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name.upper()
    return str(value).upper()


class GeminiClient:
    """Wrapper for Google Gemini API."""

    def __init__(self, settings: Settings, model: Optional[Any] = None):
        """
        Initialize Gemini API client.

        Args:
            settings: Process configuration holding the API key and model name
            model: Pre-built model object exposing generate_content (used by tests)
        """
        self.settings = settings
        self.model_name = settings.gemini_model
        self.model = model
        if self.model is None:
            self._configure_api()

    @property
    def configured(self) -> bool:
        return self.model is not None

    def _configure_api(self):
        """Configure the Gemini API with the key from settings."""
        if not self.settings.gemini_api_key:
            logger.error("No API key provided. Set GEMINI_API_KEY environment variable.")
            return

        genai.configure(api_key=self.settings.gemini_api_key)
        self.model = genai.GenerativeModel(model_name=self.model_name)
        logger.info(f"Gemini API configured successfully with model: {self.model_name}")

    def _call(self, prompt: str, generation_config: dict):
        if not self.model:
            raise CredentialError("Gemini API is not configured. Please check your API key.")

        try:
            return self.model.generate_content(
                prompt,
                generation_config=generation_config,
                safety_settings=SAFETY_SETTINGS,
            )
        except Exception as e:
            logger.error(f"Gemini API error response: {e}")
            message = str(e)

            # Handle specific API errors
            if "API key" in message:
                raise CredentialError() from e
            elif "quota" in message.lower():
                raise QuotaExceededError() from e
            raise GenerationError(message or "Gemini API error") from e

    def _validate(self, response) -> Any:
        """Return the top candidate, raising for blocked or empty responses."""
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason and block_reason != "BLOCK_REASON_UNSPECIFIED":
            logger.warning(f"Prompt blocked by Gemini: {block_reason}")
            raise ContentFilteredError(f"Prompt blocked: {block_reason}")

        candidates = getattr(response, "candidates", None)
        if not candidates:
            logger.error(f"No candidates in Gemini response: {response}")
            raise EmptyResponseError()

        candidate = candidates[0]
        if _enum_name(getattr(candidate, "finish_reason", None)) == "SAFETY":
            raise ContentFilteredError()

        return candidate

    @staticmethod
    def _extract_text(candidate) -> str:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        if parts:
            text = getattr(parts[0], "text", None)
            if isinstance(text, str) and text:
                return text
        return FALLBACK_REPLY

    def generate(self, prompt: str) -> str:
        """
        Generate a reply for a fully assembled prompt.

        Args:
            prompt: The context-augmented prompt

        Returns:
            Generated reply text, or a fixed fallback when the candidate has no text

        Raises:
            GenerationError: on API failure, empty or safety-blocked responses
        """
        logger.info(f"Sending to Gemini ({self.model_name}) with context: {len(prompt)} characters")
        response = self._call(prompt, GENERATION_CONFIG)
        candidate = self._validate(response)
        reply = self._extract_text(candidate)
        logger.info(f"AI Response: {reply[:100]}...")
        return reply

    def ping(self) -> bool:
        """Send a short test prompt. Returns whether Gemini answered."""
        logger.info("Testing Gemini API connection...")
        try:
            response = self._call(PING_PROMPT, PING_GENERATION_CONFIG)
            self._validate(response)
        except GenerationError as e:
            logger.error(f"Gemini API test failed: {e}")
            return False

        logger.info("Gemini API connection successful!")
        return True
