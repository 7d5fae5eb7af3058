"""Chat relay backend: persisted conversations answered by Google Gemini."""

__version__ = "1.0.0"
