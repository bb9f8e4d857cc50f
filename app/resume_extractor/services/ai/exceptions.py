"""
Exceptions raised by the resume extraction client.
"""


class AIServiceError(Exception):
    """Raised when the LLM call fails or returns something unusable."""

    pass
