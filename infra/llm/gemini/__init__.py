"""
Gemini API client components.

Clean separation of concerns:
- transport.py: HTTP request with a hard deadline and status classification
- response_parser.py: Envelope parsing (candidates, finish reason, feedback)
"""

from .transport import GeminiTransport
from .response_parser import ResponseParser, ParsedResponse

__all__ = [
    'GeminiTransport',
    'ResponseParser',
    'ParsedResponse',
]
