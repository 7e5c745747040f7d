"""Claude-backed summariser and term generator."""

from .claude import ClaudeClient, ClaudeResponse
from .summaries import ClaudeNewsSummarizer
from .terms import ClaudeTermGenerator

__all__ = ["ClaudeClient", "ClaudeNewsSummarizer", "ClaudeResponse", "ClaudeTermGenerator"]
