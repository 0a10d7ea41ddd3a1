"""Intent extractor exports."""

from .base import IntentExtractor
from .openrouter import MalformedCompletion, OpenRouterExtractor, parse_completion
from .rules import RuleBasedExtractor

__all__ = [
    "IntentExtractor",
    "MalformedCompletion",
    "OpenRouterExtractor",
    "RuleBasedExtractor",
    "parse_completion",
]
