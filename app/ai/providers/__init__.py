"""Streaming provider clients."""

from app.ai.providers.base import StreamingProvider
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.groq import GroqProvider
from app.ai.providers.openrouter import OpenRouterProvider

__all__ = ["GeminiProvider", "GroqProvider", "OpenRouterProvider", "StreamingProvider"]
