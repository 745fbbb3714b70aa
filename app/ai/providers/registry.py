"""Build the ordered provider rotation from settings."""

from __future__ import annotations

from app.ai.providers.base import StreamingProvider
from app.ai.providers.gemini import GeminiProvider
from app.ai.providers.groq import GroqProvider
from app.ai.providers.openrouter import OpenRouterProvider
from app.ai.rotation import ProviderSlot
from app.config import Settings


def build_provider(name: str, settings: Settings) -> StreamingProvider:
  """Instantiate a provider client by name."""
  if name == "gemini":
    return GeminiProvider(settings.gemini_model)
  if name == "groq":
    return GroqProvider(settings.groq_model, timeout_seconds=settings.provider_timeout_seconds)
  if name == "openrouter":
    return OpenRouterProvider(settings.openrouter_model, base_url=settings.openrouter_base_url, timeout_seconds=settings.provider_timeout_seconds)
  raise ValueError(f"Unknown provider '{name}'.")


def build_provider_slots(settings: Settings) -> list[ProviderSlot]:
  """Return provider slots in priority order with their credential lists."""
  return [ProviderSlot(provider=build_provider(name, settings), credentials=settings.credentials_for(name)) for name in settings.provider_order]
