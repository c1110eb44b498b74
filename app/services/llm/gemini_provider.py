from dataclasses import dataclass
from functools import lru_cache

from langchain_google_genai import ChatGoogleGenerativeAI

from app.core.config import settings


@dataclass
class GeminiConfig:
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 2048
    timeout_seconds: float = 60.0


def initialize_gemini_model(api_key: str, model_name: str, config: GeminiConfig) -> ChatGoogleGenerativeAI:
    """Initialize the Gemini chat model with the given API key and configuration."""
    return ChatGoogleGenerativeAI(
        model=model_name,
        temperature=config.temperature,
        top_p=config.top_p,
        top_k=config.top_k,
        max_output_tokens=config.max_output_tokens,
        timeout=config.timeout_seconds,
        max_retries=0,
        google_api_key=api_key,
    )


@lru_cache(maxsize=1)
def get_gemini_model() -> ChatGoogleGenerativeAI:
    """Get the configured Gemini model, creating it on first use."""
    config = GeminiConfig(
        temperature=settings.GEMINI_TEMPERATURE,
        top_p=settings.GEMINI_TOP_P,
        top_k=settings.GEMINI_TOP_K,
        max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
        timeout_seconds=settings.GEMINI_TIMEOUT_SECONDS,
    )
    return initialize_gemini_model(settings.GEMINI_API_KEY, settings.GEMINI_MODEL, config)
