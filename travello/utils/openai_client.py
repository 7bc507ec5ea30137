"""OpenAI client factory for the live generation backend."""

from typing import Optional

import openai


def get_openai_client(
    api_key: Optional[str],
    base_url: Optional[str] = None,
    timeout: float = 30.0,
) -> openai.AsyncOpenAI:
    """Initialize and return an async OpenAI client.

    ``base_url`` points the SDK at any OpenAI-compatible endpoint (Gemini's
    ``/v1beta/openai/``, OpenRouter, a local server). Retries are disabled on
    the SDK side because the generation client applies its own policy.

    Raises:
        ValueError: If no API key is given
    """
    if not api_key:
        raise ValueError(
            "LLM API key not found. Please set either OPENAI_API_KEY or GEMINI_API_KEY "
            "in the environment or a local .env file"
        )

    return openai.AsyncOpenAI(
        api_key=api_key,
        base_url=base_url,
        timeout=timeout,
        max_retries=0,
    )
