"""Unified LLM client via LiteLLM."""

from __future__ import annotations

from dlnatitles.core.config import LLMConfig


def complete(
    messages: list[dict[str, str]],
    config: LLMConfig,
    **kwargs: object,
) -> str:
    """Send a single chat completion request via LiteLLM.

    The call is not retried; the configured timeout bounds it.

    Args:
        messages: Chat messages in OpenAI format.
        config: LLM configuration.
        **kwargs: Additional kwargs passed to litellm.completion.

    Returns:
        The first choice's response text, or "" when the provider sent none.
    """
    try:
        from litellm import completion
    except ImportError:
        raise ImportError("LiteLLM is not installed. Install with: pip install litellm")

    response = completion(
        model=config.model,
        messages=messages,
        api_base=config.api_base,
        api_key=config.api_key,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
        num_retries=0,
        **kwargs,
    )
    if not response.choices:
        return ""
    return response.choices[0].message.content or ""
