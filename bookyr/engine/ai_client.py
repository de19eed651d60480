"""
AI Client - one call_ai() for every text model the booking tools use.
Claude through the Anthropic SDK; DeepSeek through its OpenAI-compatible HTTP API.
"""

import logging
from typing import Optional

import requests
from anthropic import Anthropic

from bookyr.config import config

logger = logging.getLogger(__name__)

MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

CLAUDE_MODEL = "claude-sonnet-4-20250514"
DEFAULT_SYSTEM_PROMPT = "You help DIY touring musicians and small venues book shows with each other."


def call_claude(prompt: str, system: Optional[str] = None, max_tokens: int = 1500) -> str:
    if not config.ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY not set in environment")

    client = Anthropic(api_key=config.ANTHROPIC_API_KEY)

    try:
        logger.debug(f"Calling Claude ({CLAUDE_MODEL})")
        message = client.messages.create(
            model=CLAUDE_MODEL,
            max_tokens=max_tokens,
            system=system or DEFAULT_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        return message.content[0].text

    except Exception as e:
        logger.error(f"Claude API error: {e}")
        raise RuntimeError(f"Failed to call Claude API: {e}") from e


def call_deepseek(
    prompt: str,
    model: str = 'deepseek-chat',
    system: Optional[str] = None,
    max_tokens: int = 1500,
) -> str:
    if not config.DEEPSEEK_API_KEY:
        raise ValueError("DEEPSEEK_API_KEY not set in environment")

    messages = [{"role": "system", "content": system or DEFAULT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt}]

    try:
        logger.debug(f"Calling DeepSeek with model {model}")
        response = requests.post(
            f"{config.DEEPSEEK_BASE_URL}/chat/completions",
            json={"model": model, "messages": messages, "max_tokens": max_tokens, "stream": False},
            headers={"Authorization": f"Bearer {config.DEEPSEEK_API_KEY}"},
            timeout=(10, 120),
        )
        response.raise_for_status()
        return response.json()['choices'][0]['message']['content']

    except requests.exceptions.RequestException as e:
        logger.error(f"DeepSeek API error: {e}")
        raise RuntimeError(f"Failed to call DeepSeek API: {e}") from e
    except (KeyError, IndexError) as e:
        logger.error(f"DeepSeek response parse error: {e}")
        raise RuntimeError(f"Unexpected DeepSeek response format: {e}") from e


def call_ai(prompt: str, model: Optional[str] = None, system: Optional[str] = None,
            max_tokens: int = 1500) -> str:
    """Route to Claude or DeepSeek. model defaults to DEFAULT_AI_MODEL."""
    model = model or config.DEFAULT_AI_MODEL
    if model == 'claude':
        return call_claude(prompt, system=system, max_tokens=max_tokens)
    if model in ('deepseek-chat', 'deepseek-reasoner'):
        return call_deepseek(prompt, model=model, system=system, max_tokens=max_tokens)
    raise ValueError(f"Unknown AI model '{model}'. Choose from: {', '.join(MODEL_CHOICES)}")
