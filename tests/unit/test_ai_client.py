"""
Unit tests for the AI client (bookyr/engine/ai_client.py).

Mocking strategy:
- bookyr.engine.ai_client.Anthropic     → Claude API client
- bookyr.engine.ai_client.requests.post → DeepSeek HTTP calls
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from bookyr.engine.ai_client import call_claude, call_deepseek, call_ai, CLAUDE_MODEL, DEFAULT_SYSTEM_PROMPT


def mock_anthropic_client(text: str):
    """Return a mock Anthropic class that produces the given text."""
    mock_message = MagicMock()
    mock_message.content = [MagicMock(text=text)]
    mock_client = MagicMock()
    mock_client.messages.create.return_value = mock_message
    mock_cls = MagicMock(return_value=mock_client)
    return mock_cls, mock_client


# ---------------------------------------------------------------------------
# call_claude
# ---------------------------------------------------------------------------

def test_call_claude_raises_when_no_api_key(monkeypatch):
    monkeypatch.setattr('bookyr.engine.ai_client.config.ANTHROPIC_API_KEY', '')
    with pytest.raises(ValueError, match='ANTHROPIC_API_KEY'):
        call_claude('prompt')


def test_call_claude_returns_message_text():
    mock_cls, mock_client = mock_anthropic_client('Hey Gilman folks')
    with patch('bookyr.engine.ai_client.config.ANTHROPIC_API_KEY', 'sk-test'), \
         patch('bookyr.engine.ai_client.Anthropic', mock_cls):
        result = call_claude('Write a message')

    assert result == 'Hey Gilman folks'
    kwargs = mock_client.messages.create.call_args[1]
    assert kwargs['model'] == CLAUDE_MODEL
    assert kwargs['system'] == DEFAULT_SYSTEM_PROMPT
    assert kwargs['messages'] == [{'role': 'user', 'content': 'Write a message'}]


def test_call_claude_wraps_api_errors():
    mock_cls, mock_client = mock_anthropic_client('')
    mock_client.messages.create.side_effect = Exception('overloaded')
    with patch('bookyr.engine.ai_client.config.ANTHROPIC_API_KEY', 'sk-test'), \
         patch('bookyr.engine.ai_client.Anthropic', mock_cls):
        with pytest.raises(RuntimeError, match='Failed to call Claude API'):
            call_claude('prompt')


# ---------------------------------------------------------------------------
# call_deepseek
# ---------------------------------------------------------------------------

def test_call_deepseek_raises_when_no_api_key(monkeypatch):
    monkeypatch.setattr('bookyr.engine.ai_client.config.DEEPSEEK_API_KEY', '')
    with pytest.raises(ValueError, match='DEEPSEEK_API_KEY'):
        call_deepseek('prompt')


def test_call_deepseek_returns_content():
    response = MagicMock()
    response.json.return_value = {'choices': [{'message': {'content': 'Drafted'}}]}
    with patch('bookyr.engine.ai_client.config.DEEPSEEK_API_KEY', 'ds-test'), \
         patch('bookyr.engine.ai_client.requests.post', return_value=response) as post:
        assert call_deepseek('prompt', model='deepseek-reasoner') == 'Drafted'

    assert post.call_args[1]['json']['model'] == 'deepseek-reasoner'
    assert post.call_args[1]['headers'] == {'Authorization': 'Bearer ds-test'}


def test_call_deepseek_wraps_http_errors():
    with patch('bookyr.engine.ai_client.config.DEEPSEEK_API_KEY', 'ds-test'), \
         patch('bookyr.engine.ai_client.requests.post',
               side_effect=requests.exceptions.Timeout('slow')):
        with pytest.raises(RuntimeError, match='Failed to call DeepSeek API'):
            call_deepseek('prompt')


def test_call_deepseek_bad_payload():
    response = MagicMock()
    response.json.return_value = {'choices': []}
    with patch('bookyr.engine.ai_client.config.DEEPSEEK_API_KEY', 'ds-test'), \
         patch('bookyr.engine.ai_client.requests.post', return_value=response):
        with pytest.raises(RuntimeError, match='Unexpected DeepSeek response'):
            call_deepseek('prompt')


# ---------------------------------------------------------------------------
# call_ai routing
# ---------------------------------------------------------------------------

def test_call_ai_defaults_to_configured_model():
    with patch('bookyr.engine.ai_client.config.DEFAULT_AI_MODEL', 'claude'), \
         patch('bookyr.engine.ai_client.call_claude', return_value='c') as claude:
        assert call_ai('p') == 'c'
    claude.assert_called_once_with('p', system=None, max_tokens=1500)


def test_call_ai_routes_deepseek():
    with patch('bookyr.engine.ai_client.call_deepseek', return_value='d') as deepseek:
        assert call_ai('p', model='deepseek-chat', system='s') == 'd'
    deepseek.assert_called_once_with('p', model='deepseek-chat', system='s', max_tokens=1500)


def test_call_ai_unknown_model():
    with pytest.raises(ValueError, match='Unknown AI model'):
        call_ai('p', model='gpt-2')
