import json
import logging
import os
import re

import openai
from openai import OpenAI
from rest_framework import status
from rest_framework.exceptions import APIException

logger = logging.getLogger(__name__)

AI_GATEWAY_URL = os.environ.get('AI_GATEWAY_URL', 'https://ai.gateway.lovable.dev/v1')
AI_GATEWAY_API_KEY = os.environ.get('AI_GATEWAY_API_KEY', '')
AI_MODEL = os.environ.get('AI_MODEL', 'google/gemini-2.5-flash')

_ARRAY_START = re.compile(r'\[')
_DECODER = json.JSONDecoder()


class AINotConfigured(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'AI_GATEWAY_API_KEY is not configured'
    default_code = 'ai_not_configured'


class AIRateLimited(APIException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = 'Rate limit exceeded. Please try again later.'
    default_code = 'rate_limited'


class AICreditsDepleted(APIException):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_detail = 'AI credits depleted. Please add credits.'
    default_code = 'credits_depleted'


class AIUnavailable(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'AI request failed'
    default_code = 'ai_unavailable'


def get_client() -> OpenAI:
    if not AI_GATEWAY_API_KEY:
        raise AINotConfigured()
    return OpenAI(api_key=AI_GATEWAY_API_KEY, base_url=AI_GATEWAY_URL)


def _translate(exc: openai.OpenAIError, purpose: str) -> APIException:
    if isinstance(exc, openai.APIStatusError):
        logger.error('AI gateway error: purpose=%s status=%s body=%s', purpose, exc.status_code, exc.body)
        if exc.status_code == 429:
            return AIRateLimited()
        if exc.status_code == 402:
            return AICreditsDepleted()
    else:
        logger.error('AI gateway unreachable: purpose=%s error=%s', purpose, exc)
    return AIUnavailable(f'AI {purpose} failed')


def complete(messages: list[dict], purpose: str = 'completion') -> str:
    """Run a non-streaming chat completion and return the reply text."""
    client = get_client()
    try:
        response = client.chat.completions.create(model=AI_MODEL, messages=messages)
    except openai.OpenAIError as exc:
        raise _translate(exc, purpose) from exc
    return (response.choices[0].message.content or '').strip()


def stream(messages: list[dict], purpose: str = 'chat'):
    """Open a streamed chat completion.

    The request is issued eagerly, so upstream 429/402 responses surface here
    before any bytes have been sent to the caller.
    """
    client = get_client()
    try:
        return client.chat.completions.create(model=AI_MODEL, messages=messages, stream=True)
    except openai.OpenAIError as exc:
        raise _translate(exc, purpose) from exc


def extract_json_array(text: str) -> list:
    """Return the JSON array embedded in an LLM reply, or [] when there is none."""
    text = text or ''
    # Decode from each opening bracket in turn, so trailing prose such as "see [1]" is ignored.
    for found in _ARRAY_START.finditer(text):
        try:
            parsed, _ = _DECODER.raw_decode(text, found.start())
        except ValueError:
            continue
        if isinstance(parsed, list):
            return parsed
    if '[' in text:
        logger.warning('Failed to parse AI response: %s', text[:500])
    return []
