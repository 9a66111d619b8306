"""Shared fixtures: profiles, authenticated API clients and a fake AI gateway."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest
from django.contrib.auth.models import User
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from networking.models import Profile


def completion(content: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request('POST', 'https://gateway.test/v1/chat/completions')
    response = httpx.Response(status_code, request=request, json={'error': 'upstream'})
    return openai.APIStatusError('upstream error', response=response, body={'error': 'upstream'})


class FakeChunk:
    def __init__(self, content):
        self.content = content

    def model_dump_json(self, **kwargs):
        return json.dumps({'choices': [{'index': 0, 'delta': {'content': self.content}}]})


@pytest.fixture
def make_profile(db):
    def _make(username, **fields):
        user = User.objects.create_user(username=username, email=f'{username}@example.com', password='pw')
        fields.setdefault('full_name', username.title())
        return Profile.objects.create(user=user, email=user.email, **fields)
    return _make


@pytest.fixture
def alice(make_profile):
    return make_profile(
        'alice',
        title='ML Engineer',
        company='Acme',
        skills=['python', 'pytorch'],
        interests=['edge AI'],
        goals=['find collaborators'],
    )


@pytest.fixture
def bob(make_profile):
    return make_profile(
        'bob',
        title='Founder',
        company='Shelfly',
        bio='Building retail vision.',
        skills=['sales', 'python'],
        interests=['retail', 'edge AI'],
        linkedin_url='https://www.linkedin.com/in/bob',
    )


@pytest.fixture
def client_for(db):
    def _client(profile):
        token, _ = Token.objects.get_or_create(user=profile.user)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {token.key}')
        return client
    return _client


@pytest.fixture
def fake_ai(monkeypatch):
    client = MagicMock()
    monkeypatch.setattr('networking.ai_gateway.get_client', lambda: client)
    return client
