"""Async REST client for the MeetMate API."""

import os

import httpx

from .errors import error_from_response

DEFAULT_API_URL = 'http://localhost:8000/api'


def get_api_url() -> str:
    return os.environ.get('MEETMATE_API_URL', DEFAULT_API_URL)


class MeetMateClient:
    """Thin async wrapper around the MeetMate endpoints."""

    def __init__(self, token: str, api_url: str | None = None, http: httpx.AsyncClient | None = None):
        self.base = (api_url or get_api_url()).rstrip('/')
        self._http = http or httpx.AsyncClient(timeout=30.0)
        self._headers = {'Authorization': f'Bearer {token}'}

    def url(self, path: str) -> str:
        return f'{self.base}/{path.lstrip("/")}'

    @property
    def headers(self) -> dict:
        return dict(self._headers)

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http

    async def _request(self, method: str, path: str, **kwargs):
        resp = await self._http.request(method, self.url(path), headers=self.headers, **kwargs)
        if resp.is_error:
            raise error_from_response(resp)
        return resp.json()

    async def get_profile(self) -> dict:
        return await self._request('GET', '/profiles/me/')

    async def update_profile(self, **fields) -> dict:
        return await self._request('PATCH', '/profiles/me/', json=fields)

    async def generate_qr_code(self) -> dict:
        return await self._request('POST', '/qr-connect/', json={'action': 'generate'})

    async def scan_qr_code(self, qr_code_id: str) -> dict:
        return await self._request('POST', '/qr-connect/', json={'action': 'scan', 'qr_code_id': qr_code_id})

    async def get_connections(self) -> list[dict]:
        return await self._request('GET', '/connections/')

    async def generate_matches(self, event_id: int | None = None) -> list[dict]:
        body = {'event_id': event_id} if event_id else {}
        data = await self._request('POST', '/ai-match/', json=body)
        return data.get('matches', [])

    async def get_matches(self) -> list[dict]:
        return await self._request('GET', '/matches/')

    async def update_match_status(self, match_id: int, status: str) -> dict:
        return await self._request('PATCH', f'/matches/{match_id}/', json={'status': status})

    async def get_conversations(self) -> list[dict]:
        return await self._request('GET', '/conversations/')

    async def get_messages(self, conversation_id: int) -> list[dict]:
        return await self._request('GET', f'/conversations/{conversation_id}/messages/')

    async def send_message(self, conversation_id: int, text: str) -> dict:
        return await self._request('POST', f'/conversations/{conversation_id}/send/', json={'text': text})

    async def get_joined_events(self) -> list[dict]:
        return await self._request('GET', '/events/joined/')

    async def join_event(self, token: str) -> dict:
        return await self._request('POST', '/events/join/', json={'token': token})

    async def schedule_meeting(self, action: str = 'create', **fields) -> dict:
        return await self._request('POST', '/schedule-meeting/', json={'action': action, **fields})

    async def close(self) -> None:
        await self._http.aclose()
