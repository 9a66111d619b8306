"""Async API client, chat session supersession and refetch-on-notify."""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from meetmate_client import (
    ChatMessage,
    ChatSession,
    CreditsDepleted,
    MeetMateClient,
    RateLimitExceeded,
    RealtimeSync,
    Unauthorized,
    classify_error_message,
)
from meetmate_client.chat import FAILURE_REPLY, GREETING


def sse_frame(content):
    return ('data: ' + json.dumps({'choices': [{'delta': {'content': content}}]}) + '\n\n').encode()


def make_client(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MeetMateClient('tok', api_url='http://testserver/api/', http=http)


class TestMeetMateClient:
    @pytest.mark.asyncio
    async def test_sends_bearer_token_and_unwraps_matches(self):
        seen = {}

        def handler(request):
            seen['auth'] = request.headers['Authorization']
            seen['url'] = str(request.url)
            return httpx.Response(200, json={'matches': [{'id': 1}]})

        client = make_client(handler)

        assert await client.generate_matches() == [{'id': 1}]
        assert seen == {'auth': 'Bearer tok', 'url': 'http://testserver/api/ai-match/'}
        await client.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize('status, error_type', [(401, Unauthorized), (429, RateLimitExceeded), (402, CreditsDepleted)])
    async def test_error_mapping(self, status, error_type):
        client = make_client(lambda request: httpx.Response(status, json={'error': 'nope'}))

        with pytest.raises(error_type) as excinfo:
            await client.get_profile()

        assert excinfo.value.message == 'nope'
        assert excinfo.value.status_code == status

    @pytest.mark.parametrize('message, category', [
        ('Rate limit exceeded. Please try again later.', 'rate_limit'),
        ('AI credits depleted. Please add credits.', 'credits'),
        ('Unauthorized', 'unauthorized'),
        ('boom', 'generic'),
    ])
    def test_classify_error_message(self, message, category):
        assert classify_error_message(message) == category


class TestChatSession:
    @pytest.mark.asyncio
    async def test_streams_reply_into_transcript(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, content=sse_frame('Hi ') + sse_frame('there') + b'data: [DONE]\n\n')

        session = ChatSession(make_client(handler))

        reply = await session.ask('hello')

        assert reply == 'Hi there'
        assert bodies == [{'message': 'hello', 'conversation_history': [{'sender': 'ai', 'content': GREETING}]}]
        assert [(m.sender, m.content) for m in session.transcript[1:]] == [('user', 'hello'), ('ai', 'Hi there')]
        assert not session.is_typing

    @pytest.mark.asyncio
    async def test_new_message_supersedes_inflight_reply(self):
        started = asyncio.Event()
        never = asyncio.Event()
        histories = {}

        async def slow_body():
            yield sse_frame('Partial')
            started.set()
            await never.wait()

        async def handler(request):
            body = json.loads(request.content)
            histories[body['message']] = body['conversation_history']
            if body['message'] == 'A':
                return httpx.Response(200, content=slow_body())
            return httpx.Response(200, content=sse_frame('Answer B') + b'data: [DONE]\n\n')

        session = ChatSession(make_client(handler))

        first = asyncio.create_task(session.ask('A'))
        await asyncio.wait_for(started.wait(), timeout=1)
        second = await session.ask('B')

        assert await first is None
        assert second == 'Answer B'
        assert [(m.sender, m.content) for m in session.transcript] == [
            ('ai', GREETING),
            ('user', 'A'),
            ('user', 'B'),
            ('ai', 'Answer B'),
        ]
        assert histories['B'] == [{'sender': 'ai', 'content': GREETING}, {'sender': 'user', 'content': 'A'}]

    @pytest.mark.asyncio
    async def test_rate_limit_shows_server_message(self):
        def handler(request):
            return httpx.Response(429, json={'error': 'Rate limit exceeded. Please try again later.'})

        session = ChatSession(make_client(handler))

        reply = await session.ask('hello')

        assert reply == 'Rate limit exceeded. Please try again later.'
        assert isinstance(session.transcript[-1].error, RateLimitExceeded)

    @pytest.mark.asyncio
    async def test_failed_reply_left_out_of_next_history(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            if len(bodies) == 1:
                return httpx.Response(500, json={'error': 'Internal server error'})
            return httpx.Response(200, content=sse_frame('ok') + b'data: [DONE]\n\n')

        session = ChatSession(make_client(handler))

        assert await session.ask('one') == FAILURE_REPLY
        await session.ask('two')

        assert bodies[1]['conversation_history'] == [
            {'sender': 'ai', 'content': GREETING},
            {'sender': 'user', 'content': 'one'},
        ]

    def test_history_is_bounded(self):
        session = ChatSession(make_client(lambda request: httpx.Response(200)), history_limit=2)
        session.transcript.extend(ChatMessage('user', str(i)) for i in range(5))
        captured = {}

        async def fake_exchange(content, history):
            captured['history'] = history
            return ''

        session._exchange = fake_exchange

        async def run():
            await session.send('next')

        asyncio.run(run())

        assert captured['history'] == [{'sender': 'user', 'content': '3'}, {'sender': 'user', 'content': '4'}]


class TestRealtimeSync:
    @pytest.mark.asyncio
    async def test_refetches_only_known_tables(self):
        matches = AsyncMock(side_effect=[[{'id': 1}], [{'id': 1}, {'id': 2}]])
        sync = RealtimeSync({'matches': matches})

        await sync.refresh_all()
        handled = await sync.handle({'table': 'matches', 'event': 'INSERT', 'id': 2})
        ignored = await sync.handle({'table': 'meetings', 'event': 'INSERT', 'id': 9})

        assert handled is True
        assert ignored is False
        assert sync.state['matches'] == [{'id': 1}, {'id': 2}]
        assert matches.await_count == 2

    def test_subscribe_frames(self):
        sync = RealtimeSync({'matches': AsyncMock(), 'notifications': AsyncMock()})

        assert sync.subscribe_frames() == [
            {'action': 'subscribe', 'table': 'matches'},
            {'action': 'subscribe', 'table': 'notifications'},
        ]

    @pytest.mark.asyncio
    async def test_run_consumes_frames(self):
        conversations = AsyncMock(return_value=[])
        sync = RealtimeSync({'conversations': conversations})

        async def frames():
            yield {'table': 'conversations', 'event': 'UPDATE', 'id': 1}
            yield {'table': 'conversations', 'event': 'INSERT', 'id': 2}

        await sync.run(frames())

        assert conversations.await_count == 2
