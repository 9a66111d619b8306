import logging
import os

from django.db.models import Q
from django.utils import timezone

from . import ai_gateway
from .models import Match, Meeting, Profile

logger = logging.getLogger(__name__)

CHAT_HISTORY_LIMIT = int(os.environ.get('CHAT_HISTORY_LIMIT', '10'))
CONTEXT_ROW_LIMIT = 5
STREAM_DONE = b'data: [DONE]\n\n'

SYSTEM_PROMPT_TEMPLATE = (
    'You are MeetMate AI, a friendly and helpful networking assistant for professional conferences.\n\n'
    'USER CONTEXT:\n'
    'Name: {name}\n'
    'Title: {title}\n'
    'Company: {company}\n'
    'Skills: {skills}\n'
    'Interests: {interests}\n\n'
    'TOP MATCHES:\n'
    '{matches}\n\n'
    'UPCOMING MEETINGS:\n'
    '{meetings}\n\n'
    'CAPABILITIES:\n'
    '1. Help find and explain matches\n'
    '2. Suggest conversation starters and talking points\n'
    '3. Draft follow-up messages\n'
    '4. Recommend meeting times\n'
    '5. Provide networking tips\n'
    '6. Answer questions about connections\n\n'
    'Be conversational, helpful, and proactive. Suggest specific actions when appropriate.\n'
    'Keep responses concise but informative (2-3 sentences max unless asked for details).'
)


def build_system_prompt(profile: Profile) -> str:
    matches = (
        Match.objects.filter(user=profile)
        .select_related('matched_user')
        .order_by('-match_score')[:CONTEXT_ROW_LIMIT]
    )
    meetings = (
        Meeting.objects.filter(Q(organizer=profile) | Q(attendee=profile))
        .filter(scheduled_at__gte=timezone.now())
        .select_related('organizer', 'attendee')
        .order_by('scheduled_at')[:CONTEXT_ROW_LIMIT]
    )

    match_lines = [
        f'- {m.matched_user.full_name} ({m.matched_user.title} at {m.matched_user.company}) - {m.match_score}% match'
        for m in matches
    ]
    meeting_lines = []
    for meeting in meetings:
        other = meeting.attendee if meeting.organizer_id == profile.id else meeting.organizer
        when = timezone.localtime(meeting.scheduled_at).strftime('%Y-%m-%d %H:%M')
        meeting_lines.append(f'- {meeting.title} with {other.full_name} at {when}')

    return SYSTEM_PROMPT_TEMPLATE.format(
        name=profile.full_name or 'Attendee',
        title=profile.title or 'Professional',
        company=profile.company or 'Company',
        skills=', '.join(profile.skills or []) or 'Various',
        interests=', '.join(profile.interests or []) or 'Networking',
        matches='\n'.join(match_lines) or 'No matches yet',
        meetings='\n'.join(meeting_lines) or 'No upcoming meetings',
    )


def build_messages(profile: Profile, message: str, history: list | None) -> list[dict]:
    messages = [{'role': 'system', 'content': build_system_prompt(profile)}]
    for turn in (history or [])[-CHAT_HISTORY_LIMIT:]:
        if not isinstance(turn, dict):
            continue
        content = str(turn.get('content') or '')
        if not content:
            continue
        role = 'user' if turn.get('sender', turn.get('role')) == 'user' else 'assistant'
        messages.append({'role': role, 'content': content})
    messages.append({'role': 'user', 'content': message})
    return messages


def _frames(completion):
    try:
        for chunk in completion:
            yield f'data: {chunk.model_dump_json(exclude_none=True)}\n\n'.encode('utf-8')
    except Exception:
        # Headers are already out, so the best we can do is end the stream.
        logger.exception('AI chat stream interrupted')
    yield STREAM_DONE


def stream_reply(profile: Profile, message: str, history: list | None = None):
    """Open the upstream stream and return an iterator of SSE frames."""
    completion = ai_gateway.stream(build_messages(profile, message, history), purpose='chat')
    logger.info('AI chat stream opened for profile=%s', profile.id)
    return _frames(completion)
