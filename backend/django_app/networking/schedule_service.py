import logging

from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework.exceptions import NotFound, ValidationError

from . import ai_gateway
from .models import AnalyticsEvent, Event, Meeting, Notification, Profile

logger = logging.getLogger(__name__)

SUGGESTION_COUNT = 3
SCHEDULER_SYSTEM_PROMPT = 'You are a scheduling assistant. Return only valid JSON.'
SUGGEST_PROMPT_TEMPLATE = (
    'Given the existing meetings, suggest 3 optimal time slots for a new {duration}-minute meeting.\n\n'
    'EXISTING MEETINGS:\n'
    '{meetings}\n\n'
    'CONSTRAINTS:\n'
    '- Business hours only (9 AM - 6 PM)\n'
    '- At least 15 minute buffer between meetings\n'
    '- Prefer mornings for important meetings\n'
    '- Consider time zones\n\n'
    'Return JSON array with 3 suggestions:\n'
    '[\n'
    '  {{ "datetime": "ISO datetime string", "reason": "brief reason" }}\n'
    ']\n\n'
    'Only return valid JSON, no other text.'
)
EDITABLE_FIELDS = ('title', 'meeting_type', 'scheduled_at', 'duration_minutes', 'location')


def _participant_filter(profile_id):
    return Q(organizer_id=profile_id) | Q(attendee_id=profile_id)


def _parse_when(value):
    if not value:
        return None
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise ValidationError({'scheduled_at': 'Invalid datetime'})
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def _duration(value, default=30) -> int:
    if value in (None, ''):
        return default
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise ValidationError({'duration_minutes': 'Must be an integer'})
    if minutes <= 0:
        raise ValidationError({'duration_minutes': 'Must be positive'})
    return minutes


def _meeting_type(value) -> str:
    allowed = {choice for choice, _ in Meeting.TYPE_CHOICES}
    meeting_type = value or 'video'
    if meeting_type not in allowed:
        raise ValidationError({'meeting_type': f'Must be one of {sorted(allowed)}'})
    return meeting_type


def create_meeting(organizer: Profile, data: dict) -> Meeting:
    attendee_id = data.get('attendee_id')
    title = (data.get('title') or '').strip()
    scheduled_at = data.get('scheduled_at')
    if not attendee_id or not title or not scheduled_at:
        raise ValidationError('Missing required fields')

    try:
        attendee = Profile.objects.get(id=attendee_id)
    except (Profile.DoesNotExist, ValueError):
        raise NotFound('Attendee not found')

    event = None
    if data.get('event_id'):
        event = Event.objects.filter(id=data['event_id']).first()

    meeting = Meeting.objects.create(
        organizer=organizer,
        attendee=attendee,
        event=event,
        title=title,
        meeting_type=_meeting_type(data.get('meeting_type')),
        scheduled_at=_parse_when(scheduled_at),
        duration_minutes=_duration(data.get('duration_minutes')),
        location=data.get('location') or '',
        status=Meeting.STATUS_SCHEDULED,
    )

    try:
        Notification.objects.create(
            user=attendee,
            type='meeting',
            title='New Meeting Scheduled',
            message=f'You have a new meeting: {title}',
            data={'meeting_id': meeting.id},
        )
        AnalyticsEvent.objects.create(
            user=organizer,
            event=event,
            event_type='meeting_scheduled',
            event_data={'meeting_id': meeting.id, 'attendee_id': attendee.id},
        )
    except Exception:
        logger.exception('Meeting side effects failed: meeting=%s', meeting.id)

    logger.info('Meeting created: %s', meeting.id)
    return meeting


def suggest_times(organizer: Profile, data: dict) -> list[dict]:
    duration = _duration(data.get('duration_minutes'))
    participants = _participant_filter(organizer.id)
    if data.get('attendee_id'):
        participants |= _participant_filter(data['attendee_id'])
    existing = (
        Meeting.objects.filter(participants, scheduled_at__gte=timezone.now())
        .exclude(status=Meeting.STATUS_CANCELLED)
        .order_by('scheduled_at')
    )
    lines = [
        f'- {timezone.localtime(m.scheduled_at).isoformat()} ({m.duration_minutes} min)'
        for m in existing
    ]
    prompt = SUGGEST_PROMPT_TEMPLATE.format(duration=duration, meetings='\n'.join(lines) or 'No existing meetings')
    content = ai_gateway.complete(
        [
            {'role': 'system', 'content': SCHEDULER_SYSTEM_PROMPT},
            {'role': 'user', 'content': prompt},
        ],
        purpose='suggestion',
    )
    suggestions = []
    for item in ai_gateway.extract_json_array(content):
        if isinstance(item, dict) and item.get('datetime'):
            suggestions.append({'datetime': str(item['datetime']), 'reason': str(item.get('reason') or '')})
    return suggestions[:SUGGESTION_COUNT]


def _own_meeting(profile: Profile, meeting_id) -> Meeting:
    if not meeting_id:
        raise ValidationError('meeting_id is required')
    meeting = Meeting.objects.filter(_participant_filter(profile.id), id=meeting_id).first()
    if meeting is None:
        raise NotFound('Meeting not found')
    return meeting


def update_meeting(profile: Profile, data: dict) -> Meeting:
    meeting = _own_meeting(profile, data.get('meeting_id'))
    for name in EDITABLE_FIELDS:
        if name not in data or data[name] is None:
            continue
        value = data[name]
        if name == 'scheduled_at':
            value = _parse_when(value)
        elif name == 'duration_minutes':
            value = _duration(value)
        elif name == 'meeting_type':
            value = _meeting_type(value)
        setattr(meeting, name, value)
    meeting.status = Meeting.STATUS_RESCHEDULED
    meeting.save()
    logger.info('Meeting rescheduled: %s', meeting.id)
    return meeting


def cancel_meeting(profile: Profile, data: dict) -> Meeting:
    meeting = _own_meeting(profile, data.get('meeting_id'))
    meeting.status = Meeting.STATUS_CANCELLED
    meeting.save(update_fields=['status', 'updated_at'])
    logger.info('Meeting cancelled: %s', meeting.id)
    return meeting
