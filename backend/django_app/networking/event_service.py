import logging
import secrets

from django.db import IntegrityError, transaction
from rest_framework.exceptions import PermissionDenied

from .models import Connection, Event, EventAttendee, Profile

logger = logging.getLogger(__name__)

EVENT_TOKEN_BYTES = 24


def generate_event_token() -> str:
    return secrets.token_hex(EVENT_TOKEN_BYTES)


def create_event(organizer: Profile, **fields) -> Event:
    fields.setdefault('is_active', True)
    with transaction.atomic():
        event = Event.objects.create(organizer=organizer, qr_token=generate_event_token(), **fields)
        EventAttendee.objects.create(event=event, user=organizer)
    logger.info('Event created: id=%s organizer=%s', event.id, organizer.id)
    return event


def event_for_token(token: str | None) -> Event | None:
    token = (token or '').strip()
    if not token:
        return None
    return Event.objects.filter(qr_token=token, is_active=True).first()


def join_event(profile: Profile, event: Event) -> bool:
    """Add the profile to the event; returns False when already a member."""
    if EventAttendee.objects.filter(event=event, user=profile).exists():
        return False
    try:
        with transaction.atomic():
            EventAttendee.objects.create(event=event, user=profile)
    except IntegrityError:
        return False
    logger.info('Profile %s joined event %s', profile.id, event.id)
    return True


def has_joined(profile: Profile, event: Event) -> bool:
    return EventAttendee.objects.filter(event=event, user=profile).exists()


def rotate_token(profile: Profile, event: Event) -> str:
    if event.organizer_id != profile.id:
        raise PermissionDenied('Only the organizer can rotate the join token')
    event.qr_token = generate_event_token()
    event.save(update_fields=['qr_token'])
    logger.info('Join token rotated for event %s', event.id)
    return event.qr_token


def participants(event: Event):
    return (
        EventAttendee.objects.filter(event=event)
        .select_related('user')
        .order_by('-registered_at')
    )


def event_stats(event: Event) -> dict:
    return {
        'participantCount': EventAttendee.objects.filter(event=event).count(),
        'connectionCount': Connection.objects.filter(event=event).count(),
    }
