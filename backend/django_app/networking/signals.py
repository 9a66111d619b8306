from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Connection, Conversation, Event, EventAttendee, Match, Meeting, Message, Notification
from .realtime import publish_change

TABLE_NAMES = {
    Match: 'matches',
    Connection: 'connections',
    Conversation: 'conversations',
    Message: 'messages',
    Event: 'events',
    EventAttendee: 'event_attendees',
    Meeting: 'meetings',
    Notification: 'notifications',
}


def _owners(instance):
    if isinstance(instance, Match):
        return [instance.user_id]
    if isinstance(instance, Connection):
        return [instance.user_id, instance.connected_user_id]
    if isinstance(instance, Conversation):
        return [instance.user1_id, instance.user2_id]
    if isinstance(instance, Message):
        conversation = instance.conversation
        return [conversation.user1_id, conversation.user2_id]
    if isinstance(instance, Event):
        return [instance.organizer_id]
    if isinstance(instance, EventAttendee):
        return [instance.user_id, instance.event.organizer_id]
    if isinstance(instance, Meeting):
        return [instance.organizer_id, instance.attendee_id]
    if isinstance(instance, Notification):
        return [instance.user_id]
    return []


def _publish_on_commit(table, event, instance):
    # Django clears a deleted instance's pk once post_delete returns.
    transaction.on_commit(partial(publish_change, table, event, instance.pk, _owners(instance)))


@receiver(post_save)
def row_saved(sender, instance, created, **kwargs):
    table = TABLE_NAMES.get(sender)
    if table is None or kwargs.get('raw'):
        return
    _publish_on_commit(table, 'INSERT' if created else 'UPDATE', instance)


@receiver(post_delete)
def row_deleted(sender, instance, **kwargs):
    table = TABLE_NAMES.get(sender)
    if table is None:
        return
    _publish_on_commit(table, 'DELETE', instance)
