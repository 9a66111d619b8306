from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone


def pair_key(user_a_id, user_b_id) -> str:
    low, high = sorted([int(user_a_id), int(user_b_id)])
    return f'{low}:{high}'


class Profile(models.Model):
    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='meetmate_profile')
    email = models.EmailField(blank=True)
    full_name = models.CharField(max_length=120, blank=True)
    title = models.CharField(max_length=120, blank=True)
    company = models.CharField(max_length=120, blank=True)
    location = models.CharField(max_length=160, blank=True)
    bio = models.TextField(blank=True)
    avatar_url = models.URLField(blank=True)
    website = models.URLField(blank=True)
    linkedin_url = models.URLField(blank=True)
    github_url = models.URLField(blank=True)
    skills = models.JSONField(default=list, blank=True)
    interests = models.JSONField(default=list, blank=True)
    goals = models.JSONField(default=list, blank=True)
    is_visible = models.BooleanField(default=True)
    qr_code_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name or f'Profile {self.pk}'


class UserRole(models.Model):
    ROLE_CHOICES = [
        ('attendee', 'Attendee'),
        ('organizer', 'Organizer'),
        ('sponsor', 'Sponsor'),
        ('admin', 'Admin'),
    ]

    user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='roles')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('user', 'role')


class Event(models.Model):
    name = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    location = models.CharField(max_length=160, blank=True)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True)
    organizer = models.ForeignKey(Profile, on_delete=models.SET_NULL, null=True, blank=True, related_name='organized_events')
    qr_token = models.CharField(max_length=64, unique=True, null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class EventAttendee(models.Model):
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name='attendees')
    user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='event_memberships')
    registered_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('event', 'user')


class Match(models.Model):
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='matches_from')
    matched_user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='matches_to')
    event = models.ForeignKey(Event, on_delete=models.CASCADE, null=True, blank=True, related_name='matches')
    match_score = models.PositiveSmallIntegerField(default=0)
    confidence_score = models.FloatField(default=0)
    ai_explanation = models.TextField(blank=True)
    shared_skills = models.JSONField(default=list, blank=True)
    shared_interests = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('user', 'matched_user', 'event')


class Connection(models.Model):
    VIA_CHOICES = [
        ('qr_code', 'QR code'),
        ('match', 'Match'),
        ('event', 'Event'),
        ('manual', 'Manual'),
    ]

    user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='connections_made')
    connected_user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='connections_received')
    connected_via = models.CharField(max_length=20, choices=VIA_CHOICES, default='qr_code')
    match = models.ForeignKey(Match, on_delete=models.SET_NULL, null=True, blank=True, related_name='connections')
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name='connections')
    notes = models.TextField(blank=True)
    # Canonical "low:high" id pair; the unique index is what rejects a second
    # edge for the same two people, whichever direction it was scanned in.
    pair_key = models.CharField(max_length=41, unique=True, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(user=models.F('connected_user')),
                name='connection_no_self_loop',
            ),
        ]

    def save(self, *args, **kwargs):
        self.pair_key = pair_key(self.user_id, self.connected_user_id)
        super().save(*args, **kwargs)


class Conversation(models.Model):
    # user1 always holds the lower profile id so the pair is unique
    user1 = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='conversations_as_first')
    user2 = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='conversations_as_second')
    last_message_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('user1', 'user2')

    def other_participant(self, profile):
        return self.user2 if profile.id == self.user1_id else self.user1

    def has_participant(self, profile) -> bool:
        return profile.id in (self.user1_id, self.user2_id)


class Message(models.Model):
    conversation = models.ForeignKey(Conversation, on_delete=models.CASCADE, related_name='messages')
    sender = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='sent_messages')
    content = models.TextField()
    is_ai_generated = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)


class Meeting(models.Model):
    STATUS_SCHEDULED = 'scheduled'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_RESCHEDULED = 'rescheduled'
    STATUS_CHOICES = [
        (STATUS_SCHEDULED, 'Scheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_RESCHEDULED, 'Rescheduled'),
    ]
    TYPE_CHOICES = [
        ('video', 'Video'),
        ('in_person', 'In person'),
        ('phone', 'Phone'),
        ('coffee', 'Coffee'),
    ]

    organizer = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='organized_meetings')
    attendee = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='attending_meetings')
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name='meetings')
    title = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    meeting_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='video')
    scheduled_at = models.DateTimeField(default=timezone.now)
    duration_minutes = models.PositiveSmallIntegerField(default=30)
    location = models.CharField(max_length=160, blank=True)
    meeting_url = models.URLField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_SCHEDULED)
    ai_suggested = models.BooleanField(default=False)
    reminder_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)


class Notification(models.Model):
    user = models.ForeignKey(Profile, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=40)
    title = models.CharField(max_length=160)
    message = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)
    read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)


class AnalyticsEvent(models.Model):
    user = models.ForeignKey(Profile, on_delete=models.SET_NULL, null=True, blank=True, related_name='analytics_events')
    event = models.ForeignKey(Event, on_delete=models.SET_NULL, null=True, blank=True, related_name='analytics_events')
    event_type = models.CharField(max_length=60)
    event_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
