from rest_framework import serializers

from .models import Conversation, Event, EventAttendee, Match, Meeting, Message, Notification, Profile
from .qr_service import public_snapshot


def _validate_string_list(value):
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise serializers.ValidationError('Must be a list of strings.')
    return [item.strip() for item in value if item.strip()]


class ProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = Profile
        exclude = ['user']
        read_only_fields = ['qr_code_id', 'created_at', 'updated_at']

    def validate_skills(self, value):
        return _validate_string_list(value)

    def validate_interests(self, value):
        return _validate_string_list(value)

    def validate_goals(self, value):
        return _validate_string_list(value)


class MatchSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    matched_user_id = serializers.IntegerField(read_only=True)
    event_id = serializers.IntegerField(read_only=True, allow_null=True)
    profile = serializers.SerializerMethodField()

    class Meta:
        model = Match
        fields = [
            'id', 'user_id', 'matched_user_id', 'event_id', 'match_score', 'confidence_score',
            'ai_explanation', 'shared_skills', 'shared_interests', 'status', 'profile',
            'created_at', 'updated_at',
        ]
        read_only_fields = [
            'match_score', 'confidence_score', 'ai_explanation', 'shared_skills',
            'shared_interests', 'created_at', 'updated_at',
        ]

    def get_profile(self, obj):
        return public_snapshot(obj.matched_user)


class MatchStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[Match.STATUS_ACCEPTED, Match.STATUS_REJECTED])


class ConnectionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    connected_via = serializers.CharField()
    created_at = serializers.DateTimeField()
    initiated_by_me = serializers.SerializerMethodField()
    profile = serializers.SerializerMethodField()

    def _viewer_id(self):
        return self.context['profile'].id

    def get_initiated_by_me(self, obj):
        return obj.user_id == self._viewer_id()

    def get_profile(self, obj):
        peer = obj.connected_user if obj.user_id == self._viewer_id() else obj.user
        return public_snapshot(peer)


class EventSerializer(serializers.ModelSerializer):
    attendee_count = serializers.SerializerMethodField()

    class Meta:
        model = Event
        fields = [
            'id', 'name', 'description', 'location', 'start_date', 'end_date',
            'organizer', 'qr_token', 'is_active', 'attendee_count', 'created_at',
        ]
        read_only_fields = ['organizer', 'qr_token', 'created_at']

    def get_attendee_count(self, obj):
        return obj.attendees.count()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        profile = self.context.get('profile')
        if profile is None or instance.organizer_id != profile.id:
            # The join token is only handed out by the organizer.
            data.pop('qr_token', None)
        return data

    def validate(self, attrs):
        start, end = attrs.get('start_date'), attrs.get('end_date')
        if start and end and end < start:
            raise serializers.ValidationError('end_date must be after start_date')
        return attrs


class EventAttendeeSerializer(serializers.ModelSerializer):
    profile = serializers.SerializerMethodField()

    class Meta:
        model = EventAttendee
        fields = ['id', 'event', 'user', 'registered_at', 'profile']

    def get_profile(self, obj):
        profile = obj.user
        return {
            'id': profile.id,
            'full_name': profile.full_name,
            'avatar_url': profile.avatar_url,
            'title': profile.title,
            'company': profile.company,
            'location': profile.location,
            'bio': profile.bio,
            'skills': profile.skills or [],
            'interests': profile.interests or [],
        }


class MeetingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Meeting
        fields = '__all__'


class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = ['id', 'conversation', 'sender', 'content', 'is_ai_generated', 'read_at', 'created_at']


class ConversationSerializer(serializers.ModelSerializer):
    participant = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = ['id', 'participant', 'last_message', 'unread_count', 'last_message_at', 'created_at']

    def get_participant(self, obj):
        other = obj.other_participant(self.context['profile'])
        return {'id': other.id, 'full_name': other.full_name, 'avatar_url': other.avatar_url, 'title': other.title}

    def get_last_message(self, obj):
        last = obj.messages.order_by('-created_at', '-id').first()
        return last.content if last else ''

    def get_unread_count(self, obj):
        return obj.messages.filter(read_at__isnull=True).exclude(sender=self.context['profile']).count()


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'data', 'read', 'created_at']
