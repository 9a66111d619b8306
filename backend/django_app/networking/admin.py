from django.contrib import admin

from .models import (
    AnalyticsEvent,
    Connection,
    Conversation,
    Event,
    EventAttendee,
    Match,
    Meeting,
    Message,
    Notification,
    Profile,
    UserRole,
)


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'company', 'is_visible', 'qr_code_id')
    search_fields = ('full_name', 'email', 'company')


@admin.register(Connection)
class ConnectionAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'connected_user', 'connected_via', 'created_at')


@admin.register(Match)
class MatchAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'matched_user', 'event', 'match_score', 'status')
    list_filter = ('status',)


admin.site.register(UserRole)
admin.site.register(Event)
admin.site.register(EventAttendee)
admin.site.register(Conversation)
admin.site.register(Message)
admin.site.register(Meeting)
admin.site.register(Notification)
admin.site.register(AnalyticsEvent)
