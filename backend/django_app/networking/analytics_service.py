import logging
from datetime import timedelta

from django.db.models import Avg, Q
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from .models import AnalyticsEvent, Connection, Event, EventAttendee, Match, Meeting, Profile, UserRole

logger = logging.getLogger(__name__)

ACTIVITY_WINDOW = timedelta(days=7)


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole else 0


def personal_metrics(profile: Profile) -> dict:
    meetings = Meeting.objects.filter(Q(organizer=profile) | Q(attendee=profile))
    total_matches = Match.objects.filter(user=profile).count()
    total_connections = Connection.objects.filter(user=profile).count()
    avg_score = Match.objects.filter(user=profile).aggregate(avg=Avg('match_score'))['avg']

    activity_by_day = {}
    recent = AnalyticsEvent.objects.filter(
        user=profile, created_at__gte=timezone.now() - ACTIVITY_WINDOW
    ).order_by('created_at')
    for event in recent:
        day = timezone.localtime(event.created_at).strftime('%a')
        activity_by_day[day] = activity_by_day.get(day, 0) + 1

    return {
        'metrics': {
            'totalMatches': total_matches,
            'totalConnections': total_connections,
            'totalMeetings': meetings.count(),
            'completedMeetings': meetings.filter(status=Meeting.STATUS_COMPLETED).count(),
            'avgMatchScore': round(avg_score) if avg_score is not None else 0,
            'conversionRate': _percent(total_connections, total_matches),
        },
        'activityByDay': activity_by_day,
    }


def can_view_event_analytics(profile: Profile, event: Event) -> bool:
    if event.organizer_id == profile.id:
        return True
    return UserRole.objects.filter(user=profile, role__in=['organizer', 'admin']).exists()


def organizer_metrics(profile: Profile, event: Event) -> dict:
    if not can_view_event_analytics(profile, event):
        raise PermissionDenied('Unauthorized - organizer role required')

    total_attendees = EventAttendee.objects.filter(event=event).count()
    total_matches = Match.objects.filter(event=event).count()
    total_connections = Connection.objects.filter(event=event).count()

    heatmap = {}
    for analytics_event in AnalyticsEvent.objects.filter(event=event):
        local = timezone.localtime(analytics_event.created_at)
        hours = heatmap.setdefault(local.strftime('%a'), {})
        hours[local.hour] = hours.get(local.hour, 0) + 1

    return {
        'metrics': {
            'totalAttendees': total_attendees,
            'totalMatches': total_matches,
            'totalConnections': total_connections,
            'totalMeetings': Meeting.objects.filter(event=event).count(),
            'matchRate': _percent(total_matches, total_attendees),
            'engagementRate': _percent(total_connections, total_attendees),
        },
        'heatmapData': heatmap,
    }
