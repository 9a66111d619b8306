from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import (
    AIChatView,
    AIMatchView,
    AnalyticsView,
    AuthMeView,
    AuthTokenView,
    ConnectionViewSet,
    ConversationViewSet,
    EventViewSet,
    HumanVerifyView,
    LogoutView,
    MatchViewSet,
    MeetingViewSet,
    NotificationViewSet,
    ProfileMeView,
    QRConnectView,
    ScheduleMeetingView,
)

router = DefaultRouter()
router.register(r'connections', ConnectionViewSet, basename='connection')
router.register(r'matches', MatchViewSet, basename='match')
router.register(r'meetings', MeetingViewSet, basename='meeting')
router.register(r'events', EventViewSet, basename='event')
router.register(r'conversations', ConversationViewSet, basename='conversation')
router.register(r'notifications', NotificationViewSet, basename='notification')

urlpatterns = [
    path('profiles/me/', ProfileMeView.as_view(), name='profile-me'),
    path('qr-connect/', QRConnectView.as_view(), name='qr-connect'),
    path('ai-match/', AIMatchView.as_view(), name='ai-match'),
    path('ai-chat/', AIChatView.as_view(), name='ai-chat'),
    path('schedule-meeting/', ScheduleMeetingView.as_view(), name='schedule-meeting'),
    path('analytics/', AnalyticsView.as_view(), name='analytics'),
    path('auth/me/', AuthMeView.as_view(), name='auth-me'),
    path('auth/token/', AuthTokenView.as_view(), name='auth-token'),
    path('auth/human-verify/', HumanVerifyView.as_view(), name='human-verify'),
    path('auth/logout/', LogoutView.as_view(), name='auth-logout'),
]
urlpatterns += router.urls
