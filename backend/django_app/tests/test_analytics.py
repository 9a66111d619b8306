"""Personal and organizer analytics."""

import pytest

from networking import event_service
from networking.models import AnalyticsEvent, Connection, Match, UserRole


class TestPersonalMetrics:
    def test_empty_profile(self, alice, client_for):
        response = client_for(alice).post('/api/analytics/', {'type': 'personal'}, format='json')

        assert response.status_code == 200
        metrics = response.json()['metrics']
        assert metrics['totalMatches'] == 0
        assert metrics['avgMatchScore'] == 0
        assert metrics['conversionRate'] == 0

    def test_counts_and_rates(self, alice, bob, make_profile, client_for):
        carol = make_profile('carol')
        Match.objects.create(user=alice, matched_user=bob, match_score=90)
        Match.objects.create(user=alice, matched_user=carol, match_score=70)
        Connection.objects.create(user=alice, connected_user=bob)
        AnalyticsEvent.objects.create(user=alice, event_type='qr_connection')

        body = client_for(alice).post('/api/analytics/', {}, format='json').json()

        assert body['metrics']['totalMatches'] == 2
        assert body['metrics']['totalConnections'] == 1
        assert body['metrics']['avgMatchScore'] == 80
        assert body['metrics']['conversionRate'] == 50
        assert sum(body['activityByDay'].values()) == 1


class TestOrganizerMetrics:
    @pytest.fixture
    def event(self, alice, bob):
        event = event_service.create_event(alice, name='Summit')
        event_service.join_event(bob, event)
        Match.objects.create(user=bob, matched_user=alice, event=event, match_score=75)
        return event

    def test_organizer_sees_metrics(self, event, alice, client_for):
        response = client_for(alice).post(
            '/api/analytics/', {'type': 'organizer', 'event_id': event.id}, format='json'
        )

        assert response.status_code == 200
        metrics = response.json()['metrics']
        assert metrics['totalAttendees'] == 2
        assert metrics['totalMatches'] == 1
        assert metrics['matchRate'] == 50

    def test_attendee_is_refused(self, event, bob, client_for):
        response = client_for(bob).post(
            '/api/analytics/', {'type': 'organizer', 'event_id': event.id}, format='json'
        )

        assert response.status_code == 403
        assert response.json() == {'error': 'Unauthorized - organizer role required'}

    def test_admin_role_grants_access(self, event, make_profile, client_for):
        admin = make_profile('root')
        UserRole.objects.create(user=admin, role='admin')

        response = client_for(admin).post(
            '/api/analytics/', {'type': 'organizer', 'event_id': event.id}, format='json'
        )

        assert response.status_code == 200

    def test_unknown_type(self, alice, client_for):
        response = client_for(alice).post('/api/analytics/', {'type': 'sponsor'}, format='json')

        assert response.status_code == 400
