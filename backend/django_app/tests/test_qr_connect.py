"""Token store and QR connection handshake."""

from unittest.mock import patch

import pytest
from django.db import IntegrityError, transaction

from networking import qr_service
from networking.models import AnalyticsEvent, Connection, Notification


class TestEnsureToken:
    def test_mints_hex_token_once(self, alice):
        token = qr_service.ensure_token(alice)

        assert len(token) == 32
        int(token, 16)
        alice.refresh_from_db()
        assert alice.qr_code_id == token

    def test_second_call_returns_same_token(self, alice):
        first = qr_service.ensure_token(alice)
        second = qr_service.ensure_token(alice)

        assert first == second

    def test_stale_instance_does_not_overwrite(self, alice):
        from networking.models import Profile

        stale = Profile.objects.get(id=alice.id)
        token = qr_service.ensure_token(alice)

        assert qr_service.ensure_token(stale) == token

    def test_tokens_differ_between_profiles(self, alice, bob):
        assert qr_service.ensure_token(alice) != qr_service.ensure_token(bob)


class TestScanToken:
    def test_unknown_token_is_not_found_without_writes(self, alice):
        result = qr_service.scan_token(alice, 'deadbeef')

        assert result.status == 'not_found'
        assert Connection.objects.count() == 0
        assert Notification.objects.count() == 0
        assert AnalyticsEvent.objects.count() == 0

    def test_empty_token_is_not_found(self, alice):
        assert qr_service.scan_token(alice, '').status == 'not_found'
        assert qr_service.scan_token(alice, None).status == 'not_found'

    @pytest.mark.parametrize('token', [123, ['abc'], {'id': 'abc'}])
    def test_non_string_token_is_not_found(self, alice, token):
        assert qr_service.scan_token(alice, token).status == 'not_found'
        assert Connection.objects.count() == 0

    def test_own_token_is_self_connect(self, alice):
        token = qr_service.ensure_token(alice)

        result = qr_service.scan_token(alice, token)

        assert result.status == 'self_connect'
        assert Connection.objects.count() == 0

    def test_own_token_is_self_connect_even_when_connected(self, alice, bob):
        qr_service.scan_token(alice, qr_service.ensure_token(bob))

        assert qr_service.scan_token(alice, qr_service.ensure_token(alice)).status == 'self_connect'

    def test_first_scan_creates_single_directed_edge(self, alice, bob):
        token = qr_service.ensure_token(bob)

        result = qr_service.scan_token(alice, token)

        assert result.status == 'success'
        connection = Connection.objects.get()
        assert connection.user_id == alice.id
        assert connection.connected_user_id == bob.id
        assert connection.connected_via == 'qr_code'

    def test_success_emits_notification_and_analytics(self, alice, bob):
        qr_service.scan_token(alice, qr_service.ensure_token(bob))

        notification = Notification.objects.get()
        assert notification.user_id == bob.id
        assert notification.type == 'new_connection'
        assert 'Alice' in notification.message
        analytics = AnalyticsEvent.objects.get()
        assert analytics.user_id == alice.id
        assert analytics.event_data == {'connected_to': bob.id}

    def test_second_scan_is_already_connected(self, alice, bob):
        token = qr_service.ensure_token(bob)

        first = qr_service.scan_token(alice, token)
        second = qr_service.scan_token(alice, token)

        assert (first.status, second.status) == ('success', 'already_connected')
        assert second.target == bob
        assert Connection.objects.count() == 1

    def test_reverse_scan_is_already_connected(self, alice, bob):
        qr_service.scan_token(alice, qr_service.ensure_token(bob))

        result = qr_service.scan_token(bob, qr_service.ensure_token(alice))

        assert result.status == 'already_connected'
        assert Connection.objects.count() == 1

    def test_pair_constraint_rejects_reverse_edge(self, alice, bob):
        Connection.objects.create(user=alice, connected_user=bob)

        with pytest.raises(IntegrityError), transaction.atomic():
            Connection.objects.create(user=bob, connected_user=alice)

    def test_lost_race_reports_already_connected(self, alice, bob):
        token = qr_service.ensure_token(bob)
        # Simulate a concurrent scan committing between the check and the insert.
        Connection.objects.create(user=bob, connected_user=alice)

        with patch.object(qr_service, 'are_connected', return_value=False):
            result = qr_service.scan_token(alice, token)

        assert result.status == 'already_connected'
        assert Connection.objects.count() == 1

    def test_side_effect_failure_keeps_connection(self, alice, bob):
        token = qr_service.ensure_token(bob)

        with patch.object(Notification.objects, 'create', side_effect=RuntimeError('boom')):
            result = qr_service.scan_token(alice, token)

        assert result.status == 'success'
        assert len(result.side_effect_errors) == 1
        assert Connection.objects.count() == 1
        assert AnalyticsEvent.objects.count() == 1


class TestQRConnectEndpoint:
    def test_generate_is_idempotent(self, alice, client_for):
        client = client_for(alice)

        first = client.post('/api/qr-connect/', {'action': 'generate'}, format='json')
        second = client.post('/api/qr-connect/', {'action': 'generate'}, format='json')

        assert first.status_code == 200
        assert first.json()['qr_code_id']
        assert first.json()['name'] == 'Alice'
        assert first.json()['qr_code_id'] == second.json()['qr_code_id']

    def test_scan_then_rescan(self, alice, bob, client_for):
        token = qr_service.ensure_token(bob)
        client = client_for(alice)

        first = client.post('/api/qr-connect/', {'action': 'scan', 'qr_code_id': token}, format='json')
        second = client.post('/api/qr-connect/', {'action': 'scan', 'qr_code_id': token}, format='json')

        assert first.status_code == 200
        assert first.json()['status'] == 'success'
        assert first.json()['connectedUserName'] == 'Bob'
        profile = first.json()['connectedUserProfile']
        assert profile['company'] == 'Shelfly'
        assert profile['linkedin_url'] == 'https://www.linkedin.com/in/bob'
        assert second.json()['status'] == 'already_connected'

    def test_scan_own_token(self, alice, client_for):
        token = qr_service.ensure_token(alice)

        response = client_for(alice).post('/api/qr-connect/', {'action': 'scan', 'qr_code_id': token}, format='json')

        assert response.status_code == 200
        assert response.json() == {'status': 'self_connect', 'message': "You can't connect with yourself"}

    def test_scan_unknown_token(self, alice, client_for):
        response = client_for(alice).post('/api/qr-connect/', {'action': 'scan', 'qr_code_id': 'nope'}, format='json')

        assert response.status_code == 200
        assert response.json()['status'] == 'not_found'

    def test_scan_numeric_token(self, alice, client_for):
        response = client_for(alice).post('/api/qr-connect/', {'action': 'scan', 'qr_code_id': 123}, format='json')

        assert response.status_code == 200
        assert response.json()['status'] == 'not_found'

    def test_invalid_action(self, alice, client_for):
        response = client_for(alice).post('/api/qr-connect/', {'action': 'dance'}, format='json')

        assert response.status_code == 400

    def test_connections_list_shows_peer_from_both_sides(self, alice, bob, client_for):
        qr_service.scan_token(alice, qr_service.ensure_token(bob))

        mine = client_for(alice).get('/api/connections/').json()
        theirs = client_for(bob).get('/api/connections/').json()

        assert mine[0]['profile']['id'] == bob.id
        assert mine[0]['initiated_by_me'] is True
        assert theirs[0]['profile']['id'] == alice.id
        assert theirs[0]['initiated_by_me'] is False
