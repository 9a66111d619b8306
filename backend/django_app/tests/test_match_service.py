"""AI match scoring, persistence and the /ai-match/ endpoint."""

import json

import pytest

from conftest import completion, status_error
from networking import match_service
from networking.models import Event, Match


def analysis(*entries):
    return json.dumps(list(entries))


def entry(index, score, **extra):
    return {
        'index': index,
        'score': score,
        'confidence': extra.get('confidence', 0.8),
        'explanation': extra.get('explanation', f'Candidate {index} fits.'),
        'shared_skills': extra.get('shared_skills', ['python']),
        'shared_interests': extra.get('shared_interests', []),
    }


class TestParseMatchAnalysis:
    def test_prose_wrapped_array(self, alice, bob):
        content = 'Sure! [{"index":0,"score":87,"confidence":0.9,"explanation":"Both ship edge AI."}] Hope it helps.'

        results = match_service.parse_match_analysis(content, [bob])

        assert len(results) == 1
        assert results[0].candidate == bob
        assert results[0].score == 87
        assert results[0].confidence == 0.9

    def test_markdown_fenced_array(self, bob):
        content = '```json\n' + analysis(entry(0, 55)) + '\n```'

        assert match_service.parse_match_analysis(content, [bob])[0].score == 55

    @pytest.mark.parametrize('content', ['', 'no json here', '[{"index": 0, "score": }]', '{"index": 0}'])
    def test_malformed_output_degrades_to_empty(self, bob, content):
        assert match_service.parse_match_analysis(content, [bob]) == []

    def test_out_of_range_and_bad_indexes_are_dropped(self, alice, bob):
        content = analysis(entry(0, 40), entry(5, 99), entry(-1, 99), {'index': 'x', 'score': 99}, entry(1, 70))

        results = match_service.parse_match_analysis(content, [alice, bob])

        assert [r.candidate for r in results] == [bob, alice]

    def test_sorted_descending_and_clamped(self, make_profile):
        candidates = [make_profile(f'c{i}') for i in range(3)]
        content = analysis(entry(0, 10), entry(1, 150, confidence=3), entry(2, 60))

        results = match_service.parse_match_analysis(content, candidates)

        assert [r.score for r in results] == [100, 60, 10]
        assert results[0].confidence == 1.0

    def test_brackets_in_surrounding_prose(self, bob):
        content = 'Notes [draft]: ' + analysis(entry(0, 80)) + ' see [1] for details.'

        results = match_service.parse_match_analysis(content, [bob])

        assert [r.score for r in results] == [80]

    def test_repeated_index_keeps_highest_score(self, bob):
        content = '[{"index":0,"score":90},{"index":0,"score":40}]'

        results = match_service.parse_match_analysis(content, [bob])

        assert [(r.candidate, r.score) for r in results] == [(bob, 90)]


class TestGenerateMatches:
    def test_no_candidates_skips_ai_call(self, alice, fake_ai):
        assert match_service.generate_matches(alice) == []
        fake_ai.chat.completions.create.assert_not_called()

    def test_invisible_profiles_are_not_candidates(self, alice, make_profile, fake_ai):
        make_profile('hidden', is_visible=False)

        assert match_service.candidate_profiles(alice) == []

    def test_candidate_pool_is_bounded(self, alice, make_profile, monkeypatch):
        monkeypatch.setattr(match_service, 'MATCH_CANDIDATE_LIMIT', 3)
        for i in range(5):
            make_profile(f'c{i}')

        assert len(match_service.candidate_profiles(alice)) == 3

    def test_prompt_embeds_both_profiles(self, alice, bob, fake_ai):
        fake_ai.chat.completions.create.return_value = completion('[]')

        match_service.generate_matches(alice)

        messages = fake_ai.chat.completions.create.call_args.kwargs['messages']
        prompt = messages[1]['content']
        assert 'Name: Alice' in prompt
        assert '[0] Name: Bob' in prompt
        assert 'Skills: sales, python' in prompt

    def test_persists_top_results_as_pending(self, alice, make_profile, fake_ai, monkeypatch):
        monkeypatch.setattr(match_service, 'MATCH_PERSIST_LIMIT', 2)
        candidates = [make_profile(f'c{i}') for i in range(3)]
        pool = match_service.candidate_profiles(alice)
        scores = {candidates[0].id: 30, candidates[1].id: 90, candidates[2].id: 60}
        fake_ai.chat.completions.create.return_value = completion(
            analysis(*[entry(i, scores[p.id]) for i, p in enumerate(pool)])
        )

        results = match_service.generate_matches(alice)

        assert [r.score for r in results] == [90, 60, 30]
        stored = Match.objects.filter(user=alice).order_by('-match_score')
        assert [m.match_score for m in stored] == [90, 60]
        assert {m.status for m in stored} == {'pending'}

    def test_regeneration_resets_status(self, alice, bob, fake_ai):
        Match.objects.create(user=alice, matched_user=bob, match_score=10, status='rejected')
        fake_ai.chat.completions.create.return_value = completion(analysis(entry(0, 77)))

        match_service.generate_matches(alice)

        match = Match.objects.get(user=alice, matched_user=bob)
        assert match.match_score == 77
        assert match.status == 'pending'

    def test_repeated_index_stores_one_row_with_top_score(self, alice, bob, fake_ai):
        fake_ai.chat.completions.create.return_value = completion(analysis(entry(0, 90), entry(0, 40)))

        results = match_service.generate_matches(alice)

        assert len(results) == 1
        assert Match.objects.get(user=alice, matched_user=bob).match_score == 90

    def test_event_scope_is_part_of_the_key(self, alice, bob, fake_ai):
        event = Event.objects.create(name='Summit', organizer=alice)
        fake_ai.chat.completions.create.return_value = completion(analysis(entry(0, 50)))

        match_service.generate_matches(alice)
        match_service.generate_matches(alice, event)

        assert Match.objects.filter(user=alice, matched_user=bob).count() == 2


class TestAIMatchEndpoint:
    def test_returns_sorted_matches_with_profiles(self, alice, bob, make_profile, client_for, fake_ai):
        carol = make_profile('carol')
        pool = match_service.candidate_profiles(alice)
        scores = {bob.id: 40, carol.id: 85}
        fake_ai.chat.completions.create.return_value = completion(
            'Here you go: ' + analysis(*[entry(i, scores[p.id]) for i, p in enumerate(pool)])
        )

        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.status_code == 200
        matches = response.json()['matches']
        assert [m['match_score'] for m in matches] == [85, 40]
        assert matches[0]['profile']['full_name'] == 'Carol'
        assert matches[0]['event_id'] is None

    def test_zero_candidates(self, alice, client_for, fake_ai):
        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.status_code == 200
        assert response.json() == {'matches': []}

    def test_malformed_ai_output_returns_empty_list(self, alice, bob, client_for, fake_ai):
        fake_ai.chat.completions.create.return_value = completion('I cannot help with that.')

        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.status_code == 200
        assert response.json() == {'matches': []}

    @pytest.mark.parametrize('upstream, expected', [(429, 429), (402, 402), (503, 500)])
    def test_upstream_errors_are_distinguished(self, alice, bob, client_for, fake_ai, upstream, expected):
        fake_ai.chat.completions.create.side_effect = status_error(upstream)

        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.status_code == expected
        assert 'error' in response.json()

    def test_rate_limit_message(self, alice, bob, client_for, fake_ai):
        fake_ai.chat.completions.create.side_effect = status_error(429)

        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.json() == {'error': 'Rate limit exceeded. Please try again later.'}

    def test_missing_gateway_key_is_500(self, alice, bob, client_for, monkeypatch):
        monkeypatch.setattr('networking.ai_gateway.AI_GATEWAY_API_KEY', '')

        response = client_for(alice).post('/api/ai-match/', {}, format='json')

        assert response.status_code == 500

    def test_unknown_event_is_404(self, alice, client_for, fake_ai):
        response = client_for(alice).post('/api/ai-match/', {'event_id': 999}, format='json')

        assert response.status_code == 404

    def test_accept_and_list_matches(self, alice, bob, client_for):
        match = Match.objects.create(user=alice, matched_user=bob, match_score=70)
        client = client_for(alice)

        response = client.patch(f'/api/matches/{match.id}/', {'status': 'accepted'}, format='json')
        listed = client.get('/api/matches/').json()

        assert response.status_code == 200
        assert response.json()['status'] == 'accepted'
        assert listed[0]['profile']['id'] == bob.id

    def test_cannot_touch_someone_elses_match(self, alice, bob, client_for):
        match = Match.objects.create(user=bob, matched_user=alice, match_score=70)

        response = client_for(alice).patch(f'/api/matches/{match.id}/', {'status': 'accepted'}, format='json')

        assert response.status_code == 404

    def test_invalid_status_rejected(self, alice, bob, client_for):
        match = Match.objects.create(user=alice, matched_user=bob, match_score=70)

        response = client_for(alice).patch(f'/api/matches/{match.id}/', {'status': 'maybe'}, format='json')

        assert response.status_code == 400
