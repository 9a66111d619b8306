import logging
import os
from dataclasses import dataclass, field

from . import ai_gateway
from .models import Conversation, Event, Match, Profile
from .qr_service import are_connected

logger = logging.getLogger(__name__)

MATCH_CANDIDATE_LIMIT = int(os.environ.get('MATCH_CANDIDATE_LIMIT', '20'))
MATCH_PERSIST_LIMIT = int(os.environ.get('MATCH_PERSIST_LIMIT', '10'))
MATCH_SYSTEM_PROMPT = 'You are a professional networking matchmaking AI. Respond only with valid JSON.'
MATCH_PROMPT_TEMPLATE = (
    'You are an AI matchmaking engine for a professional conference networking app.\n\n'
    'Analyze the user and candidates to generate match scores and explanations.\n\n'
    'USER PROFILE:\n'
    '{user_profile}\n\n'
    'CANDIDATE PROFILES:\n'
    '{candidates}\n\n'
    'For each candidate, provide a match analysis. Return JSON array with objects containing:\n'
    '- index: candidate index number\n'
    '- score: match score 0-100\n'
    '- confidence: confidence level 0.0-1.0\n'
    '- explanation: 1-2 sentence explanation of why they match\n'
    '- shared_skills: array of overlapping skills\n'
    '- shared_interests: array of overlapping interests\n\n'
    'Focus on complementary skills, shared interests, and potential collaboration opportunities.\n'
    'Return ONLY valid JSON array, no other text.'
)


@dataclass
class MatchResult:
    candidate: Profile
    score: int
    confidence: float
    explanation: str
    shared_skills: list = field(default_factory=list)
    shared_interests: list = field(default_factory=list)

    def as_payload(self, user: Profile, event_id) -> dict:
        candidate = self.candidate
        return {
            'user_id': user.id,
            'matched_user_id': candidate.id,
            'event_id': event_id,
            'match_score': self.score,
            'confidence_score': self.confidence,
            'ai_explanation': self.explanation,
            'shared_skills': self.shared_skills,
            'shared_interests': self.shared_interests,
            'profile': {
                'id': candidate.id,
                'full_name': candidate.full_name,
                'title': candidate.title,
                'company': candidate.company,
                'location': candidate.location,
                'avatar_url': candidate.avatar_url,
                'skills': candidate.skills or [],
                'interests': candidate.interests or [],
                'bio': candidate.bio,
            },
        }


def _describe(profile: Profile) -> str:
    return (
        f'Name: {profile.full_name}\n'
        f'Title: {profile.title}\n'
        f'Company: {profile.company}\n'
        f'Skills: {", ".join(profile.skills or [])}\n'
        f'Interests: {", ".join(profile.interests or [])}\n'
        f'Goals: {", ".join(profile.goals or [])}\n'
        f'Bio: {profile.bio}'
    )


def _render_prompt(user: Profile, candidates: list[Profile]) -> str:
    blocks = [f'[{index}] {_describe(candidate)}' for index, candidate in enumerate(candidates)]
    return (
        MATCH_PROMPT_TEMPLATE
        .replace('{user_profile}', _describe(user))
        .replace('{candidates}', '\n\n'.join(blocks))
    )


def _clamp(value, low, high, default):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item not in (None, '')]


def parse_match_analysis(content: str, candidates: list[Profile]) -> list[MatchResult]:
    best = {}
    for analysis in ai_gateway.extract_json_array(content):
        if not isinstance(analysis, dict):
            continue
        index = analysis.get('index')
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(candidates):
            continue
        result = MatchResult(
            candidate=candidates[index],
            score=int(_clamp(analysis.get('score'), 0, 100, 0)),
            confidence=_clamp(analysis.get('confidence'), 0.0, 1.0, 0.0),
            explanation=str(analysis.get('explanation') or '').strip(),
            shared_skills=_string_list(analysis.get('shared_skills')),
            shared_interests=_string_list(analysis.get('shared_interests')),
        )
        # One result per candidate; a repeated index keeps its highest score.
        if index not in best or result.score > best[index].score:
            best[index] = result
    return sorted(best.values(), key=lambda r: r.score, reverse=True)


def candidate_profiles(user: Profile) -> list[Profile]:
    return list(
        Profile.objects.exclude(id=user.id)
        .filter(is_visible=True)
        .order_by('-updated_at')[:MATCH_CANDIDATE_LIMIT]
    )


def _persist(user: Profile, event: Event | None, results: list[MatchResult]) -> None:
    for result in results[:MATCH_PERSIST_LIMIT]:
        Match.objects.update_or_create(
            user=user,
            matched_user=result.candidate,
            event=event,
            defaults={
                'match_score': result.score,
                'confidence_score': result.confidence,
                'ai_explanation': result.explanation,
                'shared_skills': result.shared_skills,
                'shared_interests': result.shared_interests,
                'status': Match.STATUS_PENDING,
            },
        )


def generate_matches(user: Profile, event: Event | None = None) -> list[MatchResult]:
    candidates = candidate_profiles(user)
    if not candidates:
        return []

    content = ai_gateway.complete(
        [
            {'role': 'system', 'content': MATCH_SYSTEM_PROMPT},
            {'role': 'user', 'content': _render_prompt(user, candidates)},
        ],
        purpose='analysis',
    )
    results = parse_match_analysis(content, candidates)
    _persist(user, event, results)
    logger.info('Generated %s matches for profile=%s event=%s', len(results), user.id, event.id if event else None)
    return results


def has_match(profile_a: Profile, profile_b: Profile) -> bool:
    return Match.objects.filter(user=profile_a, matched_user=profile_b).exclude(
        status=Match.STATUS_REJECTED
    ).exists() or Match.objects.filter(user=profile_b, matched_user=profile_a).exclude(
        status=Match.STATUS_REJECTED
    ).exists()


def can_message_profiles(profile_a: Profile, profile_b: Profile) -> bool:
    if profile_a.id == profile_b.id:
        return False
    if Conversation.objects.filter(
        user1_id=min(profile_a.id, profile_b.id), user2_id=max(profile_a.id, profile_b.id)
    ).exists():
        return True
    return are_connected(profile_a, profile_b) or has_match(profile_a, profile_b)
