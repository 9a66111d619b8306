import logging
import uuid
from dataclasses import dataclass, field

from django.db import IntegrityError, transaction
from django.db.models import Q

from .models import AnalyticsEvent, Connection, Notification, Profile

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 'success'
STATUS_NOT_FOUND = 'not_found'
STATUS_SELF_CONNECT = 'self_connect'
STATUS_ALREADY_CONNECTED = 'already_connected'

MESSAGES = {
    STATUS_SUCCESS: "You're now connected!",
    STATUS_NOT_FOUND: 'Invalid or expired QR code',
    STATUS_SELF_CONNECT: "You can't connect with yourself",
    STATUS_ALREADY_CONNECTED: "You're already connected",
}


@dataclass
class ScanResult:
    status: str
    target: Profile | None = None
    connection: Connection | None = None
    side_effect_errors: list = field(default_factory=list)

    @property
    def message(self) -> str:
        return MESSAGES[self.status]

    def as_payload(self) -> dict:
        payload = {'status': self.status, 'message': self.message}
        if self.target is not None:
            payload['connectedUserName'] = self.target.full_name
            payload['connectedUserProfile'] = public_snapshot(self.target)
        return payload


def public_snapshot(profile: Profile) -> dict:
    return {
        'id': profile.id,
        'full_name': profile.full_name,
        'title': profile.title,
        'company': profile.company,
        'bio': profile.bio,
        'avatar_url': profile.avatar_url,
        'skills': profile.skills or [],
        'interests': profile.interests or [],
        'linkedin_url': profile.linkedin_url,
        'github_url': profile.github_url,
        'website': profile.website,
    }


def _new_token() -> str:
    return uuid.uuid4().hex


def ensure_token(profile: Profile) -> str:
    if profile.qr_code_id:
        return profile.qr_code_id
    token = _new_token()
    # Only claim the slot if no concurrent request minted one first.
    updated = Profile.objects.filter(id=profile.id, qr_code_id__isnull=True).update(qr_code_id=token)
    if not updated:
        profile.refresh_from_db(fields=['qr_code_id'])
        return profile.qr_code_id
    profile.qr_code_id = token
    logger.info('Minted QR token for profile=%s', profile.id)
    return token


def connection_between(profile_a: Profile, profile_b: Profile) -> Connection | None:
    return Connection.objects.filter(
        Q(user=profile_a, connected_user=profile_b) | Q(user=profile_b, connected_user=profile_a)
    ).first()


def are_connected(profile_a: Profile, profile_b: Profile) -> bool:
    return connection_between(profile_a, profile_b) is not None


def _record_side_effects(scanner: Profile, target: Profile, result: ScanResult) -> None:
    try:
        Notification.objects.create(
            user=target,
            type='new_connection',
            title='New Connection!',
            message=f'{scanner.full_name or "Someone"} connected with you via QR code',
            data={'connected_user_id': scanner.id},
        )
    except Exception as exc:
        logger.exception('Connection notification failed: scanner=%s target=%s', scanner.id, target.id)
        result.side_effect_errors.append(exc)

    try:
        AnalyticsEvent.objects.create(
            user=scanner,
            event_type='qr_connection',
            event_data={'connected_to': target.id},
        )
    except Exception as exc:
        logger.exception('Connection analytics failed: scanner=%s target=%s', scanner.id, target.id)
        result.side_effect_errors.append(exc)


def scan_token(scanner: Profile, qr_code_id: str | None) -> ScanResult:
    token = qr_code_id.strip() if isinstance(qr_code_id, str) else ''
    if not token:
        return ScanResult(STATUS_NOT_FOUND)

    target = Profile.objects.filter(qr_code_id=token).first()
    if target is None:
        logger.info('QR scan with unknown token: scanner=%s', scanner.id)
        return ScanResult(STATUS_NOT_FOUND)

    if target.id == scanner.id:
        return ScanResult(STATUS_SELF_CONNECT)

    if are_connected(scanner, target):
        return ScanResult(STATUS_ALREADY_CONNECTED, target=target)

    try:
        with transaction.atomic():
            connection = Connection.objects.create(user=scanner, connected_user=target, connected_via='qr_code')
    except IntegrityError:
        # Lost the race against a concurrent scan of the same pair.
        logger.info('QR scan hit pair constraint: scanner=%s target=%s', scanner.id, target.id)
        return ScanResult(STATUS_ALREADY_CONNECTED, target=target)

    result = ScanResult(STATUS_SUCCESS, target=target, connection=connection)
    _record_side_effects(scanner, target, result)
    logger.info('Connection created: %s -> %s', scanner.id, target.id)
    return result
