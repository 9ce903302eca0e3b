"""Video-room provisioning for accepted consultations (Daily.co)."""

import logging
import time
from typing import Protocol

import httpx

from backend.core import config
from backend.core.errors import VideoProvisioningError

logger = logging.getLogger(__name__)

ROOM_NAME_PREFIX = 'hinahon'


class VideoRoomProvisioner(Protocol):
    def create_room(self, consultation_id: int) -> str:
        ...


class DailyRoomProvisioner:
    """Creates one two-person Daily room per consultation and returns its join URL."""

    def __init__(
        self,
        api_key: str,
        base_url: str = 'https://api.daily.co/v1',
        room_ttl_hours: int = 24,
        client: httpx.Client | None = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.room_ttl_hours = room_ttl_hours
        self.client = client or httpx.Client(timeout=timeout)

    def room_name(self, consultation_id: int) -> str:
        return f'{ROOM_NAME_PREFIX}-{consultation_id}-{int(time.time() * 1000)}'

    def create_room(self, consultation_id: int) -> str:
        if not self.api_key:
            raise VideoProvisioningError('Video provisioning is not configured.')

        payload = {
            'name': self.room_name(consultation_id),
            'properties': {
                'enable_screenshare': True,
                'enable_chat': True,
                'start_video_off': False,
                'start_audio_off': False,
                'max_participants': 2,
                'exp': int(time.time()) + self.room_ttl_hours * 60 * 60,
                'enable_prejoin_ui': True,
            },
        }

        try:
            response = self.client.post(
                f'{self.base_url}/rooms',
                json=payload,
                headers={'Authorization': f'Bearer {self.api_key}'},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error('Daily.co API error %s: %s', exc.response.status_code, exc.response.text)
            raise VideoProvisioningError(f'Daily.co API error: {exc.response.status_code}') from exc
        except httpx.HTTPError as exc:
            logger.error('Daily.co request failed: %s', exc)
            raise VideoProvisioningError() from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error('Daily.co returned a non-JSON response: %s', response.text[:200])
            raise VideoProvisioningError('Daily.co returned an invalid response.') from exc

        room_url = body.get('url') if isinstance(body, dict) else None
        if not room_url:
            raise VideoProvisioningError('Daily.co did not return a room URL.')

        logger.info('Created Daily.co room for consultation %s: %s', consultation_id, room_url)
        return room_url


def build_video_provisioner() -> VideoRoomProvisioner:
    return DailyRoomProvisioner(
        api_key=config.DAILY_API_KEY,
        base_url=config.DAILY_API_URL,
        room_ttl_hours=config.DAILY_ROOM_TTL_HOURS,
        timeout=config.DAILY_TIMEOUT_SECONDS,
    )
