"""Video meeting provisioning."""

import time
from datetime import date
from uuid import UUID

import httpx
import structlog
from pydantic import BaseModel

from mediconnect.config import settings

logger = structlog.get_logger(__name__)

ZOOM_OAUTH_URL = "https://zoom.us/oauth/token"
ZOOM_API_URL = "https://api.zoom.us/v2"

# Zoom access tokens live for an hour; refresh ten minutes early
ZOOM_TOKEN_TTL_SECONDS = 50 * 60


class ProvisionedMeeting(BaseModel):
    """Meeting details returned by a provider."""

    provider: str
    meeting_id: str | None = None
    join_url: str
    host_url: str | None = None


def placeholder_join_url(appointment_id: UUID | str, provider: str | None = None) -> str:
    """
    Build the deterministic stand-in link for an appointment.

    Only the last eight characters of the appointment id make it distinct.
    """
    suffix = str(appointment_id).replace("-", "")[-8:]
    host = "meet.google.com" if provider == "meet" else "zoom.us"
    return f"https://{host}/j/{suffix}"


class VideoMeetingProvider:
    """Interface for meeting provisioning backends."""

    async def create_meeting(
        self,
        appointment_id: UUID,
        patient_name: str,
        doctor_name: str,
        appointment_date: date,
        appointment_time: str,
    ) -> ProvisionedMeeting:
        """Create a meeting for an appointment."""
        raise NotImplementedError


class PlaceholderMeetingProvider(VideoMeetingProvider):
    """Provider used when no conferencing credentials are configured."""

    def __init__(self, provider: str | None = None):
        """Initialize with the configured provider name."""
        self.provider = provider or settings.meeting_provider

    async def create_meeting(
        self,
        appointment_id: UUID,
        patient_name: str,
        doctor_name: str,
        appointment_date: date,
        appointment_time: str,
    ) -> ProvisionedMeeting:
        """Return a placeholder meeting derived from the appointment id."""
        return ProvisionedMeeting(
            provider=self.provider,
            meeting_id=None,
            join_url=placeholder_join_url(appointment_id, self.provider),
            host_url=None,
        )


class ZoomMeetingProvider(VideoMeetingProvider):
    """Zoom server-to-server OAuth meeting provider."""

    def __init__(
        self,
        account_id: str,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize with Zoom app credentials."""
        self.account_id = account_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.http_client = http_client
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self.http_client is not None:
            response = await self.http_client.request(method, url, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def get_access_token(self) -> str:
        """Get a cached or fresh account-credentials access token."""
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        response = await self._request(
            "POST",
            ZOOM_OAUTH_URL,
            params={"grant_type": "account_credentials", "account_id": self.account_id},
            auth=(self.client_id, self.client_secret),
        )
        self._token = response.json()["access_token"]
        self._token_expires_at = time.monotonic() + ZOOM_TOKEN_TTL_SECONDS
        return self._token

    async def create_meeting(
        self,
        appointment_id: UUID,
        patient_name: str,
        doctor_name: str,
        appointment_date: date,
        appointment_time: str,
    ) -> ProvisionedMeeting:
        """Create a scheduled Zoom meeting with a waiting room."""
        token = await self.get_access_token()

        payload = {
            "topic": f"Appointment with {patient_name}",
            "type": 2,
            "start_time": f"{appointment_date.isoformat()}T{appointment_time}:00Z",
            "duration": 60,
            "timezone": "UTC",
            "agenda": f"Medical consultation with {doctor_name}",
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "waiting_room": True,
                "use_pmi": False,
                "approval_type": 0,
                "audio": "both",
                "auto_recording": "none",
                "mute_upon_entry": True,
            },
        }

        response = await self._request(
            "POST",
            f"{ZOOM_API_URL}/users/me/meetings",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        meeting = response.json()

        logger.info("zoom_meeting_created", appointment_id=str(appointment_id))

        return ProvisionedMeeting(
            provider="zoom",
            meeting_id=str(meeting["id"]),
            join_url=meeting["join_url"],
            host_url=meeting.get("start_url"),
        )


_provider: VideoMeetingProvider | None = None


def get_video_provider() -> VideoMeetingProvider:
    """Dependency returning the configured meeting provider."""
    global _provider

    if _provider is None:
        if settings.meeting_provider == "zoom" and settings.zoom_configured:
            _provider = ZoomMeetingProvider(
                account_id=settings.zoom_account_id,
                client_id=settings.zoom_client_id,
                client_secret=settings.zoom_client_secret,
            )
        else:
            _provider = PlaceholderMeetingProvider()

    return _provider
