"""REST client for the conferencing service."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from collab.core.errors import RemoteNotConfiguredError, RemoteSessionError
from collab.services.host import Activity, Course
from collab.services.remote.base import (
    Attendees,
    Recording,
    RemoteSessionClient,
    build_session_details,
    link_group_id,
    link_session_id,
)

logger = logging.getLogger(__name__)


class RestClient(RemoteSessionClient):
    client_name = "rest"

    def __init__(
        self,
        api_url: str,
        api_key: str,
        api_secret: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_url = (api_url or "").strip().rstrip("/")
        self.api_key = (api_key or "").strip()
        self.api_secret = (api_secret or "").strip()
        self.timeout = timeout
        self._transport = transport
        self._token: str | None = None
        self._token_expires_at = 0.0

    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.api_secret)

    def _client(self, **kwargs: Any) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport, **kwargs)

    def _access_token(self) -> str:
        if not self.is_configured():
            raise RemoteNotConfiguredError(
                "REST API is not configured. Set REST_API_URL, REST_API_KEY and REST_API_SECRET."
            )
        if self._token and time.time() < self._token_expires_at:
            return self._token

        try:
            with self._client(auth=(self.api_key, self.api_secret)) as client:
                response = client.post(f"{self.api_url}/token", data={"grant_type": "client_credentials"})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RemoteSessionError(f"Could not obtain REST access token: {exc}") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise RemoteSessionError("REST token response did not include an access token.")
        # Refresh a minute early.
        self._token = token
        self._token_expires_at = time.time() + max(int(payload.get("expires_in") or 300) - 60, 0)
        return token

    def _request(self, method: str, path: str, json: Any = None, params: dict[str, Any] | None = None) -> Any:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        try:
            with self._client(headers=headers) as client:
                response = client.request(method, f"{self.api_url}{path}", json=json, params=params)
                response.raise_for_status()
                if not response.content:
                    return None
                return response.json()
        except httpx.HTTPError as exc:
            raise RemoteSessionError(f"{method.upper()} {path} failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteSessionError(f"{method.upper()} {path} returned malformed JSON.") from exc

    def verify(self) -> bool:
        try:
            self._access_token()
        except RemoteSessionError as exc:
            logger.warning("REST API verification failed: %s", exc)
            return False
        return True

    def api_datetime(self, timestamp: int) -> str:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def _session_body(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None,
    ) -> dict[str, Any]:
        details = build_session_details(self, activity, course, group_id, attendees)
        body: dict[str, Any] = {
            "name": details.name,
            "description": details.description,
            "startTime": details.start,
            "endTime": details.end,
            "boundaryTime": details.boundary_minutes,
            "courseId": str(details.course_id),
            "guest": bool(activity.guest_access_enabled),
            "moderators": [str(user_id) for user_id in details.moderators],
            "participants": [str(user_id) for user_id in details.participants],
        }
        if group_id is not None:
            body["groupId"] = str(group_id)
        return body

    def create_session(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None = None,
    ) -> str:
        payload = self._request("post", "/sessions", json=self._session_body(activity, course, group_id, attendees))
        session_id = payload.get("id") if isinstance(payload, dict) else None
        if not session_id:
            raise RemoteSessionError("Session create response did not include a session id.")
        return str(session_id)

    def update_session(
        self,
        activity: Activity,
        course: Course,
        link: Any,
        attendees: Attendees | None = None,
    ) -> None:
        session_id = link_session_id(link)
        if not session_id:
            raise RemoteSessionError("Cannot update a session without a session id.")
        body = self._session_body(activity, course, link_group_id(link), attendees)
        body["id"] = session_id
        self._request("put", f"/sessions/{session_id}", json=body)

    def delete_session(self, session_id: str) -> bool:
        try:
            self._request("delete", f"/sessions/{session_id}")
        except RemoteSessionError as exc:
            logger.warning("Failed to delete session %s: %s", session_id, exc)
            return False
        return True

    def build_guest_url(self, session_id: str) -> str:
        payload = self._request("get", f"/sessions/{session_id}/url")
        url = payload.get("url") if isinstance(payload, dict) else None
        if not url:
            raise RemoteSessionError("Guest URL response did not include a url.", session_id=session_id)
        return url

    def list_recordings(self, session_id: str) -> list[Recording]:
        payload = self._request("get", "/recordings", params={"sessionId": session_id})
        raw = payload.get("results", []) if isinstance(payload, dict) else payload or []
        recordings: list[Recording] = []
        for r in raw:
            recording_id = r.get("id")
            if recording_id is None:
                continue
            recordings.append(
                Recording(
                    recording_id=str(recording_id),
                    session_id=str(session_id),
                    name=r.get("name") or f"Recording {recording_id}",
                    duration=int(r.get("duration") or 0),
                    created=r.get("created"),
                    url=r.get("playbackUrl"),
                )
            )
        return recordings

    def delete_recording(self, recording_id: str) -> None:
        self._request("delete", f"/recordings/{recording_id}")
