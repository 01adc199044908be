"""In-memory conferencing client for simulation mode and tests."""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any

from collab.core.errors import RemoteSessionError
from collab.services.host import Activity, Course
from collab.services.remote.base import (
    Attendees,
    Recording,
    RemoteSessionClient,
    SessionDetails,
    build_session_details,
    link_group_id,
    link_session_id,
)


class TestableClient(RemoteSessionClient):
    """Deterministic stand-in for the remote service.

    Session ids are ``session-1``, ``session-2`` ... in creation order.
    Session ids added to ``fail_deletes`` make ``delete_session`` fail.
    """

    __test__ = False  # not a pytest test class

    client_name = "testable"

    def __init__(self, guest_url_base: str = "https://collab.test/guest") -> None:
        self.guest_url_base = guest_url_base.rstrip("/")
        self.sessions: dict[str, SessionDetails] = {}
        self.recordings: dict[str, list[Recording]] = {}
        self.fail_deletes: set[str] = set()
        self.fail_creates = False
        self.calls: list[tuple[str, Any]] = []
        self._ids = itertools.count(1)

    def is_configured(self) -> bool:
        return True

    def verify(self) -> bool:
        self.calls.append(("verify", None))
        return True

    def api_datetime(self, timestamp: int) -> str:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def create_session(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None = None,
    ) -> str:
        self.calls.append(("create_session", group_id))
        if self.fail_creates:
            raise RemoteSessionError("Simulated create failure.")
        session_id = f"session-{next(self._ids)}"
        self.sessions[session_id] = build_session_details(self, activity, course, group_id, attendees)
        return session_id

    def update_session(
        self,
        activity: Activity,
        course: Course,
        link: Any,
        attendees: Attendees | None = None,
    ) -> None:
        session_id = link_session_id(link)
        self.calls.append(("update_session", session_id))
        self.sessions[session_id] = build_session_details(
            self, activity, course, link_group_id(link), attendees
        )

    def delete_session(self, session_id: str) -> bool:
        self.calls.append(("delete_session", session_id))
        if session_id in self.fail_deletes:
            return False
        self.sessions.pop(session_id, None)
        self.recordings.pop(session_id, None)
        return True

    def build_guest_url(self, session_id: str) -> str:
        self.calls.append(("build_guest_url", session_id))
        return f"{self.guest_url_base}/{session_id}"

    def add_recording(self, session_id: str, recording_id: str, name: str = "") -> Recording:
        recording = Recording(recording_id=recording_id, session_id=session_id, name=name or recording_id)
        self.recordings.setdefault(session_id, []).append(recording)
        return recording

    def list_recordings(self, session_id: str) -> list[Recording]:
        self.calls.append(("list_recordings", session_id))
        return list(self.recordings.get(session_id, []))

    def delete_recording(self, recording_id: str) -> None:
        self.calls.append(("delete_recording", recording_id))
        for session_id, recordings in self.recordings.items():
            self.recordings[session_id] = [r for r in recordings if r.recording_id != recording_id]
