"""Legacy SOAP client for the conferencing service.

Envelopes are built by hand and POSTed with httpx; only the handful of
operations the session link core needs are supported.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
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

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SAS_NS = "http://sas.elluminate.com/"

_SUCCESS_RE = re.compile(r"<(?:\w+:)?success[^>]*>\s*true\s*</(?:\w+:)?success>", re.IGNORECASE)


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find_all(root: ET.Element, name: str) -> list[ET.Element]:
    return [el for el in root.iter() if _local(el.tag) == name]


def _find_text(root: ET.Element, name: str) -> str | None:
    for el in _find_all(root, name):
        if el.text and el.text.strip():
            return el.text.strip()
    return None


class SoapClient(RemoteSessionClient):
    client_name = "soap"

    def __init__(
        self,
        api_url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_url = (api_url or "").strip()
        self.username = (username or "").strip()
        self.password = (password or "").strip()
        self.timeout = timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_url and self.username and self.password)

    def _envelope(self, operation: str, fields: dict[str, Any]) -> bytes:
        ET.register_namespace("soapenv", SOAP_ENV_NS)
        ET.register_namespace("sas", SAS_NS)
        envelope = ET.Element(f"{{{SOAP_ENV_NS}}}Envelope")
        ET.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Header")
        body = ET.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
        op = ET.SubElement(body, f"{{{SAS_NS}}}{operation}")
        for key, value in fields.items():
            if value is None:
                continue
            child = ET.SubElement(op, f"{{{SAS_NS}}}{key}")
            child.text = str(value).lower() if isinstance(value, bool) else str(value)
        return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)

    def _call_raw(self, operation: str, fields: dict[str, Any]) -> str:
        if not self.is_configured():
            raise RemoteNotConfiguredError(
                "SOAP API is not configured. Set SOAP_API_URL, SOAP_API_USERNAME and SOAP_API_PASSWORD."
            )
        headers = {"Content-Type": "text/xml; charset=utf-8", "SOAPAction": f'"{operation}"'}
        try:
            with httpx.Client(
                timeout=self.timeout,
                auth=(self.username, self.password),
                transport=self._transport,
            ) as client:
                response = client.post(self.api_url, content=self._envelope(operation, fields), headers=headers)
        except httpx.HTTPError as exc:
            raise RemoteSessionError(f"SOAP {operation} failed: {exc}") from exc

        text = response.text
        if response.status_code >= 400 and "Fault" not in text:
            raise RemoteSessionError(f"SOAP {operation} failed with HTTP {response.status_code}.")
        return text

    def _call(self, operation: str, fields: dict[str, Any]) -> ET.Element:
        text = self._call_raw(operation, fields)
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise RemoteSessionError(f"SOAP {operation} returned malformed XML.") from exc
        if _find_all(root, "Fault"):
            reason = _find_text(root, "faultstring") or "unknown fault"
            raise RemoteSessionError(f"SOAP {operation} fault: {reason}")
        return root

    def verify(self) -> bool:
        try:
            root = self._call("GetServerConfiguration", {})
        except RemoteSessionError as exc:
            logger.warning("SOAP API verification failed: %s", exc)
            return False
        return bool(_find_text(root, "timeZone"))

    def api_datetime(self, timestamp: int) -> str:
        return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    def _session_fields(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None,
    ) -> dict[str, Any]:
        details = build_session_details(self, activity, course, group_id, attendees)
        return {
            "name": details.name,
            "description": details.description,
            "startTime": details.start,
            "endTime": details.end,
            "boundaryTime": details.boundary_minutes,
            "allowGuest": bool(activity.guest_access_enabled),
            "courseId": details.course_id,
            "groupId": group_id,
            "chairList": ",".join(str(user_id) for user_id in details.moderators) or None,
            "nonChairList": ",".join(str(user_id) for user_id in details.participants) or None,
        }

    def create_session(
        self,
        activity: Activity,
        course: Course,
        group_id: int | None,
        attendees: Attendees | None = None,
    ) -> str:
        root = self._call("SetHtmlSession", self._session_fields(activity, course, group_id, attendees))
        session_id = _find_text(root, "sessionId")
        if not session_id:
            raise RemoteSessionError("SetHtmlSession response did not include a session id.")
        return session_id

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
        fields = {"sessionId": session_id}
        fields.update(self._session_fields(activity, course, link_group_id(link), attendees))
        self._call("UpdateHtmlSession", fields)

    def delete_session(self, session_id: str) -> bool:
        # The success flag is matched in the raw payload; some servers wrap it
        # in an element the response schema does not declare.
        try:
            text = self._call_raw("RemoveHtmlSession", {"sessionId": session_id})
        except RemoteSessionError as exc:
            logger.warning("Failed to delete session %s: %s", session_id, exc)
            return False
        if not _SUCCESS_RE.search(text):
            logger.warning("Failed to delete session %s: no success flag in response", session_id)
            return False
        return True

    def build_guest_url(self, session_id: str) -> str:
        root = self._call("BuildHtmlSessionUrl", {"sessionId": session_id})
        url = _find_text(root, "url")
        if not url:
            raise RemoteSessionError("BuildHtmlSessionUrl response did not include a url.", session_id=session_id)
        return url

    def list_recordings(self, session_id: str) -> list[Recording]:
        root = self._call("ListHtmlSessionRecording", {"sessionId": session_id})
        recordings: list[Recording] = []
        for el in _find_all(root, "HtmlSessionRecordingResponse"):
            recording_id = _find_text(el, "recordingId")
            if not recording_id:
                continue
            duration_ms = _find_text(el, "durationMillis") or "0"
            recordings.append(
                Recording(
                    recording_id=recording_id,
                    session_id=str(session_id),
                    name=_find_text(el, "displayName") or f"Recording {recording_id}",
                    duration=int(duration_ms) // 1000 if duration_ms.isdigit() else 0,
                    created=_find_text(el, "creationDate"),
                    url=_find_text(el, "recordingUrl"),
                )
            )
        return recordings

    def delete_recording(self, recording_id: str) -> None:
        # The service may answer with an empty body; only faults are meaningful.
        text = self._call_raw("RemoveHtmlSessionRecording", {"recordingId": recording_id})
        if "Fault>" in text:
            raise RemoteSessionError(f"Could not delete recording {recording_id}.")
