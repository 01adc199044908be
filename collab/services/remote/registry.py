"""Remote client selection and API verification."""

from __future__ import annotations

import logging
from typing import Optional

from collab.core.config import Settings
from collab.core.errors import CodingError, RemoteNotConfiguredError
from collab.services.remote.base import RemoteSessionClient
from collab.services.remote.rest_client import RestClient
from collab.services.remote.soap_client import SoapClient
from collab.services.remote.testable_client import TestableClient

logger = logging.getLogger(__name__)


def _rest_client(settings: Settings) -> RestClient:
    return RestClient(
        api_url=settings.rest_api_url,
        api_key=settings.rest_api_key,
        api_secret=settings.rest_api_secret,
        timeout=settings.remote_timeout,
    )


def _soap_client(settings: Settings) -> SoapClient:
    return SoapClient(
        api_url=settings.soap_api_url,
        username=settings.soap_api_username,
        password=settings.soap_api_password,
        timeout=settings.remote_timeout,
    )


def get_remote_client(settings: Settings, name: Optional[str] = None) -> RemoteSessionClient:
    """Build the client named explicitly, or by ``settings.remote_api``.

    ``auto`` prefers REST and falls back to SOAP.
    """
    selected = (name or settings.remote_api).strip().lower()
    if selected == "rest":
        return _rest_client(settings)
    if selected == "soap":
        return _soap_client(settings)
    if selected == "testable":
        return TestableClient()
    if selected == "auto":
        rest = _rest_client(settings)
        if rest.is_configured():
            return rest
        soap = _soap_client(settings)
        if soap.is_configured():
            return soap
        raise RemoteNotConfiguredError("No conferencing API is configured.")
    raise CodingError(f"Unsupported remote client: {name or settings.remote_api}")


def list_supported_clients() -> list[str]:
    return ["rest", "soap", "testable"]


class ApiVerification:
    """Caches whether the remote API works for the lifetime of this object.

    Create one per request or task; call ``reset()`` to check again.
    """

    def __init__(self, client: RemoteSessionClient) -> None:
        self.client = client
        self._verified: Optional[bool] = None

    @property
    def checked(self) -> bool:
        return self._verified is not None

    def verified(self) -> bool:
        if self._verified is None:
            if not self.client.is_configured():
                self._verified = False
            else:
                self._verified = bool(self.client.verify())
            if not self._verified:
                logger.warning("%s API could not be verified", self.client.client_name)
        return self._verified

    def reset(self) -> None:
        self._verified = None
