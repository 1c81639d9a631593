"""API client for HJM heaters.

This module provides the token client and the REST client used to talk to
the HJM cloud, including authentication, device discovery and heater status
reads and writes.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import re
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import get_async_client

from .const import (
    BASE_URL,
    DEFAULT_TOKEN_EXPIRES_IN,
    MAX_TOKEN_EXPIRES_IN,
    DEVICE_STATUS_PATH,
    GROUPED_DEVICES_PATH,
    TOKEN_PATH,
    TOKEN_SAFETY_MARGIN,
)
from .models import Credentials, DeviceGroup, DeviceSummary, PairableDevice, Token

_LOGGER = logging.getLogger(__name__)

MASKED_CREDENTIAL = "***"
_CREDENTIAL_RE = re.compile(r"\b(Bearer|Basic) \S+")
_TOKEN_FIELD_RE = re.compile(r'("(?:access_token|refresh_token)"\s*:\s*)"[^"]*"')

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class HjmApiClientError(Exception):
    """Base exception for HJM API client errors."""


class HjmConfigurationError(HjmApiClientError):
    """Exception raised when the cloud credentials are incomplete."""


class HjmApiAuthError(HjmApiClientError):
    """Exception raised when the token endpoint rejects the credentials."""


class HjmInvalidStateError(HjmApiClientError):
    """Exception raised when a command is not allowed in the current mode."""


class HjmApiError(HjmApiClientError):
    """Exception raised for a non-success response from a data endpoint."""

    def __init__(self, status: int, method: str, path: str, body: str) -> None:
        """Initialize the error with the failed request details."""
        super().__init__(f"HTTP {status} {method} {path}: {body}")
        self.status = status
        self.method = method
        self.path = path
        self.body = body


def is_success(status: int) -> bool:
    """Check if HTTP status code indicates success.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is in the 2xx range, False otherwise.

    """
    return httpx.codes.is_success(status)


def mask_credentials(value: str) -> str:
    """Replace the secret following ``Bearer``/``Basic`` with a placeholder."""
    return _CREDENTIAL_RE.sub(rf"\1 {MASKED_CREDENTIAL}", value)


def mask_headers(headers: dict[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` safe to log."""
    return {key: mask_credentials(value) for key, value in headers.items()}


def mask_token_body(text: str) -> str:
    """Hide issued tokens in a token endpoint response body."""
    return _TOKEN_FIELD_RE.sub(rf'\1"{MASKED_CREDENTIAL}"', text)


def create_basic_auth(client_id: str, client_secret: str) -> str:
    """Build the HTTP Basic authorization value for the client credentials."""
    raw = f"{client_id}:{client_secret}".encode()
    return f"Basic {base64.b64encode(raw).decode()}"


def create_headers(
    token: str | None = None,
    *,
    json_body: bool = False,
) -> dict[str, str]:
    """Create HTTP headers for HJM data endpoint requests.

    Args:
        token: Optional bearer token to include in headers.
        json_body: Whether the request carries a JSON body.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {"Accept": "application/json", **NO_CACHE_HEADERS}
    if json_body:
        headers["Content-Type"] = "application/json"
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def parse_body(text: str) -> Any:
    """Parse a response body as JSON, falling back to the raw text."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_expires_in(value: Any) -> int:
    """Return ``expires_in`` seconds, defaulting when absent or not numeric."""
    if isinstance(value, bool):
        return DEFAULT_TOKEN_EXPIRES_IN
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return DEFAULT_TOKEN_EXPIRES_IN
    if not math.isfinite(seconds) or seconds <= 0:
        return DEFAULT_TOKEN_EXPIRES_IN
    return int(min(seconds, MAX_TOKEN_EXPIRES_IN))


def extract_token(data: Any, now: datetime) -> Token:
    """Extract the bearer token from a token endpoint response.

    Args:
        data: Parsed token endpoint response.
        now: Time the response was received.

    Returns:
        Token with its absolute expiration timestamp.

    Raises:
        HjmApiAuthError: If the response carries no access token.

    """
    if not isinstance(data, dict) or not data.get("access_token"):
        error_msg = "Token response did not contain an access_token"
        raise HjmApiAuthError(error_msg)

    expires_in = parse_expires_in(data.get("expires_in"))
    return Token(
        token=str(data["access_token"]),
        expire_at=now + timedelta(seconds=expires_in),
    )


def extract_device_groups(data: Any) -> list[DeviceGroup]:
    """Extract device groups from the grouped devices response.

    Args:
        data: Parsed grouped devices response.

    Returns:
        List of DeviceGroup objects, in response order.

    """
    if not isinstance(data, list):
        return []

    groups = []
    for group in data:
        if not isinstance(group, dict):
            continue
        devices = [
            DeviceSummary(
                dev_id=str(dev.get("dev_id", "")),
                name=str(dev.get("name", "")),
                product_id=dev.get("product_id"),
                fw_version=dev.get("fw_version"),
                serial_id=dev.get("serial_id"),
            )
            for dev in group.get("devs") or []
            if isinstance(dev, dict)
        ]
        groups.append(
            DeviceGroup(
                id=str(group.get("id", "")),
                name=str(group.get("name", "")),
                devices=devices,
            )
        )
    return groups


class HjmTokenClient:
    """Obtains and caches a password-grant bearer token."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        credentials: Credentials,
        base_url: str = BASE_URL,
        *,
        debug: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the token client.

        Args:
            session: HTTP client session.
            credentials: Cloud credentials configured by the user.
            base_url: Base URL of the HJM cloud.
            debug: Log the token request and response.
            logger: Logger receiving the diagnostic entries.

        """
        self._session = session
        self._credentials = credentials
        self._token_url = base_url.rstrip("/") + TOKEN_PATH
        self._token: Token | None = None
        self.debug = debug
        self.logger = logger or _LOGGER

    @property
    def token(self) -> Token | None:
        """Return the cached token, if any."""
        return self._token

    def assert_configured(self) -> None:
        """Raise HjmConfigurationError if any credential field is missing."""
        missing = self._credentials.missing_fields()
        if missing:
            error_msg = (
                f"Missing HJM credentials: {', '.join(missing)}. "
                "Reconfigure the integration with client id, client secret, "
                "username and password."
            )
            raise HjmConfigurationError(error_msg)

    def _is_token_valid(self, now: datetime) -> bool:
        return (
            self._token is not None
            and now < self._token.expire_at - TOKEN_SAFETY_MARGIN
        )

    async def async_get_valid_token(self) -> str:
        """Return a bearer token, fetching a new one when needed.

        Returns:
            The bearer token value.

        Raises:
            HjmConfigurationError: If credentials are incomplete.
            HjmApiAuthError: If the token endpoint rejects the request.

        """
        self.assert_configured()

        if self._is_token_valid(datetime.now(UTC)):
            return self._token.token

        self._token = await self._async_fetch_token()
        return self._token.token

    async def _async_fetch_token(self) -> Token:
        credentials = self._credentials
        headers = {
            "Accept": "application/json",
            "Authorization": create_basic_auth(
                credentials.client_id, credentials.client_secret
            ),
        }
        form = {
            "grant_type": "password",
            "username": credentials.username,
            "password": credentials.password,
        }

        _LOGGER.debug("Requesting HJM access token for %s", credentials.username)
        if self.debug:
            self.logger.debug(
                "REST request POST %s headers=%s body=%s",
                self._token_url,
                mask_headers(headers),
                {key: value for key, value in form.items() if key != "password"},
            )

        response = await self._session.post(self._token_url, headers=headers, data=form)

        if self.debug:
            self.logger.debug(
                "REST response POST %s status=%s body=%s",
                self._token_url,
                response.status_code,
                mask_token_body(response.text),
            )

        if not is_success(response.status_code):
            error_msg = f"Token error {response.status_code}: {response.text}"
            raise HjmApiAuthError(error_msg)

        token = extract_token(parse_body(response.text), datetime.now(UTC))
        _LOGGER.debug("Obtained HJM access token valid until %s", token.expire_at)
        return token


class HjmApiClient:
    """Authenticated JSON REST client for the HJM cloud."""

    def __init__(
        self,
        session: httpx.AsyncClient,
        token_client: HjmTokenClient,
        base_url: str = BASE_URL,
        *,
        debug: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            session: HTTP client session.
            token_client: Provides bearer tokens for authenticated calls.
            base_url: Base URL of the HJM cloud.
            debug: Log every request and response.
            logger: Logger receiving the diagnostic entries.

        """
        self._session = session
        self._token_client = token_client
        self._base_url = base_url.rstrip("/")
        self._logger = logger or _LOGGER
        if logger is not None:
            token_client.logger = logger
        self.debug = debug

    @property
    def debug(self) -> bool:
        """Return whether requests and responses are logged."""
        return self._debug

    @debug.setter
    def debug(self, enabled: bool) -> None:
        """Switch diagnostic logging for this client and its token client."""
        self._debug = enabled
        self._token_client.debug = enabled

    def build_url(self, path: str) -> str:
        """Return the absolute URL for ``path``."""
        if not path.startswith("/"):
            path = f"/{path}"
        return self._base_url + path

    async def async_request(
        self,
        path: str,
        *,
        method: str = "GET",
        json_body: Any = None,
        auth: bool = True,
    ) -> Any:
        """Perform a request and return the parsed body.

        Args:
            path: Path relative to the base URL.
            method: HTTP method.
            json_body: Optional body serialized as JSON.
            auth: Attach a bearer token.

        Returns:
            Parsed JSON body, or the raw text when it is not JSON.

        Raises:
            HjmApiError: If the response status is not 2xx.
            HjmApiAuthError: If no token could be obtained.
            HjmConfigurationError: If credentials are incomplete.

        """
        url = self.build_url(path)
        token = await self._token_client.async_get_valid_token() if auth else None
        headers = create_headers(token, json_body=json_body is not None)
        content = json.dumps(json_body) if json_body is not None else None

        if self.debug:
            self._logger.debug(
                "REST request %s %s headers=%s body=%s",
                method,
                url,
                mask_headers(headers),
                content,
            )

        response = await self._session.request(
            method, url, headers=headers, content=content
        )
        text = response.text

        if self.debug:
            self._logger.debug(
                "REST response %s %s status=%s body=%s",
                method,
                url,
                response.status_code,
                text,
            )

        if not is_success(response.status_code):
            raise HjmApiError(response.status_code, method, path, text)

        return parse_body(text)

    async def async_list_grouped_devices(self) -> list[DeviceGroup]:
        """Fetch the user's heaters grouped as in the vendor app."""
        data = await self.async_request(GROUPED_DEVICES_PATH)
        groups = extract_device_groups(data)
        _LOGGER.debug("Retrieved %d device groups from HJM API", len(groups))
        return groups

    async def async_get_device_status(self, dev_id: str) -> Any:
        """Fetch the raw status of heater ``dev_id``."""
        return await self.async_request(DEVICE_STATUS_PATH.format(dev_id=dev_id))

    async def async_set_device_status(self, dev_id: str, payload: dict[str, Any]) -> Any:
        """Write ``payload`` to the status of heater ``dev_id``."""
        _LOGGER.debug("Sending status to device %s: %s", dev_id, payload)
        return await self.async_request(
            DEVICE_STATUS_PATH.format(dev_id=dev_id),
            method="POST",
            json_body=payload,
        )


async def async_list_pairable_devices(client: HjmApiClient) -> list[PairableDevice]:
    """List every heater the account can pair, in group order.

    Args:
        client: Authenticated API client.

    Returns:
        List of PairableDevice objects.

    """
    groups = await client.async_list_grouped_devices()
    return [
        PairableDevice(
            display_name=f"{group.name} • {device.name}",
            id=device.dev_id,
            metadata={
                "group_id": group.id,
                "group_name": group.name,
                "product_id": device.product_id,
                "fw_version": device.fw_version,
                "serial_id": device.serial_id,
            },
        )
        for group in groups
        for device in group.devices
    ]


def create_api_client(
    hass: HomeAssistant,
    credentials: Credentials,
    *,
    debug: bool = False,
) -> HjmApiClient:
    """Create an API client on Home Assistant's shared HTTP session.

    Args:
        hass: Home Assistant instance.
        credentials: Cloud credentials configured by the user.
        debug: Log every request and response.

    Returns:
        Configured HjmApiClient.

    """
    session = get_async_client(hass)
    return HjmApiClient(session, HjmTokenClient(session, credentials), debug=debug)
