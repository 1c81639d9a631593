"""Data models for HJM heater integration."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True)
class Credentials:
    """OAuth2 password-grant credentials for the HJM cloud."""

    client_id: str | None
    client_secret: str | None
    username: str | None
    password: str | None

    def missing_fields(self) -> list[str]:
        """Return the names of the credential fields that are empty."""
        return [f.name for f in fields(self) if not getattr(self, f.name)]


@dataclass(frozen=True)
class Token:
    """Represents a bearer token with its absolute expiration timestamp."""

    token: str
    expire_at: datetime


@dataclass(frozen=True)
class DeviceSummary:
    """A heater as listed by the grouped devices endpoint."""

    dev_id: str
    name: str
    product_id: str | None = None
    fw_version: str | None = None
    serial_id: str | None = None


@dataclass(frozen=True)
class DeviceGroup:
    """A group of heaters as listed by the grouped devices endpoint."""

    id: str
    name: str
    devices: list[DeviceSummary] = field(default_factory=list)


@dataclass(frozen=True)
class PairableDevice:
    """A heater offered to the user during pairing."""

    display_name: str
    id: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DeviceStatus:
    """Represents the normalized state reported by a heater."""

    measured_temperature: float | None = None
    setpoint_temperature: float | None = None
    mode: str | None = None


@dataclass
class PollState:
    """Per-device poll timer handle and the interval it was started with."""

    unsub: Callable[[], None] | None = None
    interval: timedelta | None = None
