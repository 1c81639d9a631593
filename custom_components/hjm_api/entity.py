"""Shared entity helpers for HJM heaters."""

from __future__ import annotations

from typing import Any

from homeassistant.helpers.device_registry import DeviceInfo

from .const import DOMAIN, MANUFACTURER


def build_device_info(device: dict[str, Any]) -> DeviceInfo:
    """Build the registry entry for a paired heater.

    Args:
        device: Paired device entry with id, name and metadata.

    Returns:
        DeviceInfo shared by every entity of the heater.

    """
    metadata = device.get("metadata") or {}
    return DeviceInfo(
        identifiers={(DOMAIN, device["id"])},
        name=device.get("name"),
        manufacturer=MANUFACTURER,
        model=metadata.get("product_id"),
        sw_version=metadata.get("fw_version"),
        serial_number=metadata.get("serial_id"),
        suggested_area=metadata.get("group_name"),
    )
