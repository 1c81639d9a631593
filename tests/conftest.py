"""Pytest configuration and fixtures for HJM heater tests."""

import pytest

from custom_components.hjm_api.models import Credentials


@pytest.fixture
def credentials() -> Credentials:
    """Fixture providing a complete credential set."""
    return Credentials(
        client_id="client",
        client_secret="secret",
        username="user",
        password="pw",
    )


@pytest.fixture
def sample_token_response() -> dict:
    """Fixture providing a sample token endpoint response.

    Returns:
        A dictionary representing a password-grant token response.

    """
    return {
        "access_token": "access-token-1",
        "token_type": "bearer",
        "expires_in": 14400,
    }


@pytest.fixture
def sample_grouped_devices_response() -> list:
    """Fixture providing a sample grouped devices API response.

    Returns:
        A list representing two groups, the first with two heaters.

    """
    return [
        {
            "id": "g1",
            "name": "Home",
            "devs": [
                {
                    "dev_id": "dev1",
                    "name": "Living room",
                    "product_id": "hjm-610",
                    "fw_version": "1.2.3",
                    "serial_id": "7",
                },
                {
                    "dev_id": "dev2",
                    "name": "Bedroom",
                    "product_id": "hjm-610",
                    "fw_version": "1.2.4",
                    "serial_id": "8",
                },
            ],
        },
        {
            "id": "g2",
            "name": "Cabin",
            "devs": [
                {
                    "dev_id": "dev3",
                    "name": "Hall",
                    "product_id": "hjm-420",
                    "fw_version": "2.0.0",
                    "serial_id": "9",
                },
            ],
        },
    ]


@pytest.fixture
def sample_status_response() -> dict:
    """Fixture providing a sample heater status response."""
    return {"mtemp": "20.4", "stemp": "21,5", "mode": "manual", "units": "C"}
