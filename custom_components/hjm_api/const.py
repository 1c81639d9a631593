"""Constants for HJM heater integration.

This module contains all the constants used throughout the integration,
including API endpoints, configuration keys, polling limits and mode maps.
"""

from datetime import timedelta

from homeassistant.components.climate import HVACMode

DOMAIN = "hjm_api"

BASE_URL = "https://api-hjm.helki.com"
TOKEN_PATH = "/client/token"
GROUPED_DEVICES_PATH = "/api/v2/grouped_devs"
DEVICE_STATUS_PATH = "/api/v2/devs/{dev_id}/htr/2/status"

TOKEN_SAFETY_MARGIN = timedelta(seconds=30)
DEFAULT_TOKEN_EXPIRES_IN = 3600
MAX_TOKEN_EXPIRES_IN = 30 * 24 * 3600

DEFAULT_POLL_INTERVAL = 30
MIN_POLL_INTERVAL = 30
ABSOLUTE_MIN_POLL_INTERVAL = 20
SETTLE_DELAY = 2  # Seconds to let the backend converge after a write

CONF_DEVICES = "devices"
CONF_POLLING_ENABLED = "polling_enabled"
CONF_POLLING_INTERVAL = "polling_interval"
CONF_DEBUG_REST = "debug_rest"

DEFAULT_POLLING_ENABLED = True
DEFAULT_DEBUG_REST = False

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_MISSING_CREDENTIALS = "missing_credentials"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_NO_DEVICES = "no_devices"
ERROR_UNKNOWN = "unknown_error"

SERVICE_REFRESH_DEVICE = "refresh_device"
SERVICE_SET_MODE = "set_mode"
SERVICE_SET_TEMPERATURE = "set_temperature"

ATTR_MODE = "mode"

MODE_OFF = "off"
MODE_MANUAL = "manual"
MODE_AUTO = "auto"

HVAC_MODE_MAP = {
    HVACMode.OFF: MODE_OFF,
    HVACMode.HEAT: MODE_MANUAL,
    HVACMode.AUTO: MODE_AUTO,
}
HVAC_MODE_REVERSE_MAP = {value: key for key, value in HVAC_MODE_MAP.items()}

MANUFACTURER = "HJM"
