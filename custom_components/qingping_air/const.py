"""Constants for Qingping Air Monitor integration.

This module contains all the constants used throughout the integration,
including API endpoints, configuration keys, and default values.
"""

DOMAIN = "qingping_air"
MANUFACTURER = "Qingping"

OAUTH_TOKEN_URL = "https://oauth.cleargrass.com/oauth2/token"
DEVICES_URL = "https://apis.cleargrass.com/v1/apis/devices"

OAUTH_GRANT_TYPE = "client_credentials"
OAUTH_SCOPE = "device_full_access"

# Refresh the token when 99% of its lifetime has elapsed
TOKEN_REFRESH_FACTOR = 0.99

HTTP_TIMEOUT = 10.0

CONF_APP_KEY = "app_key"
CONF_APP_SECRET = "app_secret"
CONF_INTERVAL = "interval"
CONF_TEMPERATURE_NAME = "temperature_name"
CONF_HUMIDITY_NAME = "humidity_name"
CONF_CO2_NAME = "co2_name"
CONF_AQI_NAME = "aqi_name"
CONF_TVOC_UNIT = "tvoc_unit"

DEFAULT_INTERVAL = 2000  # milliseconds
MIN_INTERVAL = 1000  # milliseconds
DEFAULT_TEMPERATURE_NAME = "Temperature"
DEFAULT_HUMIDITY_NAME = "Humidity"
DEFAULT_CO2_NAME = "Carbon Dioxide"
DEFAULT_AQI_NAME = "Air Quality"
DEFAULT_BATTERY_NAME = "Battery"

# Conversion factor from ppb to µg/m³ for the VOC density
TVOC_PPB_TO_UGM3 = 3.19

LOW_BATTERY_THRESHOLD = 20  # percent, inclusive

STORAGE_VERSION = 1
STORAGE_KEY = f"{DOMAIN}.accessories"
STORAGE_SAVE_DELAY = 60  # seconds, coalesces writes of the accessory cache

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_UNKNOWN = "unknown_error"
