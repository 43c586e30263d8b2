"""Constants for the Exchange Calendar integration."""
from enum import IntEnum

DOMAIN = "exchange_calendar"


class AuthenticationMethod(IntEnum):
    """How credentials are presented to the EWS endpoint."""

    STANDARD = 0
    NTLM = 1


class ExchangeVersion(IntEnum):
    """Exchange server versions, in the host's stored ordinal order."""

    EXCHANGE_2007_SP1 = 0
    EXCHANGE_2010 = 1
    EXCHANGE_2010_SP1 = 2
    EXCHANGE_2010_SP2 = 3
    EXCHANGE_2013 = 4
    EXCHANGE_2013_SP1 = 5
    EXCHANGE_2015 = 6
    EXCHANGE_2016 = 7
    EXCHANGE_2019 = 8


# Configuration keys (stored in the encrypted credential payload)
CONF_URL = "url"
CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_AUTHENTICATION_METHOD = "authenticationMethod"
CONF_EXCHANGE_VERSION = "exchangeVersion"
CONF_USE_COMPRESSION = "useCompression"

# Defaults (aligned with the host setup form)
DEFAULT_AUTHENTICATION_METHOD = AuthenticationMethod.STANDARD
DEFAULT_EXCHANGE_VERSION = ExchangeVersion.EXCHANGE_2016
DEFAULT_USE_COMPRESSION = False

# Versions older than this get an upgrade suggestion
MIN_RECOMMENDED_VERSION = ExchangeVersion.EXCHANGE_2013

# Process-wide secret used for credential encryption
ENV_ENCRYPTION_KEY = "CALENDAR_ENCRYPTION_KEY"

# Path fragments that identify an EWS endpoint
EWS_PATH_MARKERS = ("/ews/", "/exchange.asmx", "/microsoft-server-activesync")

# Seconds
NTLM_TIMEOUT = 30
CONNECTION_TEST_TIMEOUT = 30

# Folder class of calendar folders
CALENDAR_FOLDER_CLASS = "IPF.Appointment"

FREE_BUSY_FREE = "Free"
