# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Environment-based configuration for the webinar sync
"""
import os

from utils.errors import ConfigurationError

_INVALID = {}


def _env_number(name, default=None, cast=int):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        _INVALID[name] = raw
        return default


# Environment Detection
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'production')
DEBUG = ENVIRONMENT == 'development'

# Remote API
BASE_API_URL = os.environ.get('BASE_API_URL', '').rstrip('/')
ACCOUNT_KEY = os.environ.get('ACCOUNT_KEY', '')
HTTP_TIMEOUT = _env_number('HTTP_TIMEOUT', 30.0, cast=float)
MAX_PAGES = _env_number('MAX_PAGES', 500)

# OAuth Configuration
TOKEN_ENDPOINT = os.environ.get('TOKEN_ENDPOINT', '')
AUTHORIZE_ENDPOINT = os.environ.get('AUTHORIZE_ENDPOINT', '')
CLIENT_ID = os.environ.get('CLIENT_ID', '')
CLIENT_SECRET = os.environ.get('CLIENT_SECRET', '')
REDIRECT_URI = os.environ.get('REDIRECT_URI', '')
INITIAL_REFRESH_TOKEN = os.environ.get('INITIAL_REFRESH_TOKEN', '')
TOKEN_STORE_FILE = os.environ.get('TOKEN_STORE_FILE', '/data/refresh_token.json')

# File Locations
INPUT_DIR = os.environ.get('INPUT_DIR', '')
OUTPUT_DIR = os.environ.get('OUTPUT_DIR', '')
UPLOADED_KEY_FILE = os.environ.get('UPLOADED_KEY_FILE', '')
REGISTRANT_KEY_FILE = os.environ.get('REGISTRANT_KEY_FILE', '')
ATTENDEE_KEY_FILE = os.environ.get('ATTENDEE_KEY_FILE', '')
WEBINAR_SNAPSHOT_FILE = os.environ.get('WEBINAR_SNAPSHOT_FILE', 'webinarResponse.json')

# Sync Settings
FROM_DATE_BACKWARD = _env_number('FROM_DATE_BACKWARD')  # signed month offset, e.g. -6
TO_DATE_FORWARD = _env_number('TO_DATE_FORWARD')
DUMMY_PHONE = os.environ.get('DUMMY_PHONE', '')
LEDGER_POLICY = os.environ.get('LEDGER_POLICY', 'by_identity')

# Sync Intervals (in minutes)
SYNC_INTERVAL_MIN = _env_number('SYNC_INTERVAL_MIN', 60)

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
STRUCTURED_LOGGING = os.environ.get('STRUCTURED_LOGGING', 'True').lower() == 'true'
LOG_DIR = os.environ.get('LOG_DIR', 'logs')

# Development Settings
if DEBUG:
    LOG_LEVEL = 'DEBUG'

REQUIRED_SETTINGS = [
    'BASE_API_URL',
    'TOKEN_ENDPOINT',
    'CLIENT_ID',
    'CLIENT_SECRET',
    'ACCOUNT_KEY',
    'INPUT_DIR',
    'OUTPUT_DIR',
    'UPLOADED_KEY_FILE',
    'REGISTRANT_KEY_FILE',
    'ATTENDEE_KEY_FILE',
    'FROM_DATE_BACKWARD',
    'TO_DATE_FORWARD',
    'DUMMY_PHONE',
]

LEDGER_POLICIES = ('by_identity', 'by_outcome')


def validate_config(settings=None):
    """Fail fast when a required setting is missing or invalid.

    Args:
        settings: optional mapping overriding the module values (used by tests)
    Raises:
        ConfigurationError listing every offending name
    """
    values = dict(settings) if settings is not None else globals()
    problems = []

    for name in REQUIRED_SETTINGS:
        value = values.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            problems.append(name)

    if settings is None:
        problems.extend(name for name in _INVALID if name not in problems)

    if values.get('LEDGER_POLICY', 'by_identity') not in LEDGER_POLICIES:
        problems.append('LEDGER_POLICY')

    if problems:
        raise ConfigurationError(
            f"Missing or invalid configuration: {', '.join(problems)}",
            missing=problems
        )
    return True
