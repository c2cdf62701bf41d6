# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

# Expose the utilities other modules import most
from utils.errors import (
    AuthenticationError,
    ConfigurationError,
    CredentialPersistenceError,
    DataIntegrityWarning,
    InvalidArgumentError,
    PaginationLimitError,
    RemoteApiError,
    SyncError,
)
from utils.logger import JsonFormatter, StructuredLogger, setup_logging
from utils.timezone import DateWindow, get_utc_time
