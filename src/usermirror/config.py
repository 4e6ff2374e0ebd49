"""Default configuration values for usermirror."""

from __future__ import annotations

from typing import Final

# The remote directory is the JSONPlaceholder-style ``/users`` collection; the
# whole set is returned in one response.
DEFAULT_API_BASE_URL: Final[str] = "https://jsonplaceholder.typicode.com"
USERS_ENDPOINT: Final[str] = "users"
DEFAULT_REQUEST_TIMEOUT_SEC: Final[float] = 15.0

DB_FILE_NAME: Final[str] = "users.db"
DB_POOL_SIZE: Final[int] = 4
DB_BUSY_TIMEOUT_SEC: Final[float] = 5.0

# Number of rows fetched by one "load more".  The read window advances by this
# amount even when the page comes back short.
PAGE_SIZE: Final[int] = 20

# One worker per axis: query subscription, refresh and pagination.
VIEWMODEL_WORKERS: Final[int] = 3

# Banner text shown when a refresh fails but cached users are still on screen.
# The raw cause is deliberately not echoed here.
SYNC_FAILED_MESSAGE: Final[str] = "Failed to sync with the server"
