"""
client package: Python-side dashboard glue.

Expose the HTTP client and the offline mirror so dashboard code can import
without touching the modules directly.
"""

from .api_client import ApiError, CampusPayClient, ServerUnavailable  # noqa: F401
from .local_mirror import DashboardSync, LocalMirrorRepository, StatusChange  # noqa: F401
