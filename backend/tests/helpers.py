"""
Shared constants for the test suite.
"""

from datetime import datetime, timezone

# Frozen "now" for every scoring test
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

SENDER_ID = 1
OTHER_SENDER_ID = 2
COURIER_ID = 10
OTHER_COURIER_ID = 11


def fixed_clock() -> datetime:
    return NOW
