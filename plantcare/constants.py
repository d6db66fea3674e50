"""
Application Constants
=====================

Centralized care-policy constants so that no call site carries its own
literal for a frequency, horizon or collection name.

Usage:
    from plantcare.constants import CareDefaults, Collections
"""


class CareDefaults:
    """Care cadence and task-list policy values (days)."""
    WATERING_FREQUENCY_DAYS = 7
    FEEDING_FREQUENCY_DAYS = 14

    # Check-in window for a plant that has never been watered or fed
    NEXT_CHECK_SAFETY_DAYS = 2

    # Task list: how far ahead "upcoming checks" looks
    UPCOMING_HORIZON_DAYS = 3

    # Task list: system-wide bound after which feeding counts as overdue,
    # independent of the per-plant feeding cadence
    FEEDING_STALENESS_DAYS = 30


class Collections:
    """Persisted collection names."""
    PLANTS = "plants"
    CARE_EVENTS = "careEvents"

    ALL = (PLANTS, CARE_EVENTS)


class Timeouts:
    """Timeout values for network and file-lock operations (seconds)."""
    REMOTE_STORE_TIMEOUT = 10
    FILE_LOCK_TIMEOUT = 5.0

    # A lockfile older than this is left over from a crashed writer
    FILE_LOCK_STALE_AFTER = 30.0

