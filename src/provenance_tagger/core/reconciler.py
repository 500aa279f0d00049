"""Provenance tag state machine.

A resource has no persisted state of its own beyond its tags. Each invocation
infers it from the current tag set:

- UNCLAIMED: none of Creator, DateCreated, TimeCreatedInPST present.
- CLAIMED: at least one of them present.

UNCLAIMED resources receive all five provenance keys. CLAIMED resources
receive only LastModifiedBy and LastModifiedDate, so the immutable keys can
never be overwritten even when a stale tag set is re-read. Foreign keys are
never part of a patch; the gateway's merge semantics preserve them.

Timestamps:
- Dates render as M/D/YYYY (no zero padding) from the UTC calendar day.
- TimeCreatedInPST renders the US Pacific wall clock as hh:mmAM / hh:mmPM.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from provenance_tagger.core.models import (
    CREATOR_TAG,
    DATE_CREATED_TAG,
    IMMUTABLE_TAG_KEYS,
    LAST_MODIFIED_BY_TAG,
    LAST_MODIFIED_DATE_TAG,
    TIME_CREATED_TAG,
    ClaimState,
    ReconcileOutcome,
    TagSet,
)

DEFAULT_PACIFIC_TIMEZONE = "America/Los_Angeles"


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def format_date(now: datetime) -> str:
    """Render the UTC calendar day of a timestamp as M/D/YYYY.

    Args:
        now: Invocation timestamp. Naive values are taken as UTC.

    Returns:
        Date string such as "3/1/2024".
    """
    day = _as_utc(now).date()
    return f"{day.month}/{day.day}/{day.year}"


def format_pacific_time(now: datetime, tz: tzinfo | str = DEFAULT_PACIFIC_TIMEZONE) -> str:
    """Render a timestamp as US Pacific wall-clock time.

    Args:
        now: Invocation timestamp. Naive values are taken as UTC.
        tz: Zone used for the conversion, or its IANA name.

    Returns:
        Time string such as "09:05AM" or "11:30PM".
    """
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    local = _as_utc(now).astimezone(zone)
    suffix = "AM" if local.hour < 12 else "PM"
    hour = local.hour % 12 or 12
    return f"{hour:02d}:{local.minute:02d}{suffix}"


def apply_patch(current: Mapping[str, str], patch: Mapping[str, str]) -> TagSet:
    """Apply merge semantics: upsert patch keys, leave the rest untouched.

    Args:
        current: Tag set before the write.
        patch: Merge patch.

    Returns:
        A new tag set reflecting the merge.
    """
    merged = dict(current)
    merged.update(patch)
    return merged


class TagReconciler:
    """Computes the provenance merge patch for one qualifying event.

    Args:
        pacific_timezone: IANA zone name used for TimeCreatedInPST.

    Raises:
        ZoneInfoNotFoundError: If the zone name is not in the tz database.
    """

    def __init__(self, pacific_timezone: str = DEFAULT_PACIFIC_TIMEZONE) -> None:
        self._pacific_zone = ZoneInfo(pacific_timezone)

    @staticmethod
    def classify(current_tags: Mapping[str, str]) -> ClaimState:
        """Infer the claim state from the presence of any immutable key."""
        if any(key in current_tags for key in IMMUTABLE_TAG_KEYS):
            return ClaimState.CLAIMED
        return ClaimState.UNCLAIMED

    def reconcile(
        self,
        current_tags: Mapping[str, str],
        actor: str,
        now: datetime,
    ) -> ReconcileOutcome:
        """Compute the merge patch for a resource.

        Both timestamps are derived once and shared between the immutable and
        mutable keys written in the same patch.

        Args:
            current_tags: The resource's full current tag set.
            actor: Resolved actor identity.
            now: Invocation timestamp.

        Returns:
            ReconcileOutcome with the observed state and the patch to merge.
        """
        state = self.classify(current_tags)
        date_str = format_date(now)

        patch: TagSet = {}
        if state is ClaimState.UNCLAIMED:
            patch[CREATOR_TAG] = actor
            patch[DATE_CREATED_TAG] = date_str
            patch[TIME_CREATED_TAG] = format_pacific_time(now, self._pacific_zone)
        patch[LAST_MODIFIED_BY_TAG] = actor
        patch[LAST_MODIFIED_DATE_TAG] = date_str

        return ReconcileOutcome(state=state, patch=patch)
