# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Webinar selection for the download stages
"""
import logging
from datetime import datetime
from typing import List

from models import Webinar
from utils.timezone import ensure_utc

logger = logging.getLogger(__name__)

# Month offsets of the fixed-window stages
SNAPSHOT_MONTHS_BACKWARD = -120
SNAPSHOT_MONTHS_FORWARD = 3
UPLOAD_MONTHS_BACKWARD = -3
UPLOAD_MONTHS_FORWARD = 3


def _with_end_time(webinars: List[Webinar]) -> List[Webinar]:
    usable = []
    for webinar in webinars:
        if webinar.earliest_end_time is None:
            logger.warning(f"Webinar {webinar.webinar_key} has no parseable end time - skipped")
            continue
        usable.append(webinar)
    return usable


def select_upcoming(webinars: List[Webinar], now: datetime) -> List[Webinar]:
    """Webinars whose earliest slot ends now or later, soonest first"""
    now = ensure_utc(now)
    selected = [w for w in _with_end_time(webinars) if w.earliest_end_time >= now]
    return sorted(selected, key=lambda w: w.earliest_end_time)


def select_ended(webinars: List[Webinar], now: datetime) -> List[Webinar]:
    """Webinars whose earliest slot ended before now, oldest first"""
    now = ensure_utc(now)
    selected = [w for w in _with_end_time(webinars) if w.earliest_end_time < now]
    return sorted(selected, key=lambda w: w.earliest_end_time)
