# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Entity Matcher - Maps leads to webinars and checks registrant existence
"""
import logging
from typing import Iterable, Optional

from models import Lead, Webinar

logger = logging.getLogger(__name__)


class EntityMatcher:
    """Exact-match rules, no fuzzy matching"""

    def find_target_webinar(self, lead: Lead, webinars: Iterable[Webinar]) -> Optional[Webinar]:
        """First webinar whose key equals the lead's destination"""
        if not lead.destination_webinar_key:
            return None
        for webinar in webinars:
            if webinar.webinar_key == lead.destination_webinar_key:
                return webinar
        return None

    def registrant_exists(self, existing_registrants: Iterable, candidate_email: Optional[str]) -> bool:
        """Case-sensitive check against the live registrant list, not the ledger"""
        if candidate_email is None:
            return False
        return any(registrant.email == candidate_email for registrant in existing_registrants)
