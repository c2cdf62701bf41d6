# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Webinar Writer - Handles all write operations against the webinar API
"""
import logging

from models import NewRegistrant, RegistrantCreated, Webinar
from utils.errors import InvalidArgumentError, RemoteApiError
from webinar_ops.base import ApiBase

logger = logging.getLogger(__name__)


class WebinarWriter(ApiBase):
    """Creates registrants"""

    def create_registrant(self, access_token: str, webinar: Webinar, registrant: NewRegistrant,
                          resend_confirmation: bool = False) -> RegistrantCreated:
        if not webinar.organizer_key:
            raise InvalidArgumentError("Organizer key is required.")
        if not webinar.webinar_key:
            raise InvalidArgumentError("Webinar key is required.")
        if not access_token:
            raise InvalidArgumentError("Access token is required.")
        if not (registrant.first_name and registrant.last_name and registrant.email):
            raise InvalidArgumentError("First name, last name, and email are required fields.")

        payload = self._request(
            'POST',
            f"/organizers/{webinar.organizer_key}/webinars/{webinar.webinar_key}/registrants",
            access_token,
            params={'resendConfirmation': str(resend_confirmation).lower()},
            json_body=registrant.to_api()
        )

        if not isinstance(payload, dict):
            raise RemoteApiError("Create registrant returned no registrant")

        created = RegistrantCreated.from_api(payload)
        logger.info(f"✅ Created registrant {created.registrant_key} for webinar {webinar.webinar_key}")
        return created
