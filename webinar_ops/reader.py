# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Webinar Reader - Handles all read operations against the webinar API
"""
import logging

from models import (
    AttendeeDetail,
    AttendeeParticipation,
    PageResponse,
    RegistrantDetail,
    RegistrantSummary,
    Webinar,
)
from utils.timezone import DateWindow
from webinar_ops.base import ApiBase, check_page_size

logger = logging.getLogger(__name__)


class WebinarReader(ApiBase):
    """List and detail endpoints for webinars, registrants and attendees"""

    def __init__(self, base_url: str, account_key: str, timeout: float = 30, session=None):
        super().__init__(base_url, timeout=timeout, session=session)
        self.account_key = account_key

    def get_webinars_page(self, access_token: str, window: DateWindow,
                          page: int = 0, size: int = 200) -> PageResponse[Webinar]:
        """One page of the account's webinars inside the date window"""
        check_page_size(size)
        params = dict(window.as_params())
        params.update({'page': page, 'size': size})

        payload = self._request('GET', f"/accounts/{self.account_key}/webinars", access_token, params=params)
        return PageResponse.from_api(payload, 'webinars', Webinar.from_api)

    def get_registrants_page(self, access_token: str, organizer_key: str, webinar_key: str,
                             page: int = 0, size: int = 200) -> PageResponse[RegistrantSummary]:
        check_page_size(size)
        payload = self._request(
            'GET',
            f"/organizers/{organizer_key}/webinars/{webinar_key}/registrants",
            access_token,
            params={'page': page, 'limit': size}
        )
        return PageResponse.from_api(payload, 'registrants', RegistrantSummary.from_api)

    def get_registrant(self, access_token: str, organizer_key: str, webinar_key: str,
                       registrant_key: str) -> RegistrantDetail:
        payload = self._request(
            'GET',
            f"/organizers/{organizer_key}/webinars/{webinar_key}/registrants/{registrant_key}",
            access_token
        )
        return RegistrantDetail.from_api(payload or {})

    def get_attendees_page(self, access_token: str, organizer_key: str, webinar_key: str,
                           page: int = 0, size: int = 200) -> PageResponse[AttendeeParticipation]:
        check_page_size(size)
        payload = self._request(
            'GET',
            f"/organizers/{organizer_key}/webinars/{webinar_key}/attendees",
            access_token,
            params={'page': page, 'size': size}
        )
        return PageResponse.from_api(payload, 'attendeeParticipationResponses', AttendeeParticipation.from_api)

    def get_attendee(self, access_token: str, organizer_key: str, webinar_key: str,
                     session_key: str, registrant_key: str) -> AttendeeDetail:
        """Attendee record of one session"""
        payload = self._request(
            'GET',
            f"/organizers/{organizer_key}/webinars/{webinar_key}/sessions/{session_key}/attendees/{registrant_key}",
            access_token
        )
        return AttendeeDetail.from_api(payload or {})
