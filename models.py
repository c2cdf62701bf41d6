# © 2024–2025 Harnisch LLC. All Rights Reserved.
# Licensed exclusively for use by St. Edward Church & School (Nashville, TN).
# Unauthorized use, distribution, or modification is prohibited.

"""
Data models for the webinar sync

One record type per endpoint. List and detail endpoints return different
field sets, so they are never shared.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from utils.errors import DataIntegrityWarning
from utils.timezone import parse_api_datetime

T = TypeVar('T')


def _text(value: Any) -> Optional[str]:
    """Normalize identifiers that the API sends as numbers or strings"""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# =============================================================================
# OAUTH
# =============================================================================

@dataclass
class TokenResponse:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    principal: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict) -> 'TokenResponse':
        expires_in = data.get('expires_in')
        return cls(
            access_token=data['access_token'],
            refresh_token=data.get('refresh_token') or None,
            expires_in=int(expires_in) if expires_in is not None else None,
            token_type=data.get('token_type'),
            scope=data.get('scope'),
            principal=data.get('principal')
        )


# =============================================================================
# PAGING
# =============================================================================

@dataclass
class PageInfo:
    size: int = 0
    total_elements: int = 0
    total_pages: int = 0
    number: int = 0

    @classmethod
    def from_api(cls, data: Optional[Dict]) -> 'PageInfo':
        data = data or {}
        return cls(
            size=int(data.get('size') or 0),
            total_elements=int(data.get('totalElements') or 0),
            total_pages=int(data.get('totalPages') or 0),
            number=int(data.get('number') or 0)
        )

    @classmethod
    def from_data_envelope(cls, payload: Dict, item_count: int) -> 'PageInfo':
        """Paging fields that sit beside a top-level "data" list (total, page, limit, pageSize)"""
        fields = {str(key).lower(): value for key, value in payload.items()}
        total = int(fields.get('total') or 0)
        limit = int(fields.get('limit') or 0)
        total_pages = math.ceil(total / limit) if total and limit else 1
        return cls(
            size=int(fields.get('pagesize') or item_count),
            total_elements=total or item_count,
            total_pages=total_pages,
            number=int(fields.get('page') or 0)
        )


@dataclass
class PageResponse(Generic[T]):
    """One page of a list endpoint. items is None when the page carried no collection."""
    items: Optional[List[T]]
    page: PageInfo

    @property
    def total_pages(self) -> int:
        return self.page.total_pages

    @classmethod
    def from_api(cls, payload: Any, collection: str, factory: Callable[[Dict], T]) -> 'PageResponse[T]':
        """Parse a list response.

        The usual shape is {"_embedded": {collection: [...]}, "page": {...}};
        some deployments spell the wrapper "embedded". The registrant list
        answers {"data": [...], "total", "page", "limit", "pageSize"}. A bare
        JSON array is treated as a single complete page.
        """
        if isinstance(payload, list):
            return cls(
                items=[factory(item) for item in payload],
                page=PageInfo(size=len(payload), total_elements=len(payload), total_pages=1, number=0)
            )

        if not isinstance(payload, dict):
            return cls(items=None, page=PageInfo())

        data = next((value for key, value in payload.items() if str(key).lower() == 'data'), None)
        if isinstance(data, list):
            return cls(
                items=[factory(item) for item in data],
                page=PageInfo.from_data_envelope(payload, len(data))
            )

        embedded = payload.get('_embedded')
        if embedded is None:
            embedded = payload.get('embedded')

        raw_items = embedded.get(collection) if isinstance(embedded, dict) else None
        items = [factory(item) for item in raw_items] if raw_items is not None else None
        return cls(items=items, page=PageInfo.from_api(payload.get('page')))


# =============================================================================
# WEBINARS
# =============================================================================

@dataclass
class TimeSlot:
    start_time: Optional[str]
    end_time: Optional[str]

    @property
    def end(self) -> Optional[datetime]:
        return parse_api_datetime(self.end_time)


@dataclass
class Webinar:
    """Webinar as returned by the account webinar list"""
    webinar_key: str
    organizer_key: Optional[str]
    subject: Optional[str] = None
    times: List[TimeSlot] = field(default_factory=list)
    raw: Dict = field(default_factory=dict, repr=False)

    @property
    def earliest_end_time(self) -> Optional[datetime]:
        """Earliest parseable slot end time, used for filtering and sorting"""
        ends = [slot.end for slot in self.times if slot.end is not None]
        return min(ends) if ends else None

    @classmethod
    def from_api(cls, data: Dict) -> 'Webinar':
        times = [
            TimeSlot(start_time=slot.get('startTime'), end_time=slot.get('endTime'))
            for slot in (data.get('times') or [])
            if isinstance(slot, dict)
        ]
        return cls(
            webinar_key=_text(data.get('webinarKey')),
            organizer_key=_text(data.get('organizerKey')),
            subject=data.get('subject'),
            times=times,
            raw=data
        )


# =============================================================================
# LEADS
# =============================================================================

_LEAD_FIELDS = {
    'contact_id': ('contact_id', 'contactid'),
    'first_name': ('firstname', 'first_name'),
    'last_name': ('lastname', 'last_name'),
    'email': ('email',),
    'user_id': ('userid', 'user_id'),
    'source': ('quelle', 'source'),
    'sub_source': ('uquelle', 'subsource', 'sub_source'),
    'destination_webinar_key': ('destination', 'destinationwebinarkey', 'destination_webinar_key'),
}


@dataclass
class Lead:
    """Externally supplied contact record picked up from the inbox"""
    contact_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = None
    sub_source: Optional[str] = None
    destination_webinar_key: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def registrant_source(self) -> str:
        return f"{self.source or ''}_{self.sub_source or ''}"

    @classmethod
    def from_dict(cls, data: Dict) -> 'Lead':
        """Build a lead from an inbox record, matching keys case-insensitively.

        Raises:
            DataIntegrityWarning: the record is not an object or has no contact id
        """
        if not isinstance(data, dict):
            raise DataIntegrityWarning(f"Lead record is not an object: {data!r}")

        lowered = {str(key).lower(): value for key, value in data.items()}
        values = {}
        for attr, aliases in _LEAD_FIELDS.items():
            values[attr] = next((_text(lowered[alias]) for alias in aliases if alias in lowered), None)

        if not values['contact_id']:
            raise DataIntegrityWarning("Lead record has no contact id")
        return cls(**values)


# =============================================================================
# REGISTRANTS
# =============================================================================

@dataclass
class RegistrantSummary:
    """Entry of the registrant list of one webinar"""
    registrant_key: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: Optional[str] = None
    raw: Dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict) -> 'RegistrantSummary':
        return cls(
            registrant_key=_text(data.get('registrantKey')),
            email=data.get('email'),
            first_name=data.get('firstName'),
            last_name=data.get('lastName'),
            status=data.get('status'),
            raw=data
        )


@dataclass
class RegistrantDetail:
    """Full registrant record from the detail endpoint"""
    registrant_key: str
    email: Optional[str] = None
    phone: Optional[str] = None
    raw: Dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict) -> 'RegistrantDetail':
        return cls(
            registrant_key=_text(data.get('registrantKey')),
            email=data.get('email'),
            phone=data.get('phone'),
            raw=data
        )


@dataclass
class NewRegistrant:
    """Body of the create-registrant call"""
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    phone: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_lead(cls, lead: Lead, phone: str) -> 'NewRegistrant':
        return cls(
            first_name=lead.first_name,
            last_name=lead.last_name,
            email=lead.email,
            phone=phone,
            source=lead.registrant_source
        )

    def to_api(self) -> Dict:
        body = {
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'source': self.source,
        }
        return {key: value for key, value in body.items() if value is not None}


@dataclass
class RegistrantCreated:
    registrant_key: Optional[str]
    join_url: Optional[str] = None
    status: Optional[str] = None
    asset: bool = False

    @classmethod
    def from_api(cls, data: Dict) -> 'RegistrantCreated':
        return cls(
            registrant_key=_text(data.get('registrantKey')),
            join_url=data.get('joinUrl'),
            status=data.get('status'),
            asset=bool(data.get('asset', False))
        )


# =============================================================================
# ATTENDEES
# =============================================================================

@dataclass
class AttendeeParticipation:
    """Entry of the attendee list of one webinar"""
    registrant_key: str
    session_key: Optional[str]
    email: Optional[str] = None
    attendance_time_in_seconds: int = 0
    raw: Dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict) -> 'AttendeeParticipation':
        return cls(
            registrant_key=_text(data.get('registrantKey')),
            session_key=_text(data.get('sessionKey')),
            email=data.get('email'),
            attendance_time_in_seconds=int(data.get('attendanceTimeInSeconds') or 0),
            raw=data
        )


@dataclass
class AttendeeDetail:
    """Attendee record of one session from the detail endpoint"""
    registrant_key: str
    email: Optional[str] = None
    raw: Dict = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, data: Dict) -> 'AttendeeDetail':
        return cls(
            registrant_key=_text(data.get('registrantKey')),
            email=data.get('email'),
            raw=data
        )
