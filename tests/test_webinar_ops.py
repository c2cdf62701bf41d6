"""
HTTP layer tests - request shapes and error mapping of reader and writer
"""

import pytest
import requests
import sys
import os
from datetime import datetime
from unittest.mock import MagicMock

import pytz

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import NewRegistrant, Webinar
from sync.matcher import EntityMatcher
from utils.errors import InvalidArgumentError, RemoteApiError
from utils.timezone import DateWindow
from webinar_ops.pagination import PaginatedFetcher
from webinar_ops.reader import WebinarReader
from webinar_ops.writer import WebinarWriter

BASE_URL = 'https://api.example.com/G2W/rest/v2'


def make_response(status_code=200, body=None, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.content = b'{}' if body is not None else b''
    response.text = text
    response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def reader(session):
    return WebinarReader(BASE_URL, 'ACC', timeout=12, session=session)


class TestReader:

    @pytest.mark.unit
    def test_webinars_page_request(self, reader, session):
        session.request.return_value = make_response(200, {
            '_embedded': {'webinars': [{'webinarKey': '1', 'organizerKey': '9'}]},
            'page': {'totalPages': 1}
        })
        window = DateWindow.from_offsets(datetime(2025, 5, 31, tzinfo=pytz.UTC), -3, 3)

        page = reader.get_webinars_page('TOKEN', window, 0, 200)

        args, kwargs = session.request.call_args
        assert args == ('GET', f'{BASE_URL}/accounts/ACC/webinars')
        assert kwargs['params'] == {
            'fromTime': '2025-02-28T00:00:00Z', 'toTime': '2025-08-31T23:59:59Z', 'page': 0, 'size': 200
        }
        assert kwargs['headers']['Authorization'] == 'Bearer TOKEN'
        assert kwargs['timeout'] == 12
        assert page.items[0].organizer_key == '9'

    @pytest.mark.unit
    def test_registrants_page_uses_limit(self, reader, session):
        session.request.return_value = make_response(200, [{'registrantKey': 'R1', 'email': 'a@example.com'}])

        page = reader.get_registrants_page('TOKEN', 'O1', 'W1', 0, 50)

        args, kwargs = session.request.call_args
        assert args[1] == f'{BASE_URL}/organizers/O1/webinars/W1/registrants'
        assert kwargs['params'] == {'page': 0, 'limit': 50}
        assert page.items[0].email == 'a@example.com'
        assert page.total_pages == 1

    @pytest.mark.unit
    def test_registrants_data_envelope_seen_by_fetcher(self, reader, session):
        session.request.return_value = make_response(200, {
            'data': [{'registrantKey': 1, 'email': 'a@example.com'}],
            'total': 1, 'page': 0, 'limit': 200, 'pageSize': 1
        })

        registrants = PaginatedFetcher().fetch_all(
            lambda page, size: reader.get_registrants_page('TOKEN', 'O1', 'W1', page, size), 200)

        assert [r.registrant_key for r in registrants] == ['1']
        assert EntityMatcher().registrant_exists(registrants, 'a@example.com')
        assert session.request.call_count == 1

    @pytest.mark.unit
    def test_attendee_detail_path(self, reader, session):
        session.request.return_value = make_response(200, {'registrantKey': 'R1'})

        detail = reader.get_attendee('TOKEN', 'O1', 'W1', 'S1', 'R1')

        assert session.request.call_args[0][1] == f'{BASE_URL}/organizers/O1/webinars/W1/sessions/S1/attendees/R1'
        assert detail.registrant_key == 'R1'

    @pytest.mark.unit
    def test_attendees_page_collection(self, reader, session):
        session.request.return_value = make_response(200, {
            '_embedded': {'attendeeParticipationResponses': [
                {'registrantKey': 'R1', 'sessionKey': 'S1', 'attendanceTimeInSeconds': 600}
            ]},
            'page': {'totalPages': 1}
        })

        page = reader.get_attendees_page('TOKEN', 'O1', 'W1')

        assert page.items[0].session_key == 'S1'
        assert page.items[0].attendance_time_in_seconds == 600

    @pytest.mark.unit
    def test_non_success_status_raises_with_body(self, reader, session):
        session.request.return_value = make_response(404, None, text='x' * 2000)

        with pytest.raises(RemoteApiError) as exc_info:
            reader.get_registrant('TOKEN', 'O1', 'W1', 'R1')

        assert exc_info.value.status_code == 404
        assert len(exc_info.value.body) == 500

    @pytest.mark.unit
    def test_timeout_raises_remote_error(self, reader, session):
        session.request.side_effect = requests.exceptions.Timeout()

        with pytest.raises(RemoteApiError):
            reader.get_registrant('TOKEN', 'O1', 'W1', 'R1')
        assert session.request.call_count == 1

    @pytest.mark.unit
    def test_invalid_json_raises_remote_error(self, reader, session):
        response = make_response(200, {})
        response.json.side_effect = ValueError('bad json')
        session.request.return_value = response

        with pytest.raises(RemoteApiError):
            reader.get_registrant('TOKEN', 'O1', 'W1', 'R1')

    @pytest.mark.unit
    def test_oversized_page_rejected_before_request(self, reader, session):
        with pytest.raises(InvalidArgumentError):
            reader.get_registrants_page('TOKEN', 'O1', 'W1', 0, 201)
        session.request.assert_not_called()

    @pytest.mark.unit
    def test_missing_token_rejected(self, reader, session):
        with pytest.raises(InvalidArgumentError):
            reader.get_registrant('', 'O1', 'W1', 'R1')
        session.request.assert_not_called()


class TestWriter:

    @pytest.mark.unit
    def test_create_registrant(self, session):
        session.request.return_value = make_response(201, {
            'registrantKey': 555, 'joinUrl': 'https://join.example.com/x', 'status': 'APPROVED'
        })
        writer = WebinarWriter(BASE_URL, session=session)
        registrant = NewRegistrant('Ada', 'Lovelace', 'ada@example.com', phone='000', source='web_form')

        created = writer.create_registrant('TOKEN', Webinar('W1', 'O1'), registrant)

        args, kwargs = session.request.call_args
        assert args == ('POST', f'{BASE_URL}/organizers/O1/webinars/W1/registrants')
        assert kwargs['params'] == {'resendConfirmation': 'false'}
        assert kwargs['json'] == {
            'firstName': 'Ada', 'lastName': 'Lovelace', 'email': 'ada@example.com',
            'phone': '000', 'source': 'web_form'
        }
        assert created.registrant_key == '555'

    @pytest.mark.unit
    def test_null_fields_dropped(self, session):
        session.request.return_value = make_response(201, {'registrantKey': '1'})
        writer = WebinarWriter(BASE_URL, session=session)

        writer.create_registrant('TOKEN', Webinar('W1', 'O1'), NewRegistrant('Ada', 'Lovelace', 'a@example.com'))

        assert 'phone' not in session.request.call_args[1]['json']

    @pytest.mark.unit
    @pytest.mark.parametrize('webinar,registrant', [
        (Webinar('W1', None), NewRegistrant('Ada', 'Lovelace', 'a@example.com')),
        (Webinar(None, 'O1'), NewRegistrant('Ada', 'Lovelace', 'a@example.com')),
        (Webinar('W1', 'O1'), NewRegistrant('Ada', None, 'a@example.com')),
        (Webinar('W1', 'O1'), NewRegistrant('Ada', 'Lovelace', '')),
    ])
    def test_invalid_arguments_rejected(self, session, webinar, registrant):
        writer = WebinarWriter(BASE_URL, session=session)

        with pytest.raises(InvalidArgumentError):
            writer.create_registrant('TOKEN', webinar, registrant)
        session.request.assert_not_called()

    @pytest.mark.unit
    def test_conflict_raises(self, session):
        session.request.return_value = make_response(409, None, text='{"description": "already registered"}')
        writer = WebinarWriter(BASE_URL, session=session)

        with pytest.raises(RemoteApiError) as exc_info:
            writer.create_registrant('TOKEN', Webinar('W1', 'O1'), NewRegistrant('Ada', 'Lovelace', 'a@example.com'))
        assert exc_info.value.status_code == 409
