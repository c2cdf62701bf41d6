"""
Pagination tests - aggregation across pages and termination guarantees
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models import PageInfo, PageResponse, RegistrantSummary, Webinar
from utils.errors import InvalidArgumentError, PaginationLimitError
from webinar_ops.pagination import PaginatedFetcher


def page(items, total_pages, number=0):
    return PageResponse(items=items, page=PageInfo(size=len(items or []), total_pages=total_pages, number=number))


class RecordingRequest:
    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    def __call__(self, page_number, size):
        self.calls.append((page_number, size))
        return self.pages[len(self.calls) - 1]


class TestFetchAll:

    @pytest.mark.pagination
    def test_single_page(self):
        request = RecordingRequest([page(['a', 'b'], 1)])

        assert PaginatedFetcher().fetch_all(request, 200) == ['a', 'b']
        assert request.calls == [(0, 200)]

    @pytest.mark.pagination
    def test_aggregates_pages_in_order(self):
        request = RecordingRequest([page(['a'], 3), page(['b'], 3, 1), page(['c'], 3, 2)])

        assert PaginatedFetcher().fetch_all(request, 1) == ['a', 'b', 'c']
        assert [call[0] for call in request.calls] == [0, 1, 2]

    @pytest.mark.pagination
    def test_total_pages_reread_from_every_response(self):
        # The result set grows while we are paging
        request = RecordingRequest([page(['a'], 2), page(['b'], 3, 1), page(['c'], 3, 2)])

        assert PaginatedFetcher().fetch_all(request, 1) == ['a', 'b', 'c']

    @pytest.mark.pagination
    def test_shrinking_total_stops_early(self):
        request = RecordingRequest([page(['a'], 3), page(['b'], 2, 1), page(['never'], 3, 2)])

        assert PaginatedFetcher().fetch_all(request, 1) == ['a', 'b']
        assert len(request.calls) == 2

    @pytest.mark.pagination
    def test_missing_collection_stops(self):
        request = RecordingRequest([page(['a'], 5), PageResponse(items=None, page=PageInfo(total_pages=5))])

        assert PaginatedFetcher().fetch_all(request, 1) == ['a']
        assert len(request.calls) == 2

    @pytest.mark.pagination
    def test_empty_result(self):
        request = RecordingRequest([page([], 0)])

        assert PaginatedFetcher().fetch_all(request, 200) == []
        assert len(request.calls) == 1

    @pytest.mark.pagination
    @pytest.mark.parametrize('size', [0, 201, -1])
    def test_page_size_out_of_range_rejected_before_any_call(self, size):
        request = RecordingRequest([])

        with pytest.raises(InvalidArgumentError):
            PaginatedFetcher().fetch_all(request, size)
        assert request.calls == []

    @pytest.mark.pagination
    def test_safety_bound(self):
        class EndlessRequest:
            calls = 0

            def __call__(self, page_number, size):
                self.calls += 1
                return page(['x'], page_number + 2, page_number)

        request = EndlessRequest()

        with pytest.raises(PaginationLimitError):
            PaginatedFetcher(max_pages=5).fetch_all(request, 1)
        assert request.calls == 5


class TestPageParsing:

    @pytest.mark.pagination
    def test_embedded_collection(self):
        payload = {
            '_embedded': {'webinars': [{'webinarKey': 1, 'organizerKey': 2}]},
            'page': {'size': 1, 'totalElements': 1, 'totalPages': 1, 'number': 0}
        }

        response = PageResponse.from_api(payload, 'webinars', Webinar.from_api)

        assert response.total_pages == 1
        assert response.items[0].webinar_key == '1'
        assert response.items[0].organizer_key == '2'

    @pytest.mark.pagination
    def test_missing_collection_is_none(self):
        response = PageResponse.from_api({'page': {'totalPages': 3}}, 'webinars', Webinar.from_api)

        assert response.items is None
        assert response.total_pages == 3

    @pytest.mark.pagination
    def test_registrant_data_envelope(self):
        payload = {'data': [{'registrantKey': 1, 'email': 'a@example.com'}],
                   'total': 450, 'page': 0, 'limit': 200, 'pageSize': 1}

        response = PageResponse.from_api(payload, 'registrants', RegistrantSummary.from_api)

        assert [r.registrant_key for r in response.items] == ['1']
        assert response.total_pages == 3

    @pytest.mark.pagination
    def test_data_envelope_without_totals_is_single_page(self):
        response = PageResponse.from_api({'Data': [{'registrantKey': 'R1'}]}, 'registrants',
                                         RegistrantSummary.from_api)

        assert len(response.items) == 1
        assert response.total_pages == 1

    @pytest.mark.pagination
    def test_data_envelope_pages_fetched_until_total(self):
        pages = [
            {'data': [{'registrantKey': 'R1'}, {'registrantKey': 'R2'}], 'total': 3, 'page': 0, 'limit': 2},
            {'data': [{'registrantKey': 'R3'}], 'total': 3, 'page': 1, 'limit': 2},
        ]

        registrants = PaginatedFetcher().fetch_all(
            lambda page_number, size: PageResponse.from_api(pages[page_number], 'registrants',
                                                            RegistrantSummary.from_api),
            2
        )

        assert [r.registrant_key for r in registrants] == ['R1', 'R2', 'R3']

    @pytest.mark.pagination
    def test_bare_array_is_single_page(self):
        response = PageResponse.from_api([{'webinarKey': '1'}, {'webinarKey': '2'}], 'webinars', Webinar.from_api)

        assert len(response.items) == 2
        assert response.total_pages == 1
