from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from task_api.core.pagination import PageParams, build_pagination
from task_api.core.query import convert_datetime_to_utc, parse_date_range, parse_fields
from task_api.schemas.task import TASK_FIELDS


class TestPagination:
    def test_middle_page(self):
        params = PageParams(page=2, limit=10)

        assert params.skip == 10
        assert build_pagination(params, 25).model_dump() == {
            "page": 2, "limit": 10, "total": 25, "pages": 3, "has_next": True, "has_prev": True,
        }

    def test_last_page(self):
        pagination = build_pagination(PageParams(page=3, limit=10), 25)

        assert pagination.has_next is False

    def test_empty_result(self):
        pagination = build_pagination(PageParams(page=1, limit=10), 0)

        assert pagination.pages == 0
        assert pagination.has_next is False
        assert pagination.has_prev is False


class TestParseFields:
    def test_known_fields(self):
        assert parse_fields("id, title,bogus", TASK_FIELDS) == {"id", "title"}

    def test_nothing_usable(self):
        assert parse_fields("bogus", TASK_FIELDS) is None
        assert parse_fields("", TASK_FIELDS) is None
        assert parse_fields(None, TASK_FIELDS) is None


class TestParseDateRange:
    def test_bare_dates_cover_whole_end_day(self):
        start, end = parse_date_range("2026-10-01,2026-10-19")

        assert start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 10, 20, tzinfo=timezone.utc)

    def test_datetimes_are_converted_to_utc(self):
        start, end = parse_date_range("2026-10-01T10:00:00+02:00,2026-10-01T12:00:00")

        assert start == datetime(2026, 10, 1, 8, tzinfo=timezone.utc)
        assert end == datetime(2026, 10, 1, 12, tzinfo=timezone.utc)

    def test_same_day(self):
        start, end = parse_date_range("2026-10-19,2026-10-19")

        assert end - start == timedelta(days=1)

    def test_missing_value(self):
        assert parse_date_range(None) is None

    @pytest.mark.parametrize("value", ["2026-10-01", "2026-10-01,", "a,b", "2026-10-19,2026-10-01"])
    def test_invalid(self, value):
        with pytest.raises(HTTPException) as exc_info:
            parse_date_range(value)

        assert exc_info.value.status_code == 400


def test_convert_naive_datetime_to_utc():
    naive = datetime(2026, 10, 19, 9, 30)

    assert convert_datetime_to_utc(naive) == datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
    assert convert_datetime_to_utc(None) is None
