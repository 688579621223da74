import pytest

from exceptions import ValidationError


def test_create_and_list_reports(store, clock):
    first = store.create_report("Alex")
    clock.advance(days=1)
    second = store.create_report("Sam")

    reports = store.list_reports()

    assert [r["id"] for r in reports] == [second, first]
    assert reports[0]["date"] == "2024-03-16"
    assert reports[0]["status"] == "pending"
    assert reports[0]["submitted_at"] == "2024-03-16 09:30:00"


def test_list_reports_is_limited(store, clock):
    for _ in range(5):
        store.create_report("Alex")
        clock.advance(days=1)

    assert len(store.list_reports(limit=3)) == 3
    assert [r["date"] for r in store.list_reports(limit=2)] == ["2024-03-19", "2024-03-18"]


def test_report_requires_staff_name(store):
    with pytest.raises(ValidationError):
        store.create_report(" ")
