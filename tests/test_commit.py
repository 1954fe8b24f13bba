from datetime import datetime, timezone

import pytest

from scripts.reels_pipeline import run
from scripts.reels_pipeline.instagram import GraphAPIError

from conftest import canonical_row, FakePublisher, FakeSheetsService


SHEET = "motivational"
MEDIA = "https://res.cloudinary.com/demo/video/upload/v123/reels/clip.mp4"
FIXED = datetime(2025, 5, 6, 7, 8, 9, 123000, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fixed_clock(monkeypatch):
    monkeypatch.setattr(run, "utc_now", lambda: FIXED)


def commit(service, publisher, sheet_name=None):
    return run.run_commit(sheet_name=sheet_name, service=service, spreadsheet_id="sheet-123", publisher=publisher)


def test_commit_publishes_and_records_timestamp(make_service):
    service = make_service([canonical_row(media_url=MEDIA, creation_id="777", caption="cap")])
    publisher = FakePublisher(media_id="18011")

    body, status = commit(service, publisher)

    assert status == 200
    assert body["success"] is True
    assert body["publishedAt"] == "2025-05-06T07:08:09.123Z"
    assert body["mediaId"] == "18011"
    assert body["row"] == 2
    assert body["caption"] == "cap"
    assert publisher.published == ["777"]
    assert service.cell(SHEET, "I2") == "2025-05-06T07:08:09.123Z"
    assert service.cell(SHEET, "J2") == "777"


def test_commit_selects_first_commit_ready_row(make_service):
    service = make_service([
        canonical_row(media_url=MEDIA),
        canonical_row(media_url=MEDIA, creation_id="1", published_at="2025-01-01T00:00:00.000Z"),
        canonical_row(media_url=MEDIA, creation_id="2", error="bad"),
        canonical_row(media_url=MEDIA, creation_id="3"),
        canonical_row(media_url=MEDIA, creation_id="4"),
    ])
    publisher = FakePublisher()

    body, status = commit(service, publisher)

    assert status == 200
    assert body["row"] == 5
    assert publisher.published == ["3"]


def test_commit_nothing_to_do(make_service):
    service = make_service([canonical_row(media_url=MEDIA)])

    body, status = commit(service, FakePublisher())

    assert status == 404
    assert body["error"] == "No publishable rows found in sheet 'motivational'"


def test_commit_upstream_error_is_recorded(make_service):
    service = make_service([canonical_row(media_url=MEDIA, creation_id="777")])
    payload = {"error": {"message": "Media ID is not available", "code": 9007}}
    publisher = FakePublisher(error=GraphAPIError("Media ID is not available", code=9007, status=400, payload=payload))

    body, status = commit(service, publisher)

    assert status == 400
    assert body["details"] == payload
    assert service.cell(SHEET, "K2") == "[2025-05-06T07:08:09.123Z] PUBLISH: Media ID is not available (Code: 9007)"
    assert service.cell(SHEET, "I2") == ""

    # 에러가 기록된 행은 다시 선택되지 않음
    body, status = commit(service, FakePublisher())
    assert status == 404


def test_commit_defaults_to_motivational_sheet(monkeypatch, canonical_header):
    monkeypatch.setenv("GOOGLE_SHEET_NAME", "funny")
    service = FakeSheetsService({
        "motivational": [canonical_header, canonical_row(media_url=MEDIA, creation_id="777")],
        "funny": [canonical_header],
    })

    body, status = commit(service, FakePublisher())

    assert status == 200
    assert body["sheetName"] == "motivational"


def test_commit_uses_requested_sheet(canonical_header):
    service = FakeSheetsService({"funny": [canonical_header, canonical_row(media_url=MEDIA, creation_id="9")]})

    body, status = commit(service, FakePublisher(), sheet_name="funny")

    assert status == 200
    assert body["sheetName"] == "funny"


def test_commit_missing_app_id(make_service, monkeypatch):
    monkeypatch.delenv("APP_ID")
    service = make_service([canonical_row(media_url=MEDIA, creation_id="777")])

    body, status = run.run_commit(service=service, spreadsheet_id="sheet-123")

    assert status == 500
    assert service.calls == []


def test_commit_store_write_failure_is_internal_error(make_service):
    service = make_service([canonical_row(media_url=MEDIA, creation_id="777")])
    service.fail_writes = True

    body, status = commit(service, FakePublisher())

    assert status == 500
    assert body["error"] == "Internal server error"
