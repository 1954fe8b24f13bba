"""
Test configuration and fixtures for the reels pipeline.

FakeSheetsService mimics the googleapiclient fluent interface
(service.spreadsheets().values().get(...).execute()) over an in-memory grid,
so no test touches the network.
"""

import builtins
import os
import re
import sys

import pytest

# Ensure repo root is on sys.path
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from scripts.reels_pipeline.config import CANONICAL_SCHEMA, SIMPLE_SCHEMA


RANGE_RE = re.compile(r"^'((?:[^']|'')*)'(?:!([A-Z]+)(\d+)?(?::([A-Z]+)(\d+)?)?)?$")


def col_index(letters):
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def parse_range(a1):
    match = RANGE_RE.match(a1)
    if not match:
        raise ValueError(f"Unsupported range: {a1}")
    sheet = match.group(1).replace("''", "'")
    start_col = col_index(match.group(2)) if match.group(2) else 0
    start_row = int(match.group(3)) if match.group(3) else 1
    end_col = col_index(match.group(4)) if match.group(4) else (start_col if match.group(2) and not match.group(4) else None)
    if match.group(4):
        end_row = int(match.group(5)) if match.group(5) else None
    elif match.group(2):
        end_row = start_row
    else:
        end_row = None
    return sheet, start_row, start_col, end_row, end_col


class FakeRequest:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeValues:
    def __init__(self, service):
        self.service = service

    def get(self, spreadsheetId, range):
        def _run():
            self.service.calls.append(("get", range))
            if self.service.fail_reads:
                raise RuntimeError("sheets read failed")
            sheet, r0, c0, r1, c1 = parse_range(range)
            grid = self.service.sheets.setdefault(sheet, [])
            last_row = len(grid) if r1 is None else min(r1, len(grid))
            out = []
            for row_no in builtins.range(r0, last_row + 1):
                row = grid[row_no - 1]
                end = len(row) - 1 if c1 is None else c1
                cells = [row[i] if i < len(row) else "" for i in builtins.range(c0, end + 1)]
                while cells and cells[-1] == "":
                    cells.pop()
                out.append(cells)
            while out and not out[-1]:
                out.pop()
            return {"range": range, "values": out} if out else {"range": range}
        return FakeRequest(_run)

    def _write(self, a1, values):
        sheet, r0, c0, _, _ = parse_range(a1)
        grid = self.service.sheets.setdefault(sheet, [])
        for dr, row_values in enumerate(values):
            row_no = r0 + dr
            while len(grid) < row_no:
                grid.append([])
            row = grid[row_no - 1]
            for dc, value in enumerate(row_values):
                while len(row) <= c0 + dc:
                    row.append("")
                row[c0 + dc] = value

    def update(self, spreadsheetId, range, valueInputOption, body):
        def _run():
            self.service.calls.append(("update", range))
            self._write(range, body["values"])
            return {"updatedRange": range}
        return FakeRequest(_run)

    def batchUpdate(self, spreadsheetId, body):
        def _run():
            ranges = [item["range"] for item in body["data"]]
            self.service.calls.append(("batchUpdate", tuple(ranges)))
            if self.service.fail_writes:
                raise RuntimeError("sheets write failed")
            for item in body["data"]:
                self._write(item["range"], item["values"])
            return {"totalUpdatedCells": len(ranges)}
        return FakeRequest(_run)

    def append(self, spreadsheetId, range, valueInputOption, insertDataOption, body):
        def _run():
            self.service.calls.append(("append", range))
            sheet, _, _, _, _ = parse_range(range)
            grid = self.service.sheets.setdefault(sheet, [])
            for row in body["values"]:
                grid.append(list(row))
            return {"updates": {"updatedRows": len(body["values"])}}
        return FakeRequest(_run)


class FakeSpreadsheets:
    def __init__(self, service):
        self.service = service

    def values(self):
        return FakeValues(self.service)

    def get(self, spreadsheetId):
        def _run():
            return {"sheets": [
                {"properties": {"title": title, "sheetId": idx}}
                for idx, title in enumerate(self.service.sheets)
            ]}
        return FakeRequest(_run)

    def batchUpdate(self, spreadsheetId, body):
        def _run():
            titles = list(self.service.sheets)
            for req in body["requests"]:
                if "addSheet" in req:
                    self.service.sheets[req["addSheet"]["properties"]["title"]] = []
                elif "deleteSheet" in req:
                    del self.service.sheets[titles[req["deleteSheet"]["sheetId"]]]
            self.service.calls.append(("spreadsheets.batchUpdate", len(body["requests"])))
            return {}
        return FakeRequest(_run)


class FakeSheetsService:
    def __init__(self, sheets=None):
        self.sheets = sheets if sheets is not None else {}
        self.calls = []
        self.fail_reads = False
        self.fail_writes = False

    def spreadsheets(self):
        return FakeSpreadsheets(self)

    def cell(self, sheet, a1_cell):
        match = re.match(r"([A-Z]+)(\d+)", a1_cell)
        col, row_no = col_index(match.group(1)), int(match.group(2))
        grid = self.sheets.get(sheet, [])
        if row_no > len(grid):
            return ""
        row = grid[row_no - 1]
        return row[col] if col < len(row) else ""


def canonical_row(media_url="", title="Clip", description="", caption="", published_at="",
                  creation_id="", error="", source_url="https://www.youtube.com/shorts/abcdefghijk",
                  claim=""):
    row = [
        "2025-01-01T00:00:00.000Z", source_url, media_url, title, description,
        "https://i.ytimg.com/vi/x/hqdefault.jpg", "", caption, published_at, creation_id, error,
    ]
    if claim:
        row.append(claim)
    return row


@pytest.fixture
def canonical_header():
    return list(CANONICAL_SCHEMA.headers)


@pytest.fixture
def simple_header():
    return list(SIMPLE_SCHEMA.headers)


@pytest.fixture
def make_service(canonical_header):
    def _make(rows, sheet="motivational", header=None):
        header = header if header is not None else canonical_header
        return FakeSheetsService({sheet: [list(header)] + [list(r) for r in rows]})
    return _make


@pytest.fixture(autouse=True)
def pipeline_env(monkeypatch):
    """Isolated environment: credentials set, nothing real reachable."""
    for key in ("GOOGLE_SHEET_NAME", "REELS_SHEET_SCHEMA", "REELS_CLAIM_ENABLED",
                "REELS_CLAIM_TTL_SECONDS", "VPS_URL", "GRAPH_API_VERSION", "CLOUDINARY_RESOURCE_TYPE"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("GOOGLE_SHEET_ID", "sheet-123")
    monkeypatch.setenv("INSTAGRAM_ACCESS_TOKEN", "token")
    monkeypatch.setenv("APP_ID", "1784")
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
    monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
    monkeypatch.setenv("AI_API_KEY", "ai-key")
    monkeypatch.setenv("AI_BASE_URL", "https://ai.example.com/v1")


class FakePublisher:
    """InstagramPublisher stand-in recording calls."""

    def __init__(self, creation_id="17900", media_id="18000", error=None, on_call=None):
        self.creation_id = creation_id
        self.media_id = media_id
        self.error = error
        self.on_call = on_call
        self.created = []
        self.published = []

    def create_container(self, caption, video_url, cover_url=None, media_type="REELS"):
        self.created.append({"caption": caption, "video_url": video_url, "cover_url": cover_url})
        if self.on_call:
            self.on_call("create")
        if self.error:
            raise self.error
        return self.creation_id

    def publish_container(self, creation_id):
        self.published.append(creation_id)
        if self.on_call:
            self.on_call("publish")
        if self.error:
            raise self.error
        return self.media_id
