"""
릴스 파이프라인 - 큐 행 선택

시트의 각 행을 QueueRow로 변환하고,
업로드/게시/정리 대상 행을 위에서부터 순서대로 찾는다.

행 상태:
- stage-ready:  media_url 있음, published_at/creation_id/error 없음
- commit-ready: creation_id 있음, published_at/error 없음
- reapable:     published_at 있음, media_url 있음
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from .config import SheetSchema


@dataclass
class QueueRow:
    """큐 시트의 한 행 (row_index는 1-based 시트 행 번호)"""
    row_index: int
    data: Dict[str, str] = field(default_factory=dict)

    def get(self, name: str) -> str:
        return self.data.get(name, "") or ""

    @property
    def media_url(self) -> str:
        return self.get("media_url")

    @property
    def title(self) -> str:
        return self.get("title")

    @property
    def description(self) -> str:
        return self.get("description")

    @property
    def caption(self) -> str:
        return self.get("caption")

    @property
    def published_at(self) -> str:
        return self.get("published_at")

    @property
    def creation_id(self) -> str:
        return self.get("creation_id")

    @property
    def error(self) -> str:
        return self.get("error")

    @property
    def claim(self) -> str:
        return self.get("claim")


RowPredicate = Callable[[QueueRow], bool]


def is_stage_ready(row: QueueRow) -> bool:
    return bool(row.media_url) and not row.published_at and not row.creation_id and not row.error


def is_commit_ready(row: QueueRow) -> bool:
    return bool(row.creation_id) and not row.published_at and not row.error


def is_reapable(row: QueueRow) -> bool:
    return bool(row.published_at) and bool(row.media_url)


def rows_from_values(
    values: Sequence[Sequence[Any]],
    schema: SheetSchema,
    start_row: int = None
) -> List[QueueRow]:
    """
    Sheets API values 행렬 → QueueRow 목록

    Sheets는 뒤쪽 빈 셀을 생략하므로 부족한 열은 빈 문자열로 채운다.

    Args:
        values: values().get() 결과의 'values'
        schema: 시트 스키마
        start_row: 첫 데이터 행 번호 (기본: 헤더 다음 행)

    Returns:
        QueueRow 목록 (시트 순서 유지)
    """
    if start_row is None:
        start_row = schema.first_data_row

    rows = []
    for offset, raw in enumerate(values):
        data = {}
        for col_idx, name in enumerate(schema.fields):
            value = raw[col_idx] if col_idx < len(raw) else ""
            data[name] = "" if value is None else str(value)
        rows.append(QueueRow(row_index=start_row + offset, data=data))
    return rows


def select_first(rows: Sequence[QueueRow], predicate: RowPredicate) -> Optional[QueueRow]:
    """조건을 만족하는 첫 번째 행 (위에서부터), 없으면 None"""
    for row in rows:
        if predicate(row):
            return row
    return None


def select_all(rows: Sequence[QueueRow], predicate: RowPredicate) -> List[QueueRow]:
    """조건을 만족하는 모든 행 (시트 순서)"""
    return [row for row in rows if predicate(row)]


# ============================================================
# Claim 토큰
# ============================================================

def format_claim(token: str, claimed_at: datetime) -> str:
    return f"{token}@{to_iso(claimed_at)}"


def parse_claim(value: str) -> Optional[datetime]:
    """claim 값에서 시각 추출 ("<token>@<iso>"), 형식이 다르면 None"""
    if not value or "@" not in value:
        return None
    stamp = value.rsplit("@", 1)[1].strip()
    try:
        return datetime.fromisoformat(stamp.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_claim_active(row: QueueRow, now: datetime, ttl_seconds: int) -> bool:
    """
    다른 실행이 처리중인 행인지 확인

    형식이 깨진 claim 값은 만료된 것으로 본다.
    """
    claimed_at = parse_claim(row.claim)
    if claimed_at is None:
        return False
    if claimed_at.tzinfo is None:
        claimed_at = claimed_at.replace(tzinfo=timezone.utc)
    return (now - claimed_at).total_seconds() < ttl_seconds


def unclaimed(predicate: RowPredicate, now: datetime, ttl_seconds: int) -> RowPredicate:
    """predicate에 '처리중 아님' 조건 추가"""
    def _predicate(row: QueueRow) -> bool:
        return predicate(row) and not is_claim_active(row, now, ttl_seconds)
    return _predicate


def to_iso(value: datetime) -> str:
    """UTC ISO-8601 (밀리초, Z 접미사) - 예: 2025-01-01T00:00:00.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")
