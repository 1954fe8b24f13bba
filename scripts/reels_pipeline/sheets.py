"""
릴스 파이프라인 - Google Sheets 연동

큐 시트 구조 (canonical):
- 행 1: 헤더
- 행 2~: 데이터
- A~K: Timestamp | YouTube URL | Cloudinary URL | Title | Description |
       Thumbnail | Tags | Instagram Caption | Published At (IG) | Creation ID | Error
- L: Claim (선택)
"""

import os
import json
import logging
from typing import Optional, List, Dict

from google.oauth2 import service_account
from googleapiclient.discovery import build

from .config import (
    SheetSchema,
    ConfigError,
    ERROR_MODE_APPEND,
    get_schema,
)
from .selector import QueueRow, rows_from_values

logger = logging.getLogger(__name__)


class SheetsSaveError(Exception):
    """Google Sheets 저장 실패 예외"""
    pass


def get_sheets_service():
    """Google Sheets API 서비스 객체 반환"""
    creds_json = os.environ.get("GOOGLE_SERVICE_ACCOUNT_KEY") or os.environ.get("GOOGLE_SERVICE_ACCOUNT_JSON")
    if not creds_json:
        raise ConfigError("GOOGLE_SERVICE_ACCOUNT_KEY 환경변수가 설정되지 않았습니다")

    creds_data = json.loads(creds_json)
    creds = service_account.Credentials.from_service_account_info(
        creds_data,
        scopes=["https://www.googleapis.com/auth/spreadsheets"]
    )
    return build("sheets", "v4", credentials=creds, cache_discovery=False)


def get_spreadsheet_id() -> str:
    """스프레드시트 ID 반환"""
    sheet_id = os.environ.get("GOOGLE_SHEET_ID")
    if not sheet_id:
        raise ConfigError("GOOGLE_SHEET_ID 환경변수가 설정되지 않았습니다")
    return sheet_id


def a1_range(sheet_name: str, cells: str = "") -> str:
    """시트명 + 셀 범위 → A1 표기 ('시트'!A2:K)"""
    quoted = "'" + sheet_name.replace("'", "''") + "'"
    return f"{quoted}!{cells}" if cells else quoted


def merge_error(existing: str, new: str, mode: str = ERROR_MODE_APPEND) -> str:
    """
    에러 셀에 기록할 값 계산

    - append: 기존 값이 있으면 줄바꿈 후 추가 ("E1" + "E2" -> "E1\\nE2")
    - overwrite: 새 값으로 교체
    """
    if mode == ERROR_MODE_APPEND and existing:
        return f"{existing}\n{new}"
    return new


def create_queue_sheet(
    service=None,
    spreadsheet_id: str = None,
    sheet_name: str = None,
    schema: SheetSchema = None,
    force: bool = False
) -> bool:
    """
    큐 시트 생성 + 헤더 기록

    Args:
        service: Google Sheets API 서비스 객체 (없으면 자동 생성)
        spreadsheet_id: 스프레드시트 ID (없으면 환경변수에서)
        sheet_name: 시트 이름
        schema: 시트 스키마 (없으면 환경변수에서)
        force: True면 기존 시트 삭제 후 재생성

    Returns:
        True: 생성 성공, False: 이미 존재 (force=False일 때)
    """
    if service is None:
        service = get_sheets_service()
    if spreadsheet_id is None:
        spreadsheet_id = get_spreadsheet_id()
    if schema is None:
        schema = get_schema()

    spreadsheet = service.spreadsheets().get(
        spreadsheetId=spreadsheet_id
    ).execute()

    existing_sheets = {
        sheet['properties']['title']: sheet['properties']['sheetId']
        for sheet in spreadsheet.get('sheets', [])
    }

    if sheet_name in existing_sheets:
        if not force:
            logger.info(f"[SHEETS] 시트 '{sheet_name}' 이미 존재 - 건너뜀")
            return False
        service.spreadsheets().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": [{"deleteSheet": {"sheetId": existing_sheets[sheet_name]}}]}
        ).execute()
        logger.info(f"[SHEETS] 기존 시트 '{sheet_name}' 삭제")

    service.spreadsheets().batchUpdate(
        spreadsheetId=spreadsheet_id,
        body={"requests": [{"addSheet": {"properties": {"title": sheet_name}}}]}
    ).execute()

    service.spreadsheets().values().update(
        spreadsheetId=spreadsheet_id,
        range=a1_range(sheet_name, "A1"),
        valueInputOption="RAW",
        body={"values": [list(schema.headers)]}
    ).execute()

    logger.info(f"[SHEETS] 시트 '{sheet_name}' 생성 완료 ({schema.name}, {len(schema.headers)}개 열)")
    return True


def read_queue_rows(
    service,
    spreadsheet_id: str,
    sheet_name: str,
    schema: SheetSchema
) -> List[QueueRow]:
    """
    큐 시트 전체 데이터 행 읽기 (헤더 제외)

    매 호출마다 새로 읽는다 (캐시 없음).
    """
    first_row = schema.first_data_row
    result = service.spreadsheets().values().get(
        spreadsheetId=spreadsheet_id,
        range=a1_range(sheet_name, f"A{first_row}:{schema.last_column}")
    ).execute()
    values = result.get('values', [])
    return rows_from_values(values, schema, start_row=first_row)


def read_cell(service, spreadsheet_id: str, sheet_name: str, cell: str) -> str:
    """단일 셀 값 읽기 (빈 셀은 '')"""
    result = service.spreadsheets().values().get(
        spreadsheetId=spreadsheet_id,
        range=a1_range(sheet_name, cell)
    ).execute()
    values = result.get('values') or [[]]
    first = values[0] if values else []
    return str(first[0]) if first else ""


def update_row(
    service,
    spreadsheet_id: str,
    sheet_name: str,
    row_index: int,
    updates: Dict[str, Optional[str]],
    schema: SheetSchema
) -> List[str]:
    """
    행의 일부 필드만 업데이트 (한 번의 batchUpdate)

    updates에 없는 필드는 건드리지 않는다.
    'error' 필드는 스키마의 error_mode에 따라 기존 값에 추가하거나 덮어쓴다.

    Args:
        service: Google Sheets API 서비스 객체
        spreadsheet_id: 스프레드시트 ID
        sheet_name: 시트 이름
        row_index: 행 번호 (1-indexed)
        updates: {"caption": "...", "error": "..."} (None 값은 무시)
        schema: 시트 스키마

    Returns:
        업데이트한 셀 범위 목록

    Raises:
        ValueError: 스키마에 없는 필드
        SheetsSaveError: Sheets API 호출 실패
    """
    data = []
    for name, value in updates.items():
        if value is None:
            continue
        cell = f"{schema.column_letter(name)}{row_index}"

        if name == "error":
            existing = ""
            if schema.error_mode == ERROR_MODE_APPEND:
                existing = read_cell(service, spreadsheet_id, sheet_name, cell)
            value = merge_error(existing, value, schema.error_mode)

        data.append({
            "range": a1_range(sheet_name, cell),
            "values": [[value]],
        })

    if not data:
        return []

    try:
        service.spreadsheets().values().batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"valueInputOption": "RAW", "data": data}
        ).execute()
    except Exception as e:
        raise SheetsSaveError(f"행 {row_index} 업데이트 실패: {e}") from e

    ranges = [item["range"] for item in data]
    logger.info(f"[SHEETS] 행 {row_index} 업데이트: {', '.join(ranges)}")
    return ranges


def append_row(
    service,
    spreadsheet_id: str,
    sheet_name: str,
    data: Dict[str, str],
    schema: SheetSchema
) -> int:
    """
    큐 시트에 새 행 추가

    스키마에 없는 필드는 버린다.

    Returns:
        추가된 행 수
    """
    row = [''] * len(schema.fields)
    for key, value in data.items():
        if schema.has_field(key):
            row[schema.column_index(key)] = value if value is not None else ""

    try:
        result = service.spreadsheets().values().append(
            spreadsheetId=spreadsheet_id,
            range=a1_range(sheet_name),
            valueInputOption="RAW",
            insertDataOption="INSERT_ROWS",
            body={"values": [row]}
        ).execute()
    except Exception as e:
        raise SheetsSaveError(f"행 추가 실패: {e}") from e

    updated_rows = result.get("updates", {}).get("updatedRows", 0)
    logger.info(f"[SHEETS] 새 행 추가 완료 ({updated_rows}행)")
    return updated_rows


def claim_row(
    service,
    spreadsheet_id: str,
    sheet_name: str,
    row_index: int,
    claim_value: str,
    schema: SheetSchema
) -> bool:
    """
    행 선점: claim 셀에 토큰 기록 후 다시 읽어서 확인

    Returns:
        True: 선점 성공, False: 다른 실행이 먼저 기록함
    """
    field = schema.claim_field
    update_row(service, spreadsheet_id, sheet_name, row_index, {field: claim_value}, schema)
    current = read_cell(service, spreadsheet_id, sheet_name, f"{schema.column_letter(field)}{row_index}")
    if current != claim_value:
        logger.warning(f"[SHEETS] 행 {row_index} 선점 실패 (현재 claim: {current})")
        return False
    return True


def release_claim(
    service,
    spreadsheet_id: str,
    sheet_name: str,
    row_index: int,
    schema: SheetSchema
) -> None:
    """claim 셀 비우기"""
    update_row(service, spreadsheet_id, sheet_name, row_index, {schema.claim_field: ""}, schema)
