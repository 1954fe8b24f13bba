"""
릴스 파이프라인 - 메인 실행 모듈

전체 흐름 (호출 1회 = 행 1개, 정리만 전체 행):
1. Ingest:  YouTube 알림 → 쇼츠 판별 → 큐 시트에 행 추가 → VPS 처리 요청
2. Stage:   media_url 채워진 첫 행 → 캡션 생성(없을 때) → 릴스 컨테이너 생성 → creation_id 기록
3. Commit:  creation_id 있는 첫 행 → 컨테이너 게시 → published_at 기록
4. Reap:    게시 완료된 모든 행 → Cloudinary 원본 삭제 (시트는 그대로)

모든 함수는 (응답 body, HTTP status) 튜플을 반환한다.
실패한 행은 에러 열에 기록되고, 사람이 지우기 전까지 다시 선택되지 않는다.
"""

import sys
import json
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import (
    SheetSchema,
    ConfigError,
    DEFAULT_SHEET_NAME,
    get_sheet_name,
    get_schema,
    claim_enabled,
    get_claim_ttl,
)
from .selector import (
    QueueRow,
    RowPredicate,
    is_stage_ready,
    is_commit_ready,
    is_reapable,
    select_first,
    select_all,
    unclaimed,
    format_claim,
    to_iso,
)
from .sheets import (
    get_sheets_service,
    get_spreadsheet_id,
    read_queue_rows,
    update_row,
    append_row,
    claim_row,
    release_claim,
    create_queue_sheet,
)
from .caption import generate_caption, CaptionGenerationError
from .instagram import InstagramPublisher, GraphAPIError, derive_cover_url
from .assets import extract_public_id, configure_cloudinary, delete_asset, DELETED_RESULTS
from .webhook import (
    verify_subscription,
    parse_notification,
    is_short,
    build_queue_entry,
    trigger_processing,
)

logger = logging.getLogger(__name__)

Response = Tuple[Dict[str, Any], int]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return to_iso(utc_now())


@dataclass
class QueueContext:
    """한 번의 호출 동안 사용하는 시트 접근 정보"""
    service: Any
    spreadsheet_id: str
    sheet_name: str
    schema: SheetSchema
    use_claims: bool = False

    @classmethod
    def from_env(cls, sheet_name: str = None, service=None, spreadsheet_id: str = None,
                 schema: SheetSchema = None) -> "QueueContext":
        schema = schema or get_schema()
        return cls(
            service=service or get_sheets_service(),
            spreadsheet_id=spreadsheet_id or get_spreadsheet_id(),
            sheet_name=sheet_name or get_sheet_name(),
            schema=schema,
            use_claims=bool(schema.claim_field) and claim_enabled(),
        )

    def rows(self) -> List[QueueRow]:
        return read_queue_rows(self.service, self.spreadsheet_id, self.sheet_name, self.schema)

    def next_row(self, predicate: RowPredicate) -> Optional[QueueRow]:
        if self.use_claims:
            predicate = unclaimed(predicate, utc_now(), get_claim_ttl())
        return select_first(self.rows(), predicate)

    def update(self, row: QueueRow, **updates) -> List[str]:
        return update_row(self.service, self.spreadsheet_id, self.sheet_name, row.row_index, updates, self.schema)

    def record_error(self, row: QueueRow, stage: str, message: str) -> str:
        """에러 열에 '[<iso>] <STAGE>: <message>' 기록"""
        error_msg = f"[{now_iso()}] {stage}: {message}"
        self.update(row, error=error_msg)
        logger.warning(f"[{stage}] 행 {row.row_index} 에러 기록: {message}")
        return error_msg

    def claim(self, row: QueueRow) -> bool:
        if not self.use_claims:
            return True
        value = format_claim(uuid.uuid4().hex, utc_now())
        return claim_row(self.service, self.spreadsheet_id, self.sheet_name, row.row_index, value, self.schema)

    def release(self, row: QueueRow) -> None:
        if not self.use_claims:
            return
        try:
            release_claim(self.service, self.spreadsheet_id, self.sheet_name, row.row_index, self.schema)
        except Exception as e:
            logger.error(f"[SHEETS] 행 {row.row_index} claim 해제 실패: {e}")


def _internal_error(stage: str, e: Exception) -> Response:
    logger.exception(f"[{stage}] 처리 중 예외 발생: {e}")
    return {"error": "Internal server error", "details": str(e)}, 500


def _claim_lost(row: QueueRow, sheet_name: str) -> Response:
    return {
        "error": "Row already claimed by another invocation",
        "row": row.row_index,
        "sheetName": sheet_name,
    }, 409


# ============================================================
# Stage (Upload)
# ============================================================

def run_stage(
    sheet_name: str = None,
    service=None,
    spreadsheet_id: str = None,
    schema: SheetSchema = None,
    publisher: InstagramPublisher = None,
    caption_fn: Callable[[str, str], str] = None
) -> Response:
    """
    다음 업로드 대상 행 → 릴스 컨테이너 생성

    Args:
        sheet_name: 시트 이름 (없으면 GOOGLE_SHEET_NAME 또는 'motivational')
        service: Google Sheets API 서비스 객체
        spreadsheet_id: 스프레드시트 ID
        schema: 시트 스키마
        publisher: Instagram 게시 클라이언트
        caption_fn: 캡션 생성 함수 (title, description) -> caption

    Returns:
        (body, status)
    """
    caption_fn = caption_fn or generate_caption

    try:
        publisher = publisher or InstagramPublisher()
        ctx = QueueContext.from_env(sheet_name, service, spreadsheet_id, schema)
    except ConfigError as e:
        logger.error(f"[UPLOAD] 설정 오류: {e}")
        return {"error": str(e)}, 500
    except Exception as e:
        return _internal_error("UPLOAD", e)

    try:
        row = ctx.next_row(is_stage_ready)
        if row is None:
            logger.info(f"[UPLOAD] 처리할 행 없음 ({ctx.sheet_name})")
            return {
                "error": f"No unprocessed rows found in sheet '{ctx.sheet_name}'",
                "message": "All videos are either already uploaded or have errors. Add new videos or clear errors.",
            }, 404

        if not ctx.claim(row):
            return _claim_lost(row, ctx.sheet_name)

        try:
            return _stage_row(ctx, row, publisher, caption_fn)
        finally:
            ctx.release(row)

    except Exception as e:
        return _internal_error("UPLOAD", e)


def _stage_row(ctx: QueueContext, row: QueueRow, publisher: InstagramPublisher,
               caption_fn: Callable[[str, str], str]) -> Response:
    logger.info(f"[UPLOAD] 행 {row.row_index} 처리 시작: {row.title}")

    if not row.media_url:
        error_msg = ctx.record_error(row, "UPLOAD", "Missing Cloudinary URL")
        return {"error": error_msg, "row": row.row_index, "sheetName": ctx.sheet_name}, 400

    if not row.title:
        error_msg = ctx.record_error(row, "UPLOAD", "Missing video title")
        return {"error": error_msg, "row": row.row_index, "sheetName": ctx.sheet_name}, 400

    caption = row.caption
    caption_generated = False

    if not caption:
        try:
            caption = caption_fn(row.title, row.description)
        except CaptionGenerationError as e:
            ctx.record_error(row, "UPLOAD", f"Failed to generate caption - {e}")
            return {
                "error": "Failed to generate caption",
                "details": str(e),
                "row": row.row_index,
                "sheetName": ctx.sheet_name,
            }, 500
        caption_generated = True
        # 캡션은 컨테이너 생성 전에 먼저 저장
        ctx.update(row, caption=caption)

    try:
        creation_id = publisher.create_container(
            caption=caption,
            video_url=row.media_url,
            cover_url=derive_cover_url(row.media_url),
        )
    except GraphAPIError as e:
        ctx.record_error(row, "UPLOAD", e.describe())
        return {
            "error": "Facebook API error",
            "details": e.payload,
            "row": row.row_index,
            "sheetName": ctx.sheet_name,
            "sheetUpdated": True,
        }, e.status

    ctx.update(row, creation_id=creation_id)
    logger.info(f"[UPLOAD] 행 {row.row_index} 업로드 완료: creation_id={creation_id}")

    body = {
        "success": True,
        "creationId": creation_id,
        "row": row.row_index,
        "sheetName": ctx.sheet_name,
        "title": row.title,
        "sourceUrl": row.get("source_url"),
        "mediaUrl": row.media_url,
        "captionGenerated": caption_generated,
        "message": (
            "Caption generated by AI, upload successful, creation ID saved to sheet"
            if caption_generated else
            "Upload successful, creation ID saved to sheet"
        ),
    }
    if caption_generated:
        body["caption"] = caption
    return body, 200


# ============================================================
# Commit (Publish)
# ============================================================

def run_commit(
    sheet_name: str = None,
    service=None,
    spreadsheet_id: str = None,
    schema: SheetSchema = None,
    publisher: InstagramPublisher = None
) -> Response:
    """
    다음 게시 대상 행 (creation_id 있음) → 컨테이너 게시

    Returns:
        (body, status)
    """
    try:
        publisher = publisher or InstagramPublisher()
        ctx = QueueContext.from_env(sheet_name or DEFAULT_SHEET_NAME, service, spreadsheet_id, schema)
    except ConfigError as e:
        logger.error(f"[PUBLISH] 설정 오류: {e}")
        return {"error": str(e)}, 500
    except Exception as e:
        return _internal_error("PUBLISH", e)

    try:
        row = ctx.next_row(is_commit_ready)
        if row is None:
            logger.info(f"[PUBLISH] 게시할 행 없음 ({ctx.sheet_name})")
            return {
                "error": f"No publishable rows found in sheet '{ctx.sheet_name}'",
                "message": "Rows must have Creation ID, and empty Published At (IG) and Error values",
            }, 404

        if not ctx.claim(row):
            return _claim_lost(row, ctx.sheet_name)

        try:
            return _commit_row(ctx, row, publisher)
        finally:
            ctx.release(row)

    except Exception as e:
        return _internal_error("PUBLISH", e)


def _commit_row(ctx: QueueContext, row: QueueRow, publisher: InstagramPublisher) -> Response:
    logger.info(f"[PUBLISH] 행 {row.row_index} 게시 시작: creation_id={row.creation_id}")

    try:
        media_id = publisher.publish_container(row.creation_id)
    except GraphAPIError as e:
        ctx.record_error(row, "PUBLISH", e.describe())
        return {
            "error": "Facebook API error",
            "details": e.payload,
            "row": row.row_index,
            "sheetName": ctx.sheet_name,
            "sheetUpdated": True,
        }, e.status

    published_at = now_iso()
    ctx.update(row, published_at=published_at)
    logger.info(f"[PUBLISH] 행 {row.row_index} 게시 완료: media_id={media_id}")

    return {
        "success": True,
        "publishedAt": published_at,
        "mediaId": media_id,
        "row": row.row_index,
        "sheetName": ctx.sheet_name,
        "title": row.title,
        "sourceUrl": row.get("source_url"),
        "mediaUrl": row.media_url,
        "caption": row.caption,
        "message": "Publish successful, timestamp saved to sheet",
    }, 200


# ============================================================
# Reap (Cloudinary cleanup)
# ============================================================

def run_reap(
    sheet_name: str = None,
    service=None,
    spreadsheet_id: str = None,
    schema: SheetSchema = None,
    delete_fn: Callable[[str], Dict[str, Any]] = None
) -> Response:
    """
    게시 완료된 모든 행의 Cloudinary 에셋 삭제

    한 행의 실패가 다음 행 처리를 막지 않는다. 시트에는 아무것도 기록하지 않는다.

    Returns:
        (body, status)
    """
    try:
        if delete_fn is None:
            configure_cloudinary()
            delete_fn = delete_asset
        ctx = QueueContext.from_env(sheet_name, service, spreadsheet_id, schema)
    except ConfigError as e:
        logger.error(f"[CLEANUP] 설정 오류: {e}")
        return {"error": str(e)}, 500
    except Exception as e:
        return _internal_error("CLEANUP", e)

    try:
        rows = select_all(ctx.rows(), is_reapable)
    except Exception as e:
        return _internal_error("CLEANUP", e)

    if not rows:
        return {
            "success": True,
            "message": f"No published rows with Cloudinary URLs found in sheet '{ctx.sheet_name}'",
            "totalRowsProcessed": 0,
            "deletedCount": 0,
            "results": [],
        }, 200

    results = []
    deleted_count = 0

    for row in rows:
        base = {"rowIndex": row.row_index, "title": row.title, "mediaUrl": row.media_url}
        public_id = extract_public_id(row.media_url)
        if not public_id:
            results.append({**base, "status": "skipped", "reason": "Could not extract public_id from URL"})
            continue

        try:
            delete_result = delete_fn(public_id)
            outcome = (delete_result or {}).get("result")
            if outcome not in DELETED_RESULTS:
                raise RuntimeError(f"Delete failed: {outcome}")
        except Exception as e:
            logger.error(f"[CLEANUP] {public_id} 삭제 실패: {e}")
            results.append({**base, "publicId": public_id, "status": "error", "error": str(e) or "Unknown delete error"})
            continue

        deleted_count += 1
        results.append({**base, "publicId": public_id, "status": "deleted", "deleteResult": delete_result})

    logger.info(f"[CLEANUP] 완료: {deleted_count}/{len(rows)}개 삭제 ({ctx.sheet_name})")
    return {
        "success": True,
        "message": f"Cleanup completed for sheet '{ctx.sheet_name}'",
        "totalRowsProcessed": len(rows),
        "deletedCount": deleted_count,
        "results": results,
    }, 200


# ============================================================
# Ingest (YouTube webhook)
# ============================================================

def run_ingest_verification(mode: str, challenge: str, topic: str = None) -> Tuple[str, int]:
    """구독 확인 → (plain text body, status)"""
    echoed = verify_subscription(mode, challenge, topic)
    if echoed is None:
        return "Invalid verification", 400
    return echoed, 200


def run_ingest_notification(
    xml_body: str,
    sheet_name: str = None,
    service=None,
    spreadsheet_id: str = None,
    schema: SheetSchema = None,
    trigger_fn: Callable = None
) -> Response:
    """
    새 영상 알림 처리 → 큐 시트에 행 추가 + VPS 처리 요청

    Returns:
        (body, status)
    """
    trigger_fn = trigger_fn or trigger_processing

    try:
        video = parse_notification(xml_body)
        if not video.video_id:
            return {"error": "No video ID"}, 400

        if not is_short(video):
            logger.info(f"[WEBHOOK] 쇼츠 아님 - 건너뜀: {video.title}")
            return {"skipped": True}, 200

        ctx = QueueContext.from_env(sheet_name, service, spreadsheet_id, schema)
        append_row(ctx.service, ctx.spreadsheet_id, ctx.sheet_name,
                   build_queue_entry(video, now_iso()), ctx.schema)

        trigger_fn(video)
        logger.info(f"[WEBHOOK] 쇼츠 추가 + VPS 요청: {video.short_url}")
        return {"success": True}, 200

    except Exception as e:
        logger.exception(f"[WEBHOOK] 알림 처리 실패: {e}")
        return {"error": str(e)}, 500


# ============================================================
# 운영용
# ============================================================

def queue_summary(sheet_name: str = None, service=None, spreadsheet_id: str = None,
                  schema: SheetSchema = None) -> Dict[str, Any]:
    """큐 상태별 행 수"""
    ctx = QueueContext.from_env(sheet_name, service, spreadsheet_id, schema)
    rows = ctx.rows()
    return {
        "sheetName": ctx.sheet_name,
        "schema": ctx.schema.name,
        "totalRows": len(rows),
        "stageReady": len(select_all(rows, is_stage_ready)),
        "commitReady": len(select_all(rows, is_commit_ready)),
        "reapable": len(select_all(rows, is_reapable)),
        "errored": len(select_all(rows, lambda row: bool(row.error))),
        "nextStageRow": getattr(select_first(rows, is_stage_ready), "row_index", None),
        "nextCommitRow": getattr(select_first(rows, is_commit_ready), "row_index", None),
    }


def run_create_sheet(sheet_name: str = None, force: bool = False, service=None,
                     spreadsheet_id: str = None, schema: SheetSchema = None) -> Dict[str, Any]:
    """큐 시트 생성 (헤더 포함)"""
    ctx = QueueContext.from_env(sheet_name, service, spreadsheet_id, schema)
    created = create_queue_sheet(ctx.service, ctx.spreadsheet_id, ctx.sheet_name, ctx.schema, force=force)
    return {
        "ok": True,
        "created": created,
        "sheetName": ctx.sheet_name,
        "schema": ctx.schema.name,
        "spreadsheet_url": f"https://docs.google.com/spreadsheets/d/{ctx.spreadsheet_id}/edit",
    }


def main(argv: List[str] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="릴스 게시 파이프라인")
    parser.add_argument("--stage", action="store_true", help="다음 행 컨테이너 생성 (업로드)")
    parser.add_argument("--commit", action="store_true", help="다음 행 게시")
    parser.add_argument("--reap", action="store_true", help="게시 완료 에셋 정리")
    parser.add_argument("--summary", action="store_true", help="큐 상태 요약")
    parser.add_argument("--create-sheet", action="store_true", help="큐 시트 생성")
    parser.add_argument("--force", action="store_true", help="시트 재생성 (--create-sheet)")
    parser.add_argument("--sheet", type=str, help="시트 이름")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='[%(asctime)s] %(levelname)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    status = 200
    if args.create_sheet:
        result = run_create_sheet(args.sheet, force=args.force)
    elif args.summary:
        result = queue_summary(args.sheet)
    elif args.stage:
        result, status = run_stage(args.sheet)
    elif args.commit:
        result, status = run_commit(args.sheet)
    elif args.reap:
        result, status = run_reap(args.sheet)
    else:
        parser.print_help()
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0 if status < 400 else 1


if __name__ == "__main__":
    sys.exit(main())
