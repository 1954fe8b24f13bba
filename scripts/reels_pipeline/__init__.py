"""
Reels Pipeline Module
YouTube Shorts → Instagram Reels 자동 게시 (Google Sheets 큐 기반)

사용법:
    from scripts.reels_pipeline import run_stage, run_commit, run_reap

    body, status = run_stage()     # 다음 행 컨테이너 생성
    body, status = run_commit()    # 다음 행 게시
    body, status = run_reap()      # 게시 완료 에셋 정리

또는 CLI:
    python -m scripts.reels_pipeline.run --stage
    python -m scripts.reels_pipeline.run --commit --sheet motivational
    python -m scripts.reels_pipeline.run --reap
    python -m scripts.reels_pipeline.run --summary
"""

from .config import (
    SheetSchema,
    ConfigError,
    CANONICAL_SCHEMA,
    SIMPLE_SCHEMA,
    SCHEMAS,
    DEFAULT_SHEET_NAME,
    ERROR_MODE_APPEND,
    ERROR_MODE_OVERWRITE,
    get_schema,
    get_sheet_name,
)

from .selector import (
    QueueRow,
    is_stage_ready,
    is_commit_ready,
    is_reapable,
    select_first,
    select_all,
    rows_from_values,
)

from .sheets import (
    get_sheets_service,
    get_spreadsheet_id,
    create_queue_sheet,
    read_queue_rows,
    update_row,
    append_row,
    merge_error,
    SheetsSaveError,
)

from .caption import generate_caption, CaptionGenerationError
from .instagram import InstagramPublisher, GraphAPIError, derive_cover_url
from .assets import extract_public_id, delete_asset
from .webhook import parse_notification, is_short, verify_subscription, trigger_processing

from .run import (
    run_stage,
    run_commit,
    run_reap,
    run_ingest_verification,
    run_ingest_notification,
    run_create_sheet,
    queue_summary,
)


__all__ = [
    # Config
    'SheetSchema',
    'ConfigError',
    'CANONICAL_SCHEMA',
    'SIMPLE_SCHEMA',
    'SCHEMAS',
    'DEFAULT_SHEET_NAME',
    'ERROR_MODE_APPEND',
    'ERROR_MODE_OVERWRITE',
    'get_schema',
    'get_sheet_name',

    # Selector
    'QueueRow',
    'is_stage_ready',
    'is_commit_ready',
    'is_reapable',
    'select_first',
    'select_all',
    'rows_from_values',

    # Sheets
    'get_sheets_service',
    'get_spreadsheet_id',
    'create_queue_sheet',
    'read_queue_rows',
    'update_row',
    'append_row',
    'merge_error',
    'SheetsSaveError',

    # Collaborators
    'generate_caption',
    'CaptionGenerationError',
    'InstagramPublisher',
    'GraphAPIError',
    'derive_cover_url',
    'extract_public_id',
    'delete_asset',
    'parse_notification',
    'is_short',
    'verify_subscription',
    'trigger_processing',

    # Main Pipeline
    'run_stage',
    'run_commit',
    'run_reap',
    'run_ingest_verification',
    'run_ingest_notification',
    'run_create_sheet',
    'queue_summary',
]
