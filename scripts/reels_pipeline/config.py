"""
릴스 파이프라인 설정

Google Sheets 큐 시트 구조:
- 행 1: 헤더
- 행 2~: 데이터 (한 행 = 영상 1개)

두 가지 시트 스키마를 지원:
- canonical: 11개 열 (A~K) + 선택적 claim 열 (L), 에러는 누적 기록
- simple: 6개 열 (A~F), 에러는 덮어쓰기
"""

import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


class ConfigError(ValueError):
    """필수 환경변수 누락"""
    pass


# ============================================================
# 시트 설정
# ============================================================

DEFAULT_SHEET_NAME = "motivational"

# 에러 열 기록 방식
ERROR_MODE_APPEND = "append"        # 기존 에러 뒤에 줄바꿈으로 추가
ERROR_MODE_OVERWRITE = "overwrite"  # 기존 에러 덮어쓰기


@dataclass(frozen=True)
class SheetSchema:
    """
    큐 시트 스키마 (필드명 → 열 위치 매핑)

    fields 순서가 곧 열 순서 (A, B, C, ...)
    """
    name: str
    fields: Tuple[str, ...]
    headers: Tuple[str, ...]
    header_rows: int = 1
    error_mode: str = ERROR_MODE_APPEND
    claim_field: Optional[str] = None

    def column_index(self, field: str) -> int:
        if field not in self.fields:
            raise ValueError(f"'{self.name}' 스키마에 '{field}' 필드가 없습니다")
        return self.fields.index(field)

    def column_letter(self, field: str) -> str:
        return column_letter(self.column_index(field))

    def has_field(self, field: str) -> bool:
        return field in self.fields

    @property
    def first_data_row(self) -> int:
        return self.header_rows + 1

    @property
    def last_column(self) -> str:
        return column_letter(len(self.fields) - 1)


def column_letter(index: int) -> str:
    """열 인덱스 → 열 문자 (0 -> A, 25 -> Z, 26 -> AA)"""
    letters = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


# canonical 스키마 (A~K + claim L)
CANONICAL_FIELDS = (
    "timestamp",     # A: 수집 시각
    "source_url",    # B: YouTube Shorts URL
    "media_url",     # C: Cloudinary URL (VPS가 채움)
    "title",         # D: 영상 제목
    "description",   # E: 영상 설명
    "thumbnail",     # F: 썸네일 URL
    "tags",          # G: 태그 (미사용)
    "caption",       # H: Instagram 캡션
    "published_at",  # I: Instagram 게시 시각
    "creation_id",   # J: Graph API 컨테이너 ID
    "error",         # K: 에러 (누적)
    "claim",         # L: 처리중 토큰 "<token>@<iso>"
)

CANONICAL_HEADERS = (
    "Timestamp",
    "YouTube URL",
    "Cloudinary URL",
    "Title",
    "Description",
    "Thumbnail",
    "Tags",
    "Instagram Caption",
    "Published At (IG)",
    "Creation ID",
    "Error",
    "Claim",
)

CANONICAL_SCHEMA = SheetSchema(
    name="canonical",
    fields=CANONICAL_FIELDS,
    headers=CANONICAL_HEADERS,
    error_mode=ERROR_MODE_APPEND,
    claim_field="claim",
)

# simple 스키마 (A~F)
SIMPLE_SCHEMA = SheetSchema(
    name="simple",
    fields=(
        "media_url",
        "title",
        "caption",
        "published_at",
        "creation_id",
        "error",
    ),
    headers=(
        "Video URL",
        "Title",
        "Caption",
        "Published At",
        "Creation ID",
        "Error",
    ),
    error_mode=ERROR_MODE_OVERWRITE,
)

SCHEMAS: Dict[str, SheetSchema] = {
    CANONICAL_SCHEMA.name: CANONICAL_SCHEMA,
    SIMPLE_SCHEMA.name: SIMPLE_SCHEMA,
}


# ============================================================
# Claim (중복 처리 방지)
# ============================================================

DEFAULT_CLAIM_TTL_SECONDS = 600  # 10분 지난 claim은 만료로 간주


# ============================================================
# Instagram Graph API
# ============================================================

GRAPH_API_BASE = "https://graph.facebook.com"
DEFAULT_GRAPH_API_VERSION = "v23.0"
REELS_MEDIA_TYPE = "REELS"
GRAPH_API_TIMEOUT = 30  # 초


# ============================================================
# 캡션 생성 (OpenAI 호환 API)
# ============================================================

DEFAULT_CAPTION_MODEL = "gpt-4o-mini"
CAPTION_TEMPERATURE = 0.7

CAPTION_PROMPT = """Generate an engaging Instagram caption for a reel with the title: "{title}".
{description_line}The caption should be:
- Attention-grabbing and creative
- Include relevant emojis
- Be 1-3 sentences long
- Include 3-5 relevant hashtags at the end
- Be suitable for Instagram reels

Only return the caption text, nothing else."""


# ============================================================
# Cloudinary / YouTube 웹훅
# ============================================================

DEFAULT_CLOUDINARY_RESOURCE_TYPE = "image"
CLOUDINARY_ENV_KEYS = (
    "CLOUDINARY_CLOUD_NAME",
    "CLOUDINARY_API_KEY",
    "CLOUDINARY_API_SECRET",
)

YOUTUBE_SHORTS_URL = "https://www.youtube.com/shorts/{video_id}"
YOUTUBE_VIDEO_ID_LENGTH = 11
SHORTS_MARKER = "shorts"
VPS_TIMEOUT = 10  # 초


# ============================================================
# 환경변수 헬퍼
# ============================================================

def get_sheet_name(default: str = DEFAULT_SHEET_NAME) -> str:
    return os.environ.get("GOOGLE_SHEET_NAME") or default


def get_schema(name: str = None) -> SheetSchema:
    """REELS_SHEET_SCHEMA 환경변수로 스키마 선택 (기본: canonical)"""
    name = (name or os.environ.get("REELS_SHEET_SCHEMA") or CANONICAL_SCHEMA.name).lower()
    if name not in SCHEMAS:
        raise ConfigError(f"알 수 없는 시트 스키마: {name} (사용 가능: {', '.join(SCHEMAS)})")
    return SCHEMAS[name]


def claim_enabled() -> bool:
    return os.environ.get("REELS_CLAIM_ENABLED", "1") != "0"


def get_claim_ttl() -> int:
    try:
        return int(os.environ.get("REELS_CLAIM_TTL_SECONDS", DEFAULT_CLAIM_TTL_SECONDS))
    except ValueError:
        return DEFAULT_CLAIM_TTL_SECONDS


def get_instagram_credentials() -> Tuple[str, str]:
    """
    Instagram 자격증명 반환

    Returns:
        (access_token, app_id)

    Raises:
        ConfigError: INSTAGRAM_ACCESS_TOKEN 또는 APP_ID 누락
    """
    access_token = os.environ.get("INSTAGRAM_ACCESS_TOKEN")
    app_id = os.environ.get("APP_ID")
    if not access_token or not app_id:
        raise ConfigError("Instagram access token or APP_ID is not configured")
    return access_token, app_id


def get_graph_api_version() -> str:
    return os.environ.get("GRAPH_API_VERSION") or DEFAULT_GRAPH_API_VERSION


def missing_cloudinary_keys() -> List[str]:
    return [key for key in CLOUDINARY_ENV_KEYS if not os.environ.get(key)]
