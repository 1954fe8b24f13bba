"""
릴스 파이프라인 - Cloudinary 에셋 정리

게시 완료된 영상의 Cloudinary 원본 삭제
"""

import os
import re
import logging
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.uploader

from .config import ConfigError, DEFAULT_CLOUDINARY_RESOURCE_TYPE, missing_cloudinary_keys

logger = logging.getLogger(__name__)

# /upload/ 뒤 (버전 /v123 생략 가능) ~ 확장자 앞까지
PUBLIC_ID_PATTERN = re.compile(r"/upload(?:/v\d+)?/([^./]+(?:/[^./]+)*)\.\w+$")

# 삭제 성공으로 보는 결과
DELETED_RESULTS = ("ok", "not found")


def extract_public_id(media_url: str) -> Optional[str]:
    """
    Cloudinary URL → public_id

    예: https://res.cloudinary.com/demo/video/upload/v123/folder/clip.mp4 → folder/clip

    Returns:
        public_id, 형식이 맞지 않으면 None
    """
    if not media_url:
        return None
    match = PUBLIC_ID_PATTERN.search(media_url)
    return match.group(1) if match else None


def configure_cloudinary() -> None:
    """환경변수로 Cloudinary SDK 설정"""
    missing = missing_cloudinary_keys()
    if missing:
        raise ConfigError("Cloudinary configuration is not set")

    cloudinary.config(
        cloud_name=os.environ["CLOUDINARY_CLOUD_NAME"],
        api_key=os.environ["CLOUDINARY_API_KEY"],
        api_secret=os.environ["CLOUDINARY_API_SECRET"],
        secure=True,
    )


def delete_asset(public_id: str, resource_type: str = None) -> Dict[str, Any]:
    """
    Cloudinary 에셋 삭제

    Returns:
        {"result": "ok" | "not found" | ...}
    """
    resource_type = resource_type or os.environ.get("CLOUDINARY_RESOURCE_TYPE") or DEFAULT_CLOUDINARY_RESOURCE_TYPE
    result = cloudinary.uploader.destroy(public_id, resource_type=resource_type, invalidate=True)
    logger.info(f"[CLEANUP] destroy {public_id} ({resource_type}): {result.get('result')}")
    return result
