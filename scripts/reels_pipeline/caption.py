"""
릴스 파이프라인 - Instagram 캡션 생성

OpenAI 호환 Chat Completions API 사용 (AI_BASE_URL로 다른 공급자 지정 가능)
"""

import os
import logging

from .config import (
    ConfigError,
    DEFAULT_CAPTION_MODEL,
    CAPTION_TEMPERATURE,
    CAPTION_PROMPT,
)

logger = logging.getLogger(__name__)


class CaptionGenerationError(Exception):
    """캡션 생성 실패 (빈 응답, API 오류)"""
    pass


def get_openai_client():
    """
    OpenAI 클라이언트 반환

    Raises:
        ConfigError: AI_API_KEY 또는 AI_BASE_URL 누락
    """
    from openai import OpenAI
    api_key = os.environ.get("AI_API_KEY")
    base_url = os.environ.get("AI_BASE_URL")
    if not api_key or not base_url:
        raise ConfigError("AI_API_KEY, AI_BASE_URL, or AI_MODEL_NAME is not configured")
    return OpenAI(api_key=api_key, base_url=base_url)


def build_caption_prompt(title: str, description: str = "") -> str:
    description_line = ""
    if description:
        description_line = f'Video description: "{description.strip()}"\n'
    return CAPTION_PROMPT.format(title=title, description_line=description_line)


def generate_caption(title: str, description: str = "", client=None) -> str:
    """
    영상 제목/설명으로 릴스 캡션 생성

    Args:
        title: 영상 제목
        description: 영상 설명 (선택)
        client: OpenAI 클라이언트 (없으면 환경변수로 생성)

    Returns:
        캡션 텍스트

    Raises:
        CaptionGenerationError: 설정 누락, API 오류, 빈 응답
    """
    model = os.environ.get("AI_MODEL_NAME") or DEFAULT_CAPTION_MODEL

    try:
        if client is None:
            client = get_openai_client()

        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": build_caption_prompt(title, description)}],
            temperature=CAPTION_TEMPERATURE,
        )
    except Exception as e:
        logger.error(f"[CAPTION] 캡션 생성 실패: {e}")
        raise CaptionGenerationError(f"Failed to generate caption from AI: {e}") from e

    caption = ""
    if response.choices:
        caption = (response.choices[0].message.content or "").strip()

    if not caption:
        logger.error("[CAPTION] AI 응답이 비어 있음")
        raise CaptionGenerationError("Failed to generate caption from AI")

    logger.info(f"[CAPTION] 캡션 생성 완료 ({len(caption)}자, {model})")
    return caption
