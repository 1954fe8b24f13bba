"""
릴스 파이프라인 - Instagram Graph API

2단계 게시:
1. /{app_id}/media          → 릴스 컨테이너 생성 (creation_id 반환)
2. /{app_id}/media_publish  → 컨테이너 게시 (media id 반환)
"""

import re
import logging
from typing import Any, Dict, Optional

import requests

from .config import (
    GRAPH_API_BASE,
    GRAPH_API_TIMEOUT,
    REELS_MEDIA_TYPE,
    get_graph_api_version,
    get_instagram_credentials,
)

logger = logging.getLogger(__name__)


class GraphAPIError(Exception):
    """Graph API 오류 응답 (message, code, HTTP status, 원본 payload)"""

    def __init__(self, message: str, code: Any = None, status: int = 500, payload: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.payload = payload if payload is not None else {}

    def describe(self) -> str:
        """시트 에러 열 기록용: '<message> (Code: <code>)'"""
        return f"{self.message} (Code: {self.code if self.code not in (None, '') else 'unknown'})"


def derive_cover_url(media_url: str) -> str:
    """영상 URL의 확장자를 .jpg로 교체 (Cloudinary는 .jpg 요청 시 프레임 이미지 반환)"""
    return re.sub(r"\.[^/.]+$", ".jpg", media_url)


class InstagramPublisher:
    """Instagram Reels 게시 (Graph API)"""

    def __init__(self, access_token: str = None, app_id: str = None, api_version: str = None, session=None):
        """
        Args:
            access_token: 액세스 토큰 (없으면 INSTAGRAM_ACCESS_TOKEN)
            app_id: Instagram 계정 ID (없으면 APP_ID)
            api_version: Graph API 버전 (없으면 GRAPH_API_VERSION 또는 v23.0)
            session: requests 호환 세션 (테스트용)
        """
        if not access_token or not app_id:
            env_token, env_app_id = get_instagram_credentials()
            access_token = access_token or env_token
            app_id = app_id or env_app_id

        self.access_token = access_token
        self.app_id = app_id
        self.api_version = api_version or get_graph_api_version()
        self.session = session or requests

    def _endpoint(self, edge: str) -> str:
        return f"{GRAPH_API_BASE}/{self.api_version}/{self.app_id}/{edge}"

    def _post(self, edge: str, params: Dict[str, str]) -> Dict[str, Any]:
        response = self.session.post(
            self._endpoint(edge),
            params=params,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
            timeout=GRAPH_API_TIMEOUT,
        )

        try:
            data = response.json()
        except ValueError:
            data = {"error": {"message": response.text or "Invalid JSON response"}}

        if not response.ok:
            error = data.get("error") or {}
            raise GraphAPIError(
                message=error.get("message") or "Facebook API error",
                code=error.get("code"),
                status=response.status_code,
                payload=data,
            )
        return data

    def create_container(self, caption: str, video_url: str, cover_url: str = None,
                         media_type: str = REELS_MEDIA_TYPE) -> str:
        """
        릴스 미디어 컨테이너 생성

        Returns:
            creation_id

        Raises:
            GraphAPIError: API 오류 응답
        """
        params = {
            "media_type": media_type,
            "caption": caption,
            "cover_url": cover_url or derive_cover_url(video_url),
            "video_url": video_url,
        }
        data = self._post("media", params)
        creation_id = data.get("id")
        if not creation_id:
            raise GraphAPIError("No creation id in response", status=502, payload=data)

        logger.info(f"[Instagram] 컨테이너 생성: {creation_id}")
        return str(creation_id)

    def publish_container(self, creation_id: str) -> str:
        """
        컨테이너 게시

        Returns:
            게시된 media id

        Raises:
            GraphAPIError: API 오류 응답
        """
        data = self._post("media_publish", {"creation_id": creation_id})
        media_id = data.get("id")
        logger.info(f"[Instagram] 게시 완료: creation_id={creation_id} → media_id={media_id}")
        return str(media_id) if media_id is not None else ""
