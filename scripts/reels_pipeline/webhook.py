"""
릴스 파이프라인 - YouTube 푸시 알림 (PubSubHubbub / WebSub)

1. 구독 확인 (GET): hub.mode=subscribe 이면 hub.challenge 그대로 반환
2. 새 영상 알림 (POST): Atom XML에서 영상 정보 추출 → 쇼츠 판별 → 큐 시트 추가 → VPS 처리 요청
"""

import os
import re
import html
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

import requests

from .config import (
    YOUTUBE_SHORTS_URL,
    YOUTUBE_VIDEO_ID_LENGTH,
    SHORTS_MARKER,
    VPS_TIMEOUT,
)

logger = logging.getLogger(__name__)


@dataclass
class VideoNotification:
    video_id: str = ""
    title: str = ""
    description: str = ""
    thumbnail: str = ""
    published_at: str = ""

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @property
    def short_url(self) -> str:
        return YOUTUBE_SHORTS_URL.format(video_id=self.video_id)


def verify_subscription(mode: Optional[str], challenge: Optional[str], topic: Optional[str] = None) -> Optional[str]:
    """
    허브 구독 확인

    Returns:
        응답할 challenge 문자열, 확인 실패 시 None
    """
    if mode == "subscribe" and challenge:
        logger.info(f"[WEBHOOK] 구독 확인 완료: {topic}")
        return challenge
    logger.warning(f"[WEBHOOK] 잘못된 구독 확인 요청: mode={mode}")
    return None


def _match(pattern: str, text: str) -> str:
    match = re.search(pattern, text)
    return html.unescape(match.group(1)).strip() if match else ""


def parse_notification(xml_body: str) -> VideoNotification:
    """
    Atom 알림 본문에서 영상 정보 추출 (없는 필드는 '')

    피드 자체의 <title>("YouTube video feed")을 피하기 위해 <entry> 안에서 먼저 찾는다.
    """
    xml_body = xml_body or ""
    entry = re.search(r"<entry[\s>].*?</entry>", xml_body, re.DOTALL)
    if entry:
        xml_body = entry.group(0)
    return VideoNotification(
        video_id=_match(r"<yt:videoId>([^<]+)</yt:videoId>", xml_body),
        title=_match(r"<title>([^<]+)</title>", xml_body),
        description=_match(r"<media:description>([^<]*)</media:description>", xml_body),
        thumbnail=_match(r"<media:thumbnail\s+url=['\"]([^'\"]+)['\"]", xml_body),
        published_at=_match(r"<published>([^<]+)</published>", xml_body),
    )


def is_short(video: VideoNotification) -> bool:
    """
    쇼츠 여부 (단순 휴리스틱)

    - 제목/설명에 'shorts' 포함
    - 또는 영상 ID가 11자 (일반 YouTube ID 길이라 사실상 대부분 통과)
    """
    marker = SHORTS_MARKER.lower()
    return (
        marker in video.title.lower()
        or marker in video.description.lower()
        or len(video.video_id) == YOUTUBE_VIDEO_ID_LENGTH
    )


def build_queue_entry(video: VideoNotification, timestamp: str) -> Dict[str, str]:
    """큐 시트 신규 행 데이터 (이후 단계 필드는 비워둠)"""
    return {
        "timestamp": timestamp,
        "source_url": video.short_url,
        "media_url": "",
        "title": video.title,
        "description": video.description,
        "thumbnail": video.thumbnail,
        "tags": "",
        "caption": "",
        "published_at": "",
        "creation_id": "",
        "error": "",
    }


def _post_to_vps(vps_url: str, payload: Dict[str, str]) -> None:
    try:
        response = requests.post(vps_url, json=payload, timeout=VPS_TIMEOUT)
        logger.info(f"[WEBHOOK] VPS 응답: {response.status_code}")
    except requests.RequestException as e:
        logger.error(f"[WEBHOOK] VPS 요청 실패: {e}")


def trigger_processing(video: VideoNotification, vps_url: str = None, background: bool = True) -> bool:
    """
    VPS에 영상 처리 요청 (다운로드 → Cloudinary 업로드 → media_url 기록)

    응답을 기다리지 않는 단방향 요청.

    Returns:
        요청을 보냈으면 True, VPS_URL 미설정이면 False
    """
    vps_url = vps_url or os.environ.get("VPS_URL")
    if not vps_url:
        logger.warning("[WEBHOOK] VPS_URL 미설정 - 처리 요청 건너뜀")
        return False

    payload = {
        "videoUrl": video.short_url,
        "title": video.title,
        "description": video.description,
    }

    if background:
        thread = threading.Thread(target=_post_to_vps, args=(vps_url, payload), daemon=True)
        thread.start()
    else:
        _post_to_vps(vps_url, payload)
    return True
