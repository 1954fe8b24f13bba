"""
Reels Pipeline API Blueprint
릴스 게시 파이프라인 엔드포인트

기능:
- YouTube 웹훅 (구독 확인 / 새 영상 알림)
- 업로드 (릴스 컨테이너 생성)
- 게시
- Cloudinary 정리
- 큐 시트 생성 / 상태 조회
"""

from flask import Blueprint, request, jsonify, Response

# Blueprint 생성
reels_bp = Blueprint('reels', __name__)


@reels_bp.route('/api/youtube-webhook', methods=['GET'])
def api_youtube_webhook_verify():
    """PubSubHubbub 구독 확인 (hub.challenge 반환)"""
    from scripts.reels_pipeline import run_ingest_verification

    body, status = run_ingest_verification(
        mode=request.args.get('hub.mode'),
        challenge=request.args.get('hub.challenge'),
        topic=request.args.get('hub.topic'),
    )
    return Response(body, status=status, mimetype='text/plain')


@reels_bp.route('/api/youtube-webhook', methods=['POST'])
def api_youtube_webhook_notify():
    """새 영상 알림 → 큐 시트 추가 + VPS 처리 요청"""
    from scripts.reels_pipeline import run_ingest_notification

    xml_body = request.get_data(as_text=True)
    body, status = run_ingest_notification(xml_body)
    return jsonify(body), status


@reels_bp.route('/api/upload', methods=['POST'])
def api_upload():
    """다음 행 릴스 컨테이너 생성 (cron job용)"""
    from scripts.reels_pipeline import run_stage

    body, status = run_stage()
    return jsonify(body), status


@reels_bp.route('/api/publish', methods=['POST'])
def api_publish():
    """다음 행 게시 (body: {"sheetName": "..."} 선택)"""
    from scripts.reels_pipeline import run_commit

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    body, status = run_commit(sheet_name=data.get('sheetName'))
    return jsonify(body), status


@reels_bp.route('/api/delete-cloudinary', methods=['GET'])
def api_delete_cloudinary():
    """게시 완료 행의 Cloudinary 에셋 삭제"""
    from scripts.reels_pipeline import run_reap

    body, status = run_reap()
    return jsonify(body), status


@reels_bp.route('/api/reels/create-sheet', methods=['GET', 'POST'])
def api_reels_create_sheet():
    """큐 시트 생성"""
    try:
        from scripts.reels_pipeline import run_create_sheet

        sheet_name = request.args.get('sheet') or None
        force = request.args.get('force', '0') == '1'

        result = run_create_sheet(sheet_name=sheet_name, force=force)
        result["message"] = "큐 시트 생성 완료" if result["created"] else "큐 시트가 이미 존재합니다"
        return jsonify(result)

    except Exception as e:
        import traceback
        traceback.print_exc()
        return jsonify({"ok": False, "error": str(e)}), 500


@reels_bp.route('/api/reels/queue', methods=['GET'])
def api_reels_queue():
    """큐 상태 요약"""
    try:
        from scripts.reels_pipeline import queue_summary

        result = queue_summary(sheet_name=request.args.get('sheet') or None)
        return jsonify({"ok": True, **result})

    except Exception as e:
        import traceback
        traceback.print_exc()
        return jsonify({"ok": False, "error": str(e)}), 500
