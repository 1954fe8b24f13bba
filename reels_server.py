"""
Reels Server - Flask 앱

YouTube Shorts → Instagram Reels 게시 파이프라인 HTTP 서버
(gunicorn reels_server:app -c gunicorn.conf.py)
"""

import os
import logging

from flask import Flask, jsonify

from blueprints.reels import reels_bp

# 로깅 설정
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def create_app() -> Flask:
    app = Flask(__name__)

    # Reels Blueprint 등록
    app.register_blueprint(reels_bp)

    # ===== 전역 에러 핸들러 (항상 JSON 반환) =====
    @app.errorhandler(404)
    def handle_404_error(e):
        return jsonify({"ok": False, "error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_405_error(e):
        return jsonify({"ok": False, "error": "Method not allowed"}), 405

    @app.errorhandler(Exception)
    def handle_exception(e):
        """모든 예외를 JSON으로 반환"""
        logger.exception(f"[FLASK-ERROR] 예외 발생: {type(e).__name__}: {e}")
        return jsonify({
            "error": "Internal server error",
            "details": f"{type(e).__name__}: {e}"
        }), 500

    @app.route('/health')
    def health():
        return jsonify({"ok": True})

    return app


app = create_app()


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 10000))
    app.run(host="0.0.0.0", port=port, debug=False)
