"""
blueprints 패키지
Flask Blueprint를 사용한 reels_server.py 모듈화

모듈 구성:
- reels.py: Reels Pipeline Blueprint (/api/youtube-webhook, /api/upload, /api/publish,
            /api/delete-cloudinary, /api/reels/*)

사용법:
    from blueprints.reels import reels_bp
    app.register_blueprint(reels_bp)
"""

__version__ = '1.0.0'
