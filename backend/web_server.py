"""
Web Server for tikr - thin HTTP CRUD over the loop registry.

Routes (JSON bodies):
    GET    /api/audio                 list tracks
    POST   /api/audio                 upload (multipart field "audio")
    GET    /api/audio/<id>            one track
    DELETE /api/audio/<id>            delete track and its loops
    GET    /api/audio/<id>/stream     the audio file
    GET    /api/audio/<id>/loops      loops of a track
    POST   /api/audio/<id>/loops      create loop {start, end, label?}
    DELETE /api/loops/<id>            delete loop

Missing ids answer 404, invalid loop payloads 400, storage failures 500.

Usage:
    server = WebServer(registry, port=3001)
    server.start()        # Non-blocking, runs in thread
    ...
    server.stop()
"""

import os
import logging
import threading
from typing import Optional

from flask import Flask, jsonify, request, send_file
from werkzeug.serving import make_server

from config import WEB_HOST, WEB_PORT
from .errors import NotFoundError, StorageError, ValidationError
from .models import is_number
from .registry import LoopRegistry

logger = logging.getLogger("Tikr.WebServer")


def _error(message: str, status: int):
    return jsonify({'error': message}), status


def create_app(registry: LoopRegistry) -> Flask:
    """Create and configure the Flask app."""
    app = Flask(__name__)
    app.logger.setLevel(logging.WARNING)  # Suppress request logs

    # Suppress werkzeug logs
    wlog = logging.getLogger('werkzeug')
    wlog.setLevel(logging.ERROR)

    @app.errorhandler(StorageError)
    def _storage_error(e):
        logger.error(f"Storage failure: {e}")
        return _error(str(e), 500)

    # =====================================================================
    # AUDIO
    # =====================================================================

    @app.route('/api/audio', methods=['GET'])
    def list_audio():
        return jsonify([t.to_dict() for t in registry.list_tracks()])

    @app.route('/api/audio', methods=['POST'])
    def upload_audio():
        upload = request.files.get('audio')
        if upload is None or not upload.filename:
            return _error('No file uploaded', 400)
        try:
            track = registry.create_track(upload.read(), upload.filename)
        except ValidationError as e:
            return _error(str(e), 400)
        return jsonify(track.to_dict())

    @app.route('/api/audio/<track_id>', methods=['GET'])
    def get_audio(track_id):
        track = registry.get_track(track_id)
        if track is None:
            return _error('Audio not found', 404)
        return jsonify(track.to_dict())

    @app.route('/api/audio/<track_id>', methods=['DELETE'])
    def delete_audio(track_id):
        if not registry.delete_track(track_id):
            return _error('Audio not found', 404)
        return jsonify({'success': True})

    @app.route('/api/audio/<track_id>/stream', methods=['GET'])
    def stream_audio(track_id):
        try:
            path = registry.blob_path(track_id)
        except NotFoundError:
            return _error('Audio not found', 404)
        if not os.path.isfile(path):
            return _error('Audio not found', 404)
        return send_file(os.path.abspath(path), conditional=True)

    # =====================================================================
    # LOOPS
    # =====================================================================

    @app.route('/api/audio/<track_id>/loops', methods=['GET'])
    def list_loops(track_id):
        return jsonify([r.to_dict() for r in registry.list_regions(track_id)])

    @app.route('/api/audio/<track_id>/loops', methods=['POST'])
    def create_loop(track_id):
        data = request.get_json(silent=True) or {}
        start, end = data.get('start'), data.get('end')
        if not is_number(start) or not is_number(end):
            return _error('Invalid start or end time', 400)
        try:
            region = registry.create_region(track_id, start, end, data.get('label'))
        except ValidationError as e:
            return _error(str(e), 400)
        except NotFoundError:
            return _error('Audio not found', 404)
        return jsonify(region.to_dict())

    @app.route('/api/loops/<region_id>', methods=['DELETE'])
    def delete_loop(region_id):
        if not registry.delete_region(region_id):
            return _error('Loop not found', 404)
        return jsonify({'success': True})

    return app


# =========================================================================
# SERVER MANAGER
# =========================================================================

class WebServer:
    """Manages the Flask web server lifecycle."""

    def __init__(self, registry: LoopRegistry, host: str = WEB_HOST, port: int = WEB_PORT):
        self.registry = registry
        self.host = host
        self.port = port
        self._thread: Optional[threading.Thread] = None
        self._server = None
        self.running = False
        self.url = ""

    def start(self) -> str:
        """Start the web server. Returns the URL."""
        if self.running:
            return self.url

        app = create_app(self.registry)

        # Use werkzeug's make_server for clean shutdown
        self._server = make_server(self.host, self.port, app, threaded=True)
        self.port = self._server.server_port
        self.url = f"http://{self.host}:{self.port}"

        def _run():
            logger.info(f"Web server starting on {self.url}")
            try:
                self._server.serve_forever()
            except Exception as e:
                logger.error(f"Web server error: {e}")
            finally:
                self.running = False
                logger.info("Web server stopped")

        self._thread = threading.Thread(target=_run, daemon=True)
        self._thread.start()
        self.running = True
        return self.url

    def stop(self):
        """Stop the web server."""
        if self._server:
            self._server.shutdown()
            self._server = None
        self.running = False
        logger.info("Web server shutdown requested")

    def wait(self):
        """Block until the server thread exits."""
        if self._thread is not None:
            self._thread.join()
