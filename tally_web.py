#!/usr/bin/env python3
"""
Tally Web API
Read-only HTTP view of the tally store plus static serving of the media
folder.

Routes
------
    GET /api/health          -> {"message": "Server is running", "timestamp": ...}
    GET /api/tallies         -> the whole store, in its stored JSON shape
    GET /gifs/<filename>     -> a file from the media folder
"""

import logging
import os
from datetime import datetime, timezone

from flask import Flask, jsonify, send_from_directory

from app.services import TallyService

web_logger = logging.getLogger('tally.web')


def create_app(tally_service: TallyService, media_folder: str = 'gifs') -> Flask:
    """Build the Flask app around an existing :class:`TallyService`."""
    app = Flask(__name__)
    # Keep games and matchups in creation order.
    app.json.sort_keys = False
    media_root = os.path.abspath(media_folder)

    @app.route('/api/health')
    def api_health():
        """Liveness probe"""
        return jsonify({
            'message': 'Server is running',
            'timestamp': datetime.now(timezone.utc).isoformat(),
        })

    @app.route('/api/tallies')
    def api_tallies():
        """Every game, matchup and record"""
        return jsonify(tally_service.snapshot())

    @app.route('/gifs/<path:filename>')
    def gifs(filename):
        return send_from_directory(media_root, filename)

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({'error': 'Not found'}), 404

    web_logger.debug('Web API ready (media folder: %s)', media_root)
    return app
