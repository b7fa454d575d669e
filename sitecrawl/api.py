"""
Crawl Job Control API (Flask)

    POST /crawl/single              {url}
    POST /crawl/domain              {domain, max_urls, max_levels,
                                     url_restrictions, obey_robots_txt}
    GET  /crawl/status/<crawl_id>
    GET  /crawl/jobs
    GET  /health
"""

import logging

from flask import Flask, jsonify, request

from .errors import JobNotFound
from .jobs import CrawlService

logger = logging.getLogger(__name__)


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object")
    return body


def create_app(service: CrawlService) -> Flask:
    """Build the Flask app around an already configured CrawlService."""
    app = Flask(__name__)
    app.config["CRAWL_SERVICE"] = service

    @app.route('/health')
    def health():
        return jsonify({"status": "ok"})

    @app.route('/crawl/single', methods=['POST'])
    def crawl_single():
        try:
            body = _json_body()
            url = body.get('url')
            logger.info(f"[API] Single crawl requested: {url}")
            result = service.crawl_single(url)
            return jsonify(result.to_dict()), 200
        except Exception as e:
            logger.error(f"[API] Single crawl failed: {e}")
            return jsonify({"error": str(e)}), 500

    @app.route('/crawl/domain', methods=['POST'])
    def crawl_domain():
        try:
            body = _json_body()
            job = service.submit_domain(
                domain=body.get('domain'),
                max_urls=body.get('max_urls'),
                max_levels=body.get('max_levels'),
                url_restrictions=body.get('url_restrictions'),
                obey_robots_txt=body.get('obey_robots_txt', False),
            )
            logger.info(f"[API] Domain crawl {job.id} accepted for {job.domain}")
            return jsonify({"message": "Crawl started", "crawl_id": job.id}), 202
        except Exception as e:
            logger.error(f"[API] Domain crawl rejected: {e}")
            return jsonify({"error": str(e)}), 500

    @app.route('/crawl/status/<crawl_id>')
    def crawl_status(crawl_id):
        try:
            return jsonify(service.registry.get_status(crawl_id)), 200
        except JobNotFound as e:
            return jsonify({"error": str(e)}), 404

    @app.route('/crawl/jobs')
    def list_jobs():
        return jsonify({"jobs": [job.to_dict() for job in service.registry.list_jobs()]})

    return app
