"""Flask application factory and HTTP routes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, render_template, request
from werkzeug.middleware.proxy_fix import ProxyFix

from ..config import AppConfig
from ..measurements.manager import MeasurementManager
from ..scheduler import SchedulerService

LOGGER = logging.getLogger(__name__)


def create_web_app(
    config: AppConfig,
    measurement_manager: MeasurementManager,
    scheduler: Optional[SchedulerService] = None,
) -> Flask:
    template_folder = Path(__file__).resolve().parent / "templates"

    app = Flask(__name__, template_folder=template_folder)
    app.config["SECRET_KEY"] = config.web.secret_key

    if config.web.reverse_proxy_headers:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    @app.route("/")
    def index():
        return render_template("index.html", result=None, error=None)

    @app.get("/start")
    def start_test():
        LOGGER.info("Speed test requested from %s", request.remote_addr)
        outcome = measurement_manager.run_speed_test()
        if outcome.failed:
            return render_template("index.html", result=None, error=f"Test failed: {outcome.error}")
        return render_template("index.html", result=outcome, error=None)

    @app.post("/api/speedtest")
    def api_speedtest():
        outcome = measurement_manager.run_speed_test()
        status = 500 if outcome.failed else 200
        return jsonify(measurement_manager.to_dict(outcome)), status

    @app.get("/api/results")
    def api_results():
        limit = request.args.get("limit", type=int)
        rows = measurement_manager.get_runs(limit=limit)
        return jsonify([measurement_manager.to_dict(row) for row in rows])

    @app.get("/api/status")
    def api_status():
        return jsonify(
            {
                "download_endpoints": config.endpoints.download,
                "upload_endpoints": config.endpoints.upload,
                "latency_target": f"{config.latency.host}:{config.latency.port}",
                "scheduler_running": bool(scheduler and scheduler.started),
            }
        )

    return app
