"""
Flask web surface for Site360.

Read-only views over stored scores and alerts:
  GET /                          - HTML overview: latest scores per site, open alerts
  GET /api/scores                - Latest score per (site, dimension)
  GET /api/sites/<id>/scores     - Latest scores for one site (?history=<dimension> for a series)
  GET /api/alerts                - Alerts, optionally ?status=&site=&limit=
  GET /api/alerts/stats          - Open alert counts by severity

Started via: python main.py web [--port 5000] [--host 127.0.0.1]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, render_template, jsonify, request

from models.enums import AlertStatus, ControlDimension
from utils.constants import dimension_label, score_status
from utils.formatters import time_ago
from utils.timeutil import parse_datetime

logger = logging.getLogger("site360.web.app")


def create_app(config: dict, engines: dict) -> Flask:
    """
    Factory function. Receives initialized engines from main.py CLI.

    Args:
        config: Application config dict
        engines: dict of initialized objects; only ``db`` is required
    """
    app = Flask(__name__, template_folder="templates")
    db = engines["db"]
    max_alerts = config.get("dashboard", {}).get("max_alerts", 10)

    # ─── Template Filters ────────────────────────────────

    @app.template_filter("format_score")
    def format_score_filter(value):
        try:
            return f"{float(value):.1f}"
        except (TypeError, ValueError):
            return "N/A"

    @app.template_filter("score_status")
    def score_status_filter(value):
        return score_status(value)

    @app.template_filter("dimension_label")
    def dimension_label_filter(value):
        return dimension_label(value)

    @app.template_filter("time_ago")
    def time_ago_filter(timestamp):
        try:
            return time_ago(parse_datetime(timestamp))
        except (TypeError, ValueError):
            return str(timestamp)

    # ─── Helpers ─────────────────────────────────────────

    def _limit(default=100):
        try:
            return max(1, min(int(request.args.get("limit", default)), 500))
        except ValueError:
            return default

    def _scores_by_site(scores):
        sites = {}
        for s in scores:
            sites.setdefault(s.site_id, []).append(s)
        return sites

    # ─── Routes ──────────────────────────────────────────

    @app.route("/")
    def index():
        scores = db.get_latest_scores()
        open_alerts = db.get_open_alerts()
        open_alerts.sort(key=lambda a: (-a.severity.rank, -(a.id or 0)))
        return render_template(
            "index.html",
            sites=_scores_by_site(scores),
            open_alerts=open_alerts[:max_alerts],
            open_count=len(open_alerts),
            stats=db.get_alert_stats(),
            generated_at=datetime.now(timezone.utc),
        )

    @app.route("/api/scores")
    def api_scores():
        site = request.args.get("site")
        scores = db.get_latest_scores(site)
        return jsonify({"scores": [s.to_dict() for s in scores], "count": len(scores)})

    @app.route("/api/sites/<site_id>/scores")
    def api_site_scores(site_id):
        history_dim = request.args.get("history")
        if history_dim:
            try:
                dimension = ControlDimension(history_dim)
            except ValueError:
                return jsonify({"error": f"Unknown dimension: {history_dim}"}), 400
            history = db.get_score_history(site_id, dimension, limit=_limit(30))
            return jsonify({
                "site_id": site_id,
                "dimension": dimension.value,
                "history": [s.to_dict() for s in history],
            })

        scores = db.get_latest_scores(site_id)
        if not scores:
            return jsonify({"error": f"No scores for site {site_id}"}), 404
        return jsonify({"site_id": site_id, "scores": [s.to_dict() for s in scores]})

    @app.route("/api/alerts")
    def api_alerts():
        status = request.args.get("status")
        if status:
            try:
                status = AlertStatus(status)
            except ValueError:
                return jsonify({"error": f"Unknown status: {status}"}), 400
        alerts = db.get_alerts(status=status, site_id=request.args.get("site"), limit=_limit())
        return jsonify({"alerts": [a.to_dict() for a in alerts], "count": len(alerts)})

    @app.route("/api/alerts/stats")
    def api_alert_stats():
        stats = db.get_alert_stats()
        return jsonify({"open": stats, "total_open": sum(stats.values())})

    return app
