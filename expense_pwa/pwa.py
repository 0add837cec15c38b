# expense_pwa/pwa.py
"""
PWA shell: offline caching rules, web manifest and the generated service worker.

``build_pwa_config`` is the declarative contract; the service worker served at
/sw.js is rendered from it, so the caching behaviour lives in one place.
"""

import logging

from flask import Blueprint, current_app, jsonify, make_response, render_template, url_for

logger = logging.getLogger("expense-pwa")

bp = Blueprint("pwa", __name__)

CACHE_VERSION = "v1"
API_CACHE_RULE = {
    "url_pattern": r"^https://api\.",
    "handler": "NetworkFirst",
    "options": {
        "cache_name": "api-cache",
        "expiration": {
            "max_entries": 50,
            "max_age_seconds": 60 * 60 * 24,
        },
    },
}


def build_pwa_config(environment):
    """Service worker settings; caching is off in local development."""
    return {
        "disable": environment == "development",
        "register": True,
        "skip_waiting": True,
        "runtime_caching": [API_CACHE_RULE],
    }


def get_pwa_config():
    return build_pwa_config(current_app.config.get("APP_ENV", "production"))


def precache_urls():
    return [
        url_for("views.home"),
        url_for("pwa.offline"),
        url_for("pwa.manifest"),
        url_for("static", filename="app.css"),
        url_for("static", filename="app.js"),
        url_for("static", filename="icon.svg"),
    ]


def build_manifest():
    return {
        "name": "Expense Tracker",
        "short_name": "Expenses",
        "description": "Track expenses and income, offline first",
        "start_url": url_for("views.home"),
        "scope": "/",
        "display": "standalone",
        "background_color": "#0f172a",
        "theme_color": "#0f172a",
        "icons": [
            {
                "src": url_for("static", filename="icon.svg"),
                "sizes": "any",
                "type": "image/svg+xml",
                "purpose": "any maskable",
            }
        ],
    }


@bp.route("/manifest.webmanifest")
def manifest():
    resp = jsonify(build_manifest())
    resp.mimetype = "application/manifest+json"
    return resp


@bp.route("/sw.js")
def service_worker():
    config = get_pwa_config()
    body = render_template(
        "sw.js",
        config=config,
        cache_version=CACHE_VERSION,
        precache=precache_urls(),
        offline_url=url_for("pwa.offline"),
    )
    resp = make_response(body)
    resp.mimetype = "application/javascript"
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["Service-Worker-Allowed"] = "/"
    return resp


@bp.route("/offline")
def offline():
    return render_template("offline.html")
