import atexit
import logging
from decimal import Decimal

from flask import Blueprint, Flask, current_app, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import models
from config import Config
from database import init_db, open_backend
from exceptions import StockCheckError, ValidationError
from logging_setup import configure_logging
from store import InventoryStore

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


class StockJSONProvider(DefaultJSONProvider):
    """Render Decimal money as a JSON number instead of Flask's default string."""

    @staticmethod
    def default(o):
        if isinstance(o, Decimal):
            return float(o)
        return DefaultJSONProvider.default(o)


def _store():
    return current_app.extensions["inventory_store"]


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", code="invalid_body")
    return data


@api.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok", "backend": _store().backend.name})


# --- Items (settings page) ---

@api.route('/items', methods=['GET'])
def list_items():
    return jsonify(_store().list_items())


@api.route('/items', methods=['POST'])
def create_item():
    data = _json_body()
    item_id = _store().create_item(
        data.get('name'),
        data.get('category'),
        min_level=data.get('min_level', 0),
        is_core=data.get('is_core', False),
        unit=data.get('unit'),
    )
    return jsonify({"id": item_id})


@api.route('/items/<int:item_id>', methods=['DELETE'])
def delete_item(item_id):
    _store().delete_item(item_id)
    return jsonify({"success": True})


# --- Daily checklist ---

@api.route('/checks/today', methods=['GET'])
def todays_checks():
    return jsonify(_store().todays_checks())


@api.route('/checks', methods=['POST'])
def submit_checklist():
    data = _json_body()
    _store().submit_checklist(data.get('staff_name'), data.get('items'))
    return jsonify({"success": True})


# --- Reports ---

@api.route('/reports', methods=['GET'])
def list_reports():
    return jsonify(_store().list_reports())


@api.route('/reports', methods=['POST'])
def create_report():
    data = _json_body()
    # items_needed is accepted for compatibility with the client but not stored
    report_id = _store().create_report(data.get('staff_name'))
    return jsonify({"id": report_id})


# --- Purchases ---

@api.route('/stores', methods=['GET'])
def store_suggestions():
    return jsonify(models.STORE_SUGGESTIONS)


@api.route('/purchases', methods=['GET'])
def list_purchases():
    return jsonify(_store().list_purchases())


@api.route('/purchases', methods=['POST'])
def record_purchase():
    data = _json_body()
    _store().record_purchase(
        data.get('item_id'),
        data.get('quantity'),
        data.get('cost'),
        data.get('store'),
    )
    return jsonify({"success": True})


@api.route('/stats/weekly', methods=['GET'])
def weekly_stats():
    return jsonify(_store().weekly_stats())


# --- Error handling ---

@api.errorhandler(StockCheckError)
def handle_stock_error(error):
    if error.status_code >= 500:
        logger.error("%s on %s: %s", error.__class__.__name__, request.path, error)
    else:
        logger.info("Rejected %s %s: %s", request.method, request.path, error)
    return jsonify(error.to_dict()), error.status_code


@api.errorhandler(Exception)
def handle_unexpected(error):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.name, "message": error.description}), error.code
    logger.exception("Unhandled exception on %s", request.path)
    return jsonify({"error": "InternalServerError", "message": "Internal Server Error"}), 500


def create_app(config_override=None, store=None, clock=None):
    app = Flask(__name__)
    app.json = StockJSONProvider(app)

    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    configure_logging(app)
    CORS(app, origins=app.config["CORS_ORIGINS"])

    if store is None:
        backend = open_backend(app.config)
        init_db(backend, seed=app.config["SEED_CATALOG"])
        store = InventoryStore(backend, clock=clock)
        # test apps are closed by their fixtures; only serving processes need the hook
        if not app.testing:
            atexit.register(store.close)
    app.extensions["inventory_store"] = store

    app.register_blueprint(api)

    @app.route('/')
    def serve_root():
        return "Stock checklist service is running. API under /api"

    return app


if __name__ == '__main__':
    app = create_app()
    port = app.config["PORT"]
    logger.info("Server running on http://localhost:%s", port)
    app.run(host='0.0.0.0', port=port)
