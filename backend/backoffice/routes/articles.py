# Overview: Flask API routes for article operations; catalog CRUD, barcode lookup, low stock and image upload.

"""
Article catalog routes

SECURITY: All routes require authentication.
- Reads and writes are open to every signed-in user
- Deletion is admin only
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_admin, require_auth
from ..models import Article
from ..services import inventory_service, storage_service
from ..services.query_service import parse_page_args
from ..validation import ModelValidationPolicy, enforce_rules_article, validate_payload
from .common import DOMAIN_ERRORS, error_response, json_body

ARTICLE_POLICY = ModelValidationPolicy(
    writable_fields={
        "cb", "cb_ref", "name", "description",
        "sale_price", "purchase_price", "transport_cost", "last_cost",
        "stock", "min_stock", "stock_type",
        "location", "category", "brand",
    },
    required_on_create={"cb", "name", "sale_price"},
)

articles_bp = Blueprint("articles", __name__, url_prefix="/api/articles")


@articles_bp.get("")
@require_auth
def list_articles_route():
    """
    Query params:
    - search: contains on name / cb / cb_ref
    - category, brand, stock_type: exact filters
    - order_by: column, '-column' for descending (default name)
    - page, per_page (default 20, max 100)
    """
    try:
        page, per_page = parse_page_args(request.args)
        result = inventory_service.list_articles(
            search=request.args.get("search"),
            category=request.args.get("category"),
            brand=request.args.get("brand"),
            stock_type=request.args.get("stock_type"),
            order_by=request.args.get("order_by"),
            page=page,
            per_page=per_page,
        )
        return jsonify(result), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list articles")
        return jsonify({"error": "Internal server error"}), 500


@articles_bp.get("/low-stock")
@require_auth
def low_stock_route():
    try:
        page, per_page = parse_page_args(request.args)
        return jsonify(inventory_service.list_low_stock(page=page, per_page=per_page)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@articles_bp.get("/barcode/<path:code>")
@require_auth
def barcode_lookup_route(code: str):
    """Scanner lookup: exact match on cb, then cb_ref."""
    article = inventory_service.find_by_barcode(code)
    if article is None:
        return jsonify({"error": "Article not found"}), 404
    return jsonify({"article": article.to_dict()}), 200


@articles_bp.get("/<int:article_id>")
@require_auth
def get_article_route(article_id: int):
    try:
        return jsonify({"article": inventory_service.get_article(article_id).to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@articles_bp.get("/<int:article_id>/history")
@require_auth
def article_history_route(article_id: int):
    """Purchase-order lines and sales (tickets, invoices) of one article."""
    try:
        return jsonify(inventory_service.article_history(article_id)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load article history")
        return jsonify({"error": "Internal server error"}), 500


@articles_bp.post("")
@require_auth
def create_article_route():
    try:
        patch = validate_payload(model=Article, payload=json_body(), policy=ARTICLE_POLICY, partial=False)
        enforce_rules_article(patch)
        article = inventory_service.create_article(patch)
        return jsonify({"article": article.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create article")
        return jsonify({"error": "Internal server error"}), 500


@articles_bp.patch("/<int:article_id>")
@require_auth
def update_article_route(article_id: int):
    try:
        patch = validate_payload(model=Article, payload=json_body(), policy=ARTICLE_POLICY, partial=True)
        enforce_rules_article(patch)
        article = inventory_service.update_article(article_id, patch)
        return jsonify({"article": article.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update article")
        return jsonify({"error": "Internal server error"}), 500


@articles_bp.delete("/<int:article_id>")
@require_auth
@require_admin
def delete_article_route(article_id: int):
    try:
        inventory_service.delete_article(article_id)
        return jsonify({"ok": True}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete article")
        return jsonify({"error": "Internal server error"}), 500


@articles_bp.post("/<int:article_id>/image")
@require_auth
def upload_image_route(article_id: int):
    """multipart/form-data with a `file` field; returns the public URL."""
    upload = request.files.get("file")
    if upload is None:
        return jsonify({"error": "file is required"}), 400
    try:
        url = storage_service.save_article_image(article_id, upload)
        return jsonify({"image_url": url}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to store article image")
        return jsonify({"error": "Internal server error"}), 500
