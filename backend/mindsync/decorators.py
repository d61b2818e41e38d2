# Overview: Request decorators for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .services.concurrency import StoreError
from .services.tenant_service import get_business
from .validation import ConflictError, NotFoundError, ValidationError

BUSINESS_HEADER = "X-Business-ID"


def require_business(f):
    """
    Establish business (tenant) context from the X-Business-ID header.

    Sets the following Flask g attributes:
    - g.business_id: The business every query and write is scoped to
    - g.business: The BusinessProfile row

    Returns 400 if the header is missing or not an integer, 404 if no such
    business exists. A failed lookup raises StoreError, so stack it under
    json_errors. How the caller obtained the id (login, API key, ...)
    is outside this service.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(BUSINESS_HEADER) or "").strip()
        if not raw:
            return jsonify({"error": f"{BUSINESS_HEADER} header is required"}), 400
        try:
            business_id = int(raw)
        except ValueError:
            return jsonify({"error": f"{BUSINESS_HEADER} must be an integer"}), 400

        try:
            business = get_business(business_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError("Business lookup failed") from exc
        if business is None:
            return jsonify({"error": "Business not found"}), 404

        g.business_id = business.id
        g.business = business
        return f(*args, **kwargs)

    return decorated_function


def json_errors(f):
    """
    Map service exceptions to JSON error responses.

    ValidationError -> 400, NotFoundError -> 404, ConflictError -> 409,
    StoreError -> 500 (generic message). Anything else is logged and
    returned as a 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except ValidationError as exc:
            return jsonify({"error": str(exc)}), 400
        except NotFoundError as exc:
            return jsonify({"error": str(exc)}), 404
        except ConflictError as exc:
            return jsonify({"error": str(exc)}), 409
        except StoreError:
            current_app.logger.exception("Store failure in %s %s", request.method, request.path)
            return jsonify({"error": "Database error, please retry"}), 500
        except Exception:
            current_app.logger.exception("Unhandled error in %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
