# adapters/web/api_v1_blueprint.py
# REST API Blueprint for programmatic access.

from functools import wraps
from flask import Blueprint, request, jsonify, current_app

api_v1 = Blueprint('api_v1', __name__, url_prefix='/api/v1')

# Simple API Key auth
def require_api_key(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        # If no API key is configured the API is open (for local dev)
        expected_key = current_app.config.get("CODESHARE_API_KEY")
        if expected_key:
            auth_header = request.headers.get("Authorization")
            if not auth_header or not auth_header.startswith("Bearer "):
                return jsonify({"error": "Unauthorized. Missing Bearer token."}), 401
            token = auth_header.split(" ", 1)[1]
            if token != expected_key:
                return jsonify({"error": "Unauthorized. Invalid API key."}), 403
        return f(*args, **kwargs)
    return decorated

@api_v1.route('/share', methods=['POST'])
@require_api_key
def api_share():
    """
    POST /api/v1/share
    Expects multipart/form-data or JSON with 'text' and/or 'file'.
    Returns JSON with code and expiresAt.
    """
    from server import create_share
    return create_share()

@api_v1.route('/retrieve/<code>', methods=['GET'])
@require_api_key
def api_retrieve(code):
    """
    GET /api/v1/retrieve/<code>
    """
    from server import retrieve_share
    return retrieve_share(code)

@api_v1.route('/sweep', methods=['POST'])
@require_api_key
def api_sweep():
    """
    POST /api/v1/sweep
    Runs one reclamation pass immediately.
    """
    from server import SERVICE_KEY
    report = current_app.extensions[SERVICE_KEY].sweep()
    return jsonify(report.to_dict())
