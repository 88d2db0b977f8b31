"""
Routes bundled with the stand-alone server.
"""

from flask import Blueprint, jsonify

router = Blueprint('routes', __name__)


@router.route('/health', methods=['GET'])
def health_check():
    """Liveness probe."""
    return jsonify({"status": "ok"})
