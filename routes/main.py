from datetime import datetime

from flask import Blueprint, jsonify, current_app

from utils.helpers import get_reach_aggregator

main_bp = Blueprint('main', __name__)


@main_bp.route('/api/health', methods=['GET'])
def health():
    """Liveness check. Reports 503 when the snapshot store cannot be reached."""
    try:
        get_reach_aggregator().store.ping()
        store_status = 'ok'
    except Exception as e:
        current_app.logger.error(f"Health check: snapshot store unreachable: {e}", exc_info=True)
        store_status = 'unavailable'

    healthy = store_status == 'ok'
    return jsonify({
        "status": 'healthy' if healthy else 'degraded',
        "store": store_status,
        "timestamp": datetime.utcnow().isoformat(),
    }), 200 if healthy else 503
