from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user

from utils.url_utils import normalize_url
from utils.reach_utils import format_reach, get_reach_category
from utils.helpers import get_reach_aggregator, parse_date_range, crop_series

# Blueprint for the raw reach endpoints. These read snapshot data only;
# metered, stored analyses go through the analysis blueprint.
ads_bp = Blueprint('ads', __name__, url_prefix='/api/ads')


@ads_bp.route('/reach-data', methods=['POST'])
@login_required
def reach_data():
    """
    Daily reach series and total reach for a batch of URLs.

    Body: {"urls": ["https://...", ...]}
    Returns: {"success": true, "results": [{url, normalized_url, total_reach, data}, ...]}
    """
    payload = request.get_json(silent=True) or {}
    urls = payload.get('urls')

    if not urls or not isinstance(urls, list):
        return jsonify({"error": "URLs are required"}), 400
    if not all(isinstance(url, str) for url in urls):
        return jsonify({"error": "Every URL must be a string."}), 400
    max_urls = current_app.config.get('REACH_MAX_URLS_PER_REQUEST', 50)
    if len(urls) > max_urls:
        return jsonify({"error": f"Too many URLs. At most {max_urls} can be requested at once."}), 400

    results = get_reach_aggregator().get_reach_for_urls(urls)
    current_app.logger.info(f"User {current_user.id} fetched reach data for {len(urls)} URL(s).")
    return jsonify({"success": True, "results": results}), 200


@ads_bp.route('/historical-reach', methods=['POST'])
@login_required
def historical_reach():
    """
    Daily reach series for one URL, optionally cropped to a date window.

    Body: {"url": "...", "date_range": "all|last_7_days|last_30_days|last_90_days|custom",
           "start_date": "YYYY-MM-DD", "end_date": "YYYY-MM-DD"}
    """
    payload = request.get_json(silent=True) or {}
    url = payload.get('url')

    if not url or not isinstance(url, str):
        return jsonify({"error": "URL is required"}), 400

    start_date, end_date, error_response = parse_date_range(payload)
    if error_response:
        body, status_code = error_response
        return jsonify(body), status_code

    normalized = normalize_url(url)
    series = get_reach_aggregator().get_historical_reach(normalized)
    series = crop_series(series, start_date, end_date)

    return jsonify({
        "success": True,
        "url": url,
        "normalized_url": normalized,
        "data": [point.to_dict() for point in series],
    }), 200


@ads_bp.route('/total-reach', methods=['GET'])
@login_required
def total_reach():
    """Current total reach for ?url=, with its category, colour and display label."""
    url = request.args.get('url', '').strip()
    if not url:
        return jsonify({"error": "URL is required"}), 400

    normalized = normalize_url(url)
    reach = get_reach_aggregator().get_total_reach(normalized)
    reach_category, reach_color = get_reach_category(reach)

    return jsonify({
        "success": True,
        "url": url,
        "normalized_url": normalized,
        "total_reach": reach,
        "formatted_reach": format_reach(reach),
        "reach_category": reach_category,
        "reach_color": reach_color,
    }), 200
