from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g
from flask_login import login_required, current_user

from extensions import db
from models.url_analysis import UrlAnalysis, AnalysisStatusEnum
from services.subscription_service import (
    UsageLimitExceeded, check_usage, record_usage, remaining_usage, sync_monthly_limit
)
from utils.decorators import subscription_required
from utils.helpers import get_reach_aggregator
from utils.reach_utils import summarize, get_reach_category, generate_analysis_id, format_reach, REACH_CATEGORY_COLORS
from utils.url_utils import normalize_url, is_valid_http_url, LIKE_WILDCARD

# Blueprint for metered analyses and the user's analysis history.
analysis_bp = Blueprint('analysis', __name__, url_prefix='/api')

REACH_FILTERS = ('all',) + tuple(REACH_CATEGORY_COLORS)
DEFAULT_HISTORY_PAGE_SIZE = 10
MAX_HISTORY_PAGE_SIZE = 100


@analysis_bp.route('/analyze', methods=['POST'])
@login_required
@subscription_required
def analyze():
    """
    Runs a reach analysis for each valid URL in {"urls": [...]} and stores the results.

    Each valid URL costs one analysis against the subscription's trial or monthly
    allowance. Invalid entries are skipped; the request fails only when none are valid.
    """
    payload = request.get_json(silent=True) or {}
    urls = payload.get('urls')

    if not urls or not isinstance(urls, list):
        return jsonify({"error": "URLs are required"}), 400

    valid_urls = [url.strip() for url in urls if is_valid_http_url(url)]
    if not valid_urls:
        return jsonify({"error": "No valid URLs provided"}), 400
    max_urls = current_app.config.get('REACH_MAX_URLS_PER_REQUEST', 50)
    if len(valid_urls) > max_urls:
        return jsonify({"error": f"Too many URLs. At most {max_urls} can be analyzed at once."}), 400

    subscription = g.subscription
    # The plan may have changed since the limit was last copied.
    sync_monthly_limit(subscription)

    url_count = len(valid_urls)
    try:
        check_usage(subscription, url_count)
    except UsageLimitExceeded as e:
        current_app.logger.info(f"User {current_user.id} blocked by {e.limit_type} limit: needs {url_count}, has {e.remaining}.")
        return jsonify({"error": str(e)}), 403

    reach_results = get_reach_aggregator().get_reach_for_urls(valid_urls)
    analyzed_at = datetime.utcnow().isoformat()

    analyses = []
    for result in reach_results:
        summary = summarize(result['data'])
        analyses.append(UrlAnalysis(
            user_id=current_user.id,
            url=result['url'],
            normalized_url=result['normalized_url'] or '',
            status=AnalysisStatusEnum.COMPLETED,
            results=dict(
                summary,
                current_reach=result['total_reach'],
                chart_data=result['data'],
                analyzed_at=analyzed_at,
            ),
        ))

    try:
        db.session.add_all(analyses)
        record_usage(subscription.id, url_count)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving analyses for user {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Could not save the analysis. Please try again."}), 500

    current_app.logger.info(f"User {current_user.id} analyzed {url_count} URL(s).")
    remaining, limit, limit_type = remaining_usage(subscription)

    return jsonify({
        "success": True,
        "message": f"Completed analysis for {url_count} URL{'s' if url_count != 1 else ''}",
        "analyses": [
            {
                "id": generate_analysis_id(analysis.url),
                "url": analysis.url,
                "normalized_url": analysis.normalized_url,
                "status": analysis.status.value,
                "total_reach": analysis.results['current_reach'],
                "formatted_reach": format_reach(analysis.results['current_reach']),
                "reach_category": analysis.results['reach_category'],
            }
            for analysis in analyses
        ],
        "usage": {
            "used": limit - remaining,
            "limit": limit,
            "remaining": remaining,
            "type": limit_type,
            "is_trialing": subscription.is_trialing,
        },
    }), 200


@analysis_bp.route('/analysis/<analysis_id>', methods=['GET'])
@login_required
def get_analysis(analysis_id):
    """
    The caller's completed analysis whose URL hashes to `analysis_id`, as saved at analysis time.
    """
    completed = UrlAnalysis.query.filter_by(
        user_id=current_user.id,
        status=AnalysisStatusEnum.COMPLETED,
    ).order_by(UrlAnalysis.updated_at.desc(), UrlAnalysis.id.desc())

    match = next((analysis for analysis in completed if generate_analysis_id(analysis.url) == analysis_id), None)
    if match is None:
        return jsonify({"error": "Analysis not found"}), 404

    results = match.results if isinstance(match.results, dict) else {}
    # Older rows may lack a saved rollup; fall back to the empty summary.
    saved = dict(summarize([]), **results)

    return jsonify({
        "success": True,
        "analysis": {
            "id": analysis_id,
            "url": match.url,
            "normalized_url": match.normalized_url,
            "status": match.status.value,
            "created_at": match.created_at.isoformat() if match.created_at else None,
            "updated_at": match.updated_at.isoformat() if match.updated_at else None,
            "total_reach": saved['total_reach'],
            "current_reach": saved.get('current_reach', 0),
            "ad_count": saved['ad_count'],
            "avg_reach_per_day": saved['avg_reach_per_day'],
            "total_days": saved['total_days'],
            "first_day": saved['first_day'],
            "last_day": saved['last_day'],
            "reach_category": saved['reach_category'],
            "reach_color": saved['reach_color'],
            "chart_data": saved.get('chart_data') or [],
        },
    }), 200


def _escape_like_prefix(pattern):
    # Keeps the trailing wildcard and makes every other '%', '_' and '\' literal.
    prefix = pattern[:-len(LIKE_WILDCARD)]
    prefix = prefix.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"{prefix}{LIKE_WILDCARD}"


@analysis_bp.route('/history', methods=['GET'])
@login_required
def history():
    """
    The caller's analyses, newest first, each with its live total reach.

    Query params: page, limit, q (prefix search on the normalized URL) and
    reach (one of all, high, medium, low, no data; applied to the current page).
    """
    page = request.args.get('page', 1, type=int)
    limit = request.args.get('limit', DEFAULT_HISTORY_PAGE_SIZE, type=int)
    search = request.args.get('q', '').strip()
    reach_filter = request.args.get('reach', 'all').strip().lower()

    if page < 1 or limit < 1:
        return jsonify({"error": "page and limit must be positive integers."}), 400
    limit = min(limit, MAX_HISTORY_PAGE_SIZE)
    if reach_filter not in REACH_FILTERS:
        return jsonify({"error": f"Invalid reach filter. Use one of: {', '.join(REACH_FILTERS)}."}), 400

    query = UrlAnalysis.query.filter_by(user_id=current_user.id)
    if search:
        pattern = _escape_like_prefix(normalize_url(search, as_prefix_pattern=True))
        query = query.filter(UrlAnalysis.normalized_url.like(pattern, escape='\\'))
    query = query.order_by(UrlAnalysis.created_at.desc(), UrlAnalysis.id.desc())

    pagination = query.paginate(page=page, per_page=limit, error_out=False)

    aggregator = get_reach_aggregator()
    live_reach = {} # normalized_url -> total reach, computed once per page
    items = []
    for analysis in pagination.items:
        if analysis.normalized_url not in live_reach:
            live_reach[analysis.normalized_url] = aggregator.get_total_reach(analysis.normalized_url)
        total_reach = live_reach[analysis.normalized_url]
        reach_category, reach_color = get_reach_category(total_reach)
        if reach_filter != 'all' and reach_category != reach_filter:
            continue
        items.append({
            "id": generate_analysis_id(analysis.url),
            "url": analysis.url,
            "normalized_url": analysis.normalized_url,
            "status": analysis.status.value,
            "created_at": analysis.created_at.isoformat() if analysis.created_at else None,
            "total_reach": total_reach,
            "formatted_reach": format_reach(total_reach),
            "reach_category": reach_category,
            "reach_color": reach_color,
        })

    return jsonify({
        "success": True,
        "data": items,
        "pagination": {
            "current_page": page,
            "total_pages": pagination.pages,
            "total_count": pagination.total,
            "has_next": pagination.has_next,
            "has_prev": pagination.has_prev,
        },
    }), 200
