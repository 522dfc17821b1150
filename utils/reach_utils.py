import hashlib

# Reach thresholds for the qualitative category shown next to a URL.
HIGH_REACH_THRESHOLD = 100000
MEDIUM_REACH_THRESHOLD = 50000

NO_DATA_LABEL = 'NO DATA'

# Category -> CSS colour class used by the frontend.
REACH_CATEGORY_COLORS = {
    'no data': 'text-gray-500',
    'high': 'text-green-600',
    'medium': 'text-yellow-600',
    'low': 'text-red-600',
}


def format_reach(reach):
    """
    Formats a reach number for display.

    Zero is shown as 'NO DATA' rather than '0', since a zero total means
    nothing matched (or the lookup failed), not that an ad reached nobody.

    Examples: 0 -> 'NO DATA', 1250000 -> '1.2M', 12345 -> '12.3K', 999 -> '999'.
    """
    if not reach:
        return NO_DATA_LABEL
    if reach >= 1000000:
        return f"{reach / 1000000:.1f}M"
    if reach >= 1000:
        return f"{reach / 1000:.1f}K"
    return str(reach)


def get_reach_category(reach):
    """
    Buckets a total reach value into a category and its display colour.

    Args:
        reach (int): Total reach.

    Returns:
        tuple: (category, color). Category is one of 'no data', 'high', 'medium', 'low'.
    """
    if not reach or reach <= 0:
        category = 'no data'
    elif reach >= HIGH_REACH_THRESHOLD:
        category = 'high'
    elif reach >= MEDIUM_REACH_THRESHOLD:
        category = 'medium'
    else:
        category = 'low'
    return category, REACH_CATEGORY_COLORS[category]


def generate_analysis_id(url):
    """Short, stable id for a URL: the first 12 hex characters of its SHA-256 digest."""
    return hashlib.sha256(url.encode('utf-8')).hexdigest()[:12]


def summarize(series):
    """
    Rolls a daily reach series up into the summary shown on an analysis page.

    `total_reach` here is the sum of the daily values across the whole series. It is a
    historical figure and differs from ReachAggregator.get_total_reach(), which is the
    current best-known total; callers must pick one consistently.

    Args:
        series (list): DailyReachPoint items (or dicts with 'date', 'reach', 'ad_count'),
                       sorted ascending by date.

    Returns:
        dict: total_reach, ad_count, avg_reach_per_day, total_days, first_day, last_day,
              reach_category and reach_color. Days are 'YYYY-MM-DD' strings or None.
    """
    points = [_as_dict(point) for point in series or []]

    total_reach = sum(point['reach'] for point in points)
    total_days = len(points)
    # Peak number of ads contributing on any single day.
    ad_count = max((point['ad_count'] for point in points), default=0)
    # Round half up.
    avg_reach_per_day = (2 * total_reach + total_days) // (2 * total_days) if total_days else 0
    reach_category, reach_color = get_reach_category(total_reach)

    return {
        'total_reach': total_reach,
        'ad_count': ad_count,
        'avg_reach_per_day': avg_reach_per_day,
        'total_days': total_days,
        'first_day': points[0]['date'] if points else None,
        'last_day': points[-1]['date'] if points else None,
        'reach_category': reach_category,
        'reach_color': reach_color,
    }


def _as_dict(point):
    if isinstance(point, dict):
        return point
    return point.to_dict()
