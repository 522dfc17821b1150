from flask import current_app # For reaching app-scoped services.
from datetime import date, timedelta, datetime # For date calculations.


def get_reach_aggregator():
    """Returns the ReachAggregator created for the current app in create_app()."""
    return current_app.extensions['reach_aggregator']


def parse_date_range(request_args, default_range_str='all'):
    """
    Parses date range parameters from request arguments or a JSON body.

    Supports the predefined ranges 'all' (no bounds), 'last_7_days', 'last_30_days',
    'last_90_days' and 'custom' (with 'start_date' and 'end_date' as YYYY-MM-DD).
    Unknown range names fall back to `default_range_str`.

    Args:
        request_args (Mapping): request.args, or the parsed JSON body.
        default_range_str (str, optional): Range used when 'date_range' is missing or
                                           unknown. Defaults to 'all'.

    Returns:
        tuple: (start_date, end_date, error_response).
               - start_date / end_date (date or None): None means unbounded on that side.
               - error_response (tuple or None): ({"error": message}, http_status) on bad input.
    """
    relative_ranges = {
        'last_7_days': 6,
        'last_30_days': 29,
        'last_90_days': 89,
    }
    date_range_str = request_args.get('date_range') or default_range_str
    today = date.today()

    if date_range_str == 'custom':
        start_date_param = request_args.get('start_date')
        end_date_param = request_args.get('end_date')
        if not (start_date_param and end_date_param):
            return None, None, ({"error": "Custom date range requires start_date and end_date."}, 400)
        try:
            start_date_obj = datetime.strptime(start_date_param, '%Y-%m-%d').date()
            end_date_obj = datetime.strptime(end_date_param, '%Y-%m-%d').date()
        except (TypeError, ValueError):
            return None, None, ({"error": "Invalid date format. Use YYYY-MM-DD."}, 400)
        if start_date_obj > end_date_obj:
            return None, None, ({"error": "Start date cannot be after end date."}, 400)
        return start_date_obj, end_date_obj, None

    if date_range_str not in relative_ranges and date_range_str != 'all':
        # Unknown names degrade to the default rather than failing the request.
        date_range_str = default_range_str

    if date_range_str in relative_ranges:
        return today - timedelta(days=relative_ranges[date_range_str]), today, None
    if date_range_str == 'all':
        return None, None, None
    return None, None, ({"error": f"Invalid or unsupported default_range_str configured: {default_range_str}"}, 500)


def crop_series(series, start_date=None, end_date=None):
    """Keeps the points of a daily series that fall inside [start_date, end_date]."""
    return [
        point for point in series
        if (start_date is None or point.date >= start_date)
        and (end_date is None or point.date <= end_date)
    ]
