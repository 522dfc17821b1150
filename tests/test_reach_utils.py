import hashlib
import pytest
from datetime import date
from services.reach_aggregator import DailyReachPoint
from utils.reach_utils import summarize, format_reach, get_reach_category, generate_analysis_id

def series_totaling(total):
    return [{'date': '2024-01-01', 'reach': total, 'ad_count': 1}]

@pytest.mark.parametrize("total,category,color", [
    (100000, 'high', 'text-green-600'),
    (99999, 'medium', 'text-yellow-600'),
    (50000, 'medium', 'text-yellow-600'),
    (49999, 'low', 'text-red-600'),
    (1, 'low', 'text-red-600'),
    (0, 'no data', 'text-gray-500'),
])
def test_summarize_category_thresholds(total, category, color):
    summary = summarize(series_totaling(total))
    assert summary['reach_category'] == category
    assert summary['reach_color'] == color

def test_summarize_empty_series():
    assert summarize([]) == {
        'total_reach': 0,
        'ad_count': 0,
        'avg_reach_per_day': 0,
        'total_days': 0,
        'first_day': None,
        'last_day': None,
        'reach_category': 'no data',
        'reach_color': 'text-gray-500',
    }

def test_summarize_rolls_up_a_series():
    series = [
        DailyReachPoint(date(2024, 1, 1), 100, 1),
        DailyReachPoint(date(2024, 1, 2), 150, 2),
        DailyReachPoint(date(2024, 1, 3), 150, 1),
    ]
    summary = summarize(series)
    assert summary['total_reach'] == 400
    assert summary['ad_count'] == 2
    assert summary['total_days'] == 3
    assert summary['avg_reach_per_day'] == 133
    assert summary['first_day'] == '2024-01-01'
    assert summary['last_day'] == '2024-01-03'
    assert summary['reach_category'] == 'low'

def test_summarize_average_rounds_half_up():
    series = [
        {'date': '2024-01-01', 'reach': 1, 'ad_count': 1},
        {'date': '2024-01-02', 'reach': 2, 'ad_count': 1},
    ]
    assert summarize(series)['avg_reach_per_day'] == 2

@pytest.mark.parametrize("reach,label", [
    (0, 'NO DATA'),
    (None, 'NO DATA'),
    (999, '999'),
    (1000, '1.0K'),
    (12345, '12.3K'),
    (1250000, '1.2M'),
    (3000000, '3.0M'),
])
def test_format_reach(reach, label):
    assert format_reach(reach) == label

def test_get_reach_category_negative_is_no_data():
    assert get_reach_category(-5) == ('no data', 'text-gray-500')

def test_generate_analysis_id_is_short_stable_sha256_prefix():
    url = "https://example.com/page"
    analysis_id = generate_analysis_id(url)
    assert analysis_id == hashlib.sha256(url.encode('utf-8')).hexdigest()[:12]
    assert len(analysis_id) == 12
    assert generate_analysis_id(url) == analysis_id
    assert generate_analysis_id("https://example.com/other") != analysis_id
