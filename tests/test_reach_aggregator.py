import logging
import pytest
from datetime import date, datetime
from services.reach_aggregator import ReachAggregator, DailyReachPoint, build_daily_series, latest_total_reach
from services.snapshot_store import InMemorySnapshotStore, SnapshotStore, DailyPeak
from utils.url_utils import normalize_url

URL = "example.com/page"
LINK = "https://example.com/page?utm_source=fb"


def aggregator_for(store, today):
    return ReachAggregator(store, today=lambda: today, max_workers=2)


class FailingStore(SnapshotStore):
    """Raises for every key containing `fail_on` (or for all keys when it is None)."""

    def __init__(self, fail_on=None, delegate=None):
        self.fail_on = fail_on
        self.delegate = delegate or InMemorySnapshotStore()

    def fetch_daily_peaks(self, link_fragment):
        if self.fail_on is None or self.fail_on in link_fragment:
            raise RuntimeError("connection refused")
        return self.delegate.fetch_daily_peaks(link_fragment)

    def ping(self):
        raise RuntimeError("connection refused")


# --- Daily series ---

def test_gap_days_carry_the_last_reading_forward():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1, 9, 0), 100, LINK)
    store.add("ad-1", datetime(2024, 1, 4, 9, 0), 150, LINK)

    series = aggregator_for(store, date(2024, 1, 4)).get_historical_reach(URL)

    assert [point.date for point in series] == [date(2024, 1, d) for d in range(1, 5)]
    assert [point.reach for point in series] == [100, 100, 100, 150]
    assert [point.ad_count for point in series] == [1, 1, 1, 1]

def test_ads_are_summed_per_day():
    store = InMemorySnapshotStore()
    store.add("ad-a", datetime(2024, 1, 1, 8), 100, LINK)
    store.add("ad-a", datetime(2024, 1, 2, 8), 100, LINK)
    store.add("ad-b", datetime(2024, 1, 2, 20), 50, LINK)

    aggregator = aggregator_for(store, date(2024, 1, 2))
    series = aggregator.get_historical_reach(URL)

    assert series == [
        DailyReachPoint(date(2024, 1, 1), 100, 1),
        DailyReachPoint(date(2024, 1, 2), 150, 2),
    ]
    assert aggregator.get_total_reach(URL) == 150

def test_same_day_snapshots_collapse_to_the_maximum():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 3, 6), 80, LINK)
    store.add("ad-1", datetime(2024, 1, 3, 18), 120, LINK)

    aggregator = aggregator_for(store, date(2024, 1, 3))

    assert aggregator.get_historical_reach(URL) == [DailyReachPoint(date(2024, 1, 3), 120, 1)]
    assert aggregator.get_total_reach(URL) == 120

def test_series_extends_through_today():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)

    series = aggregator_for(store, date(2024, 1, 3)).get_historical_reach(URL)

    assert [(point.date.day, point.reach) for point in series] == [(1, 100), (2, 100), (3, 100)]

def test_observations_after_today_are_left_out_of_the_series():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)
    store.add("ad-1", datetime(2024, 1, 5), 200, LINK)

    aggregator = aggregator_for(store, date(2024, 1, 3))

    assert [point.reach for point in aggregator.get_historical_reach(URL)] == [100, 100, 100]
    assert aggregator.get_total_reach(URL) == 200

def test_rows_without_timestamp_or_reach_are_ignored():
    store = InMemorySnapshotStore()
    store.add("ad-1", None, 500, LINK)
    store.add("ad-1", datetime(2024, 1, 2), None, LINK)
    store.add("ad-1", datetime(2024, 1, 2), 40, LINK)

    aggregator = aggregator_for(store, date(2024, 1, 2))

    assert aggregator.get_historical_reach(URL) == [DailyReachPoint(date(2024, 1, 2), 40, 1)]

# --- Total reach ---

def test_total_reach_uses_each_ads_latest_day():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)
    store.add("ad-1", datetime(2024, 1, 3), 90, LINK)
    store.add("ad-2", datetime(2024, 1, 2), 30, LINK)

    assert aggregator_for(store, date(2024, 1, 3)).get_total_reach(URL) == 120

def test_no_match_returns_zero_and_empty_series():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, "https://other.com/page")

    aggregator = aggregator_for(store, date(2024, 1, 1))

    assert aggregator.get_total_reach(URL) == 0
    assert aggregator.get_historical_reach(URL) == []

@pytest.mark.parametrize("key", ["", None, "%"])
def test_empty_key_matches_nothing(key):
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)

    aggregator = aggregator_for(store, date(2024, 1, 1))

    assert aggregator.get_total_reach(key) == 0
    assert aggregator.get_historical_reach(key) == []

def test_trailing_wildcard_is_ignored():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)

    assert aggregator_for(store, date(2024, 1, 1)).get_total_reach(URL + "%") == 100

# --- Matching ---

def test_substring_match_breadth():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 700, "shop.example.com/products/widget?ref=ig")

    aggregator = aggregator_for(store, date(2024, 1, 1))

    assert aggregator.get_total_reach("shop.example.com/products/widget") == 700
    assert aggregator.get_total_reach("example.com/products/widget-pro") == 0

# --- Store failures ---

def test_store_failure_degrades_to_no_data(caplog):
    aggregator = aggregator_for(FailingStore(), date(2024, 1, 1))

    with caplog.at_level(logging.ERROR):
        assert aggregator.get_total_reach(URL) == 0
        assert aggregator.get_historical_reach(URL) == []

    assert "connection refused" in caplog.text

# --- Batch ---

def test_get_reach_for_urls_preserves_input_order():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 100, LINK)
    store.add("ad-2", datetime(2024, 1, 2), 40, "https://other.com/b")

    results = aggregator_for(store, date(2024, 1, 2)).get_reach_for_urls([
        "https://www.example.com/page?fbclid=1",
        "https://other.com/b",
        "https://nothing.example.org/",
    ])

    assert [result['normalized_url'] for result in results] == ["example.com/page", "other.com/b", "nothing.example.org/"]
    assert [result['total_reach'] for result in results] == [100, 40, 0]
    assert results[0]['url'] == "https://www.example.com/page?fbclid=1"
    assert results[0]['data'] == [
        {'date': '2024-01-01', 'reach': 100, 'ad_count': 1},
        {'date': '2024-01-02', 'reach': 100, 'ad_count': 1},
    ]
    assert results[2]['data'] == []

def test_get_reach_for_urls_isolates_a_failing_url():
    delegate = InMemorySnapshotStore()
    delegate.add("ad-1", datetime(2024, 1, 1), 100, LINK)
    store = FailingStore(fail_on="broken.com", delegate=delegate)

    results = aggregator_for(store, date(2024, 1, 1)).get_reach_for_urls([
        "https://broken.com/x",
        "https://example.com/page",
    ])

    assert results[0]['total_reach'] == 0
    assert results[0]['data'] == []
    assert results[1]['total_reach'] == 100

def test_get_reach_for_urls_empty_input():
    assert aggregator_for(InMemorySnapshotStore(), date(2024, 1, 1)).get_reach_for_urls([]) == []

@pytest.mark.parametrize("url", ["", "   "])
def test_get_reach_for_urls_blank_url_is_no_data_without_a_store_call(caplog, url):
    # The store fails for every key, so any lookup would log an error.
    with caplog.at_level(logging.ERROR):
        results = aggregator_for(FailingStore(), date(2024, 1, 1)).get_reach_for_urls([url])

    assert results == [{'url': url, 'normalized_url': '', 'total_reach': 0, 'data': []}]
    assert caplog.records == []

# --- Same-entity matching ---

def test_bare_host_does_not_match_a_longer_domain():
    store = InMemorySnapshotStore()
    store.add("ad-1", datetime(2024, 1, 1), 999, "https://example.community/landing")
    store.add("ad-2", datetime(2024, 1, 1), 250, "https://www.example.com/")

    aggregator = aggregator_for(store, date(2024, 1, 1))

    assert aggregator.get_total_reach(normalize_url("https://example.com")) == 250
    assert aggregator.get_total_reach(normalize_url("https://example.com/")) == 250
    assert aggregator.get_reach_for_urls(["https://example.com"])[0]['total_reach'] == 250

# --- Pure helpers ---

def test_build_daily_series_empty():
    assert build_daily_series([], date(2024, 1, 1)) == []

def test_latest_total_reach_sums_across_ads():
    peaks = [
        DailyPeak("a", date(2024, 1, 1), 10),
        DailyPeak("a", date(2024, 1, 2), 15),
        DailyPeak("b", date(2024, 1, 1), 5),
    ]
    assert latest_total_reach(peaks) == 20
