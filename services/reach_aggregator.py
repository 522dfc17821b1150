"""Reconstructs daily reach for a URL from sparse ad snapshots.

Ads are observed irregularly: several snapshots on some days, none on others. Reach
is cumulative per ad, so a day without a reading is taken to be unchanged from the
last reading rather than zero. The daily series for a URL is the sum, per day, of
every matching ad's last known reach.
"""
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

from utils.url_utils import normalize_url, LIKE_WILDCARD


class DailyReachPoint:
    """Reach for one calendar day, summed over the ads that have data on or before it."""

    __slots__ = ('date', 'reach', 'ad_count')

    def __init__(self, day, reach, ad_count):
        self.date = day
        self.reach = reach
        self.ad_count = ad_count

    def to_dict(self):
        return {'date': self.date.isoformat(), 'reach': self.reach, 'ad_count': self.ad_count}

    def __eq__(self, other):
        if not isinstance(other, DailyReachPoint):
            return NotImplemented
        return (self.date, self.reach, self.ad_count) == (other.date, other.reach, other.ad_count)

    def __repr__(self):
        return f'<DailyReachPoint {self.date} reach={self.reach} ads={self.ad_count}>'


def _match_key(normalized_url):
    # Containment already covers whatever a LIKE wildcard would, so the marker is dropped.
    if normalized_url and normalized_url.endswith(LIKE_WILDCARD):
        normalized_url = normalized_url[:-len(LIKE_WILDCARD)]
    return normalized_url or None


class ReachAggregator:
    """
    Computes total reach and daily reach series for normalized URLs.

    The aggregator holds no per-request state; it can be shared by every request
    thread. Store errors never reach the caller: they are logged and the result
    degrades to "no data" (0 or an empty series), which callers cannot tell apart
    from a URL with no matching ads.

    Args:
        store (SnapshotStore): Where snapshots are read from.
        today (callable, optional): Returns the current date. Defaults to date.today.
        logger (logging.Logger, optional): Defaults to this module's logger.
        max_workers (int, optional): Thread pool size for get_reach_for_urls. Defaults to 4.
    """

    def __init__(self, store, today=None, logger=None, max_workers=4):
        self.store = store
        self.today = today or date.today
        self.logger = logger or logging.getLogger(__name__)
        self.max_workers = max(1, int(max_workers))

    def _load_peaks(self, key, purpose):
        try:
            return self.store.fetch_daily_peaks(key)
        except Exception as e:
            self.logger.error(f"Reach store error while computing {purpose} for '{key}': {e}", exc_info=True)
            return None

    def get_total_reach(self, normalized_url):
        """
        Current best-known total reach for a URL.

        For each matching ad, take its peak reading on the most recent day it was
        observed, then sum across ads.

        Returns:
            int: Total reach, 0 if nothing matches or the store fails.
        """
        key = _match_key(normalized_url)
        if key is None:
            return 0
        peaks = self._load_peaks(key, 'total reach')
        if peaks is None:
            return 0
        total_reach = latest_total_reach(peaks)
        self.logger.debug(f"Total reach for '{key}': {total_reach}.")
        return total_reach

    def get_historical_reach(self, normalized_url):
        """
        Gap-free daily reach series for a URL, from the first observed day through today.

        Each ad contributes from its first observed day onwards, carrying its last
        peak reading forward over days without a snapshot. A day's `reach` is the sum
        of those values and `ad_count` the number of ads contributing.

        Returns:
            list[DailyReachPoint]: Sorted ascending by date; empty if nothing matches
                                   or the store fails.
        """
        key = _match_key(normalized_url)
        if key is None:
            return []
        peaks = self._load_peaks(key, 'historical reach')
        if peaks is None:
            return []
        series = build_daily_series(peaks, self.today())
        self.logger.debug(f"Historical reach for '{key}': {len(series)} days.")
        return series

    def get_reach_for_urls(self, urls):
        """
        Normalizes each URL and computes its total reach and daily series in parallel.

        The snapshot query runs once per URL; both figures are derived from it.

        Args:
            urls (list[str]): Raw URLs as submitted by the user.

        Returns:
            list[dict]: One entry per input URL, in input order, with keys 'url',
                        'normalized_url', 'total_reach' and 'data' (list of point dicts).
        """
        if not urls:
            return []
        today = self.today()

        def compute(url):
            normalized = normalize_url(url)
            key = _match_key(normalized)
            peaks = self._load_peaks(key, 'batch reach') if key else None
            peaks = peaks or []
            return {
                'url': url,
                'normalized_url': normalized,
                'total_reach': latest_total_reach(peaks),
                'data': [point.to_dict() for point in build_daily_series(peaks, today)],
            }

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(urls))) as executor:
            return list(executor.map(compute, urls))


def latest_total_reach(peaks):
    """Sum over ads of each ad's peak on its most recent observed day."""
    latest = {} # ad_id -> (day, reach)
    for peak in peaks:
        current = latest.get(peak.ad_id)
        if current is None or peak.day > current[0]:
            latest[peak.ad_id] = (peak.day, peak.reach)
    return sum(reach for _, reach in latest.values())


def build_daily_series(peaks, end_day):
    """
    Forward-fills per-ad daily peaks into a per-day total, in one pass over the days.

    Args:
        peaks (iterable[DailyPeak]): At most one (ad_id, day, reach) per ad per day.
        end_day (date): Last day of the series (inclusive). Observations after it are ignored.

    Returns:
        list[DailyReachPoint]: One point per day from the earliest observation to end_day.
    """
    observed = defaultdict(dict) # day -> {ad_id: reach}
    for peak in peaks:
        if peak.day <= end_day:
            observed[peak.day][peak.ad_id] = peak.reach
    if not observed:
        return []

    last_known = {} # ad_id -> most recent reach on or before the current day
    series = []
    day = min(observed)
    while day <= end_day:
        last_known.update(observed.get(day, {}))
        series.append(DailyReachPoint(day, sum(last_known.values()), len(last_known)))
        day += timedelta(days=1)
    return series
