"""Read access to the raw ad snapshot table.

A store answers one question: for every ad whose link contains a given URL key,
what was its highest reach reading on each calendar day it was observed? All
reach reconstruction happens on top of that in ReachAggregator.
"""
from collections import namedtuple
from datetime import date, datetime

from sqlalchemy import select, func

from models.ad_snapshot import AdSnapshot

# One ad's peak reach on one calendar day.
DailyPeak = namedtuple('DailyPeak', ['ad_id', 'day', 'reach'])


def _as_date(value):
    # date() returns a DATE on PostgreSQL and an ISO string on SQLite.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class SnapshotStore:
    """Interface for snapshot sources used by ReachAggregator."""

    def fetch_daily_peaks(self, link_fragment):
        """
        Returns the per-ad, per-day maximum reach for ads whose link contains `link_fragment`.

        Snapshots without a timestamp or without a reach value are skipped.

        Args:
            link_fragment (str): Substring that must appear in the ad's recorded link URL.

        Returns:
            list[DailyPeak]: Unordered (ad_id, day, reach) triples, one per ad per observed day.
        """
        raise NotImplementedError

    def ping(self):
        """Raises if the store cannot be reached."""
        raise NotImplementedError


class SqlSnapshotStore(SnapshotStore):
    """
    Snapshot store backed by the `ads` table through a SQLAlchemy engine.

    Filtering and the per-ad-per-day MAX run in the database; each call checks out
    its own pooled connection, so one instance can be shared across threads.
    """

    def __init__(self, engine):
        self.engine = engine

    def fetch_daily_peaks(self, link_fragment):
        day = func.date(AdSnapshot.created_at)
        query = (
            select(
                AdSnapshot.ad_id,
                day.label('day'),
                func.max(AdSnapshot.eu_total_reach).label('reach'),
            )
            .where(
                # autoescape: '%' and '_' in the key are matched literally.
                AdSnapshot.snapshot_link_url.contains(link_fragment, autoescape=True),
                AdSnapshot.created_at.isnot(None),
                AdSnapshot.eu_total_reach.isnot(None),
            )
            .group_by(AdSnapshot.ad_id, day)
        )
        with self.engine.connect() as connection:
            rows = connection.execute(query).all()
        return [DailyPeak(row.ad_id, _as_date(row.day), int(row.reach)) for row in rows]

    def ping(self):
        with self.engine.connect() as connection:
            connection.execute(select(1))


class InMemorySnapshotStore(SnapshotStore):
    """
    Snapshot store over a list of rows held in memory.

    Rows are dicts with the AdSnapshot column names (ad_id, created_at,
    eu_total_reach, snapshot_link_url). Matching is a case-sensitive substring test,
    like LIKE on PostgreSQL.
    """

    def __init__(self, rows=None):
        self.rows = list(rows or [])

    def add(self, ad_id, created_at, eu_total_reach, snapshot_link_url):
        self.rows.append({
            'ad_id': ad_id,
            'created_at': created_at,
            'eu_total_reach': eu_total_reach,
            'snapshot_link_url': snapshot_link_url,
        })

    def fetch_daily_peaks(self, link_fragment):
        peaks = {}
        for row in self.rows:
            link = row.get('snapshot_link_url') or ''
            if row.get('created_at') is None or row.get('eu_total_reach') is None:
                continue
            if link_fragment not in link:
                continue
            key = (row['ad_id'], _as_date(row['created_at']))
            reach = int(row['eu_total_reach'])
            if key not in peaks or reach > peaks[key]:
                peaks[key] = reach
        return [DailyPeak(ad_id, day, reach) for (ad_id, day), reach in peaks.items()]

    def ping(self):
        return None
