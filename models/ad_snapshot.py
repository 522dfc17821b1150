from extensions import db


class AdSnapshot(db.Model):
    """
    One observation of a Facebook ad's EU reach at a point in time.

    Rows are written by the upstream ads ingestion job; this application only reads them.
    An ad appears many times over its lifetime (often several times a day, with gaps
    between days), so neither "one row per ad" nor "one row per ad per day" holds.
    """
    __tablename__ = 'ads'

    id = db.Column(db.Integer, primary_key=True) # Surrogate row key.
    # Platform ad id. Shared by every snapshot of the same ad.
    ad_id = db.Column(db.String(64), nullable=False, index=True)
    # When the snapshot was taken. Rows without a timestamp are ignored by reach queries.
    created_at = db.Column(db.DateTime, nullable=True, index=True)
    # Reach reported by the platform for the EU at snapshot time. Usually non-decreasing per ad.
    eu_total_reach = db.Column(db.BigInteger, nullable=True)
    # Destination URL as recorded on the ad (free text, not normalized).
    snapshot_link_url = db.Column(db.Text, nullable=True, index=True)

    def __repr__(self):
        return f'<AdSnapshot {self.ad_id} @ {self.created_at} reach={self.eu_total_reach}>'
