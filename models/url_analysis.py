import enum
from datetime import datetime
from extensions import db


class AnalysisStatusEnum(enum.Enum):
    """Lifecycle of a URL analysis request."""
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'


class UrlAnalysis(db.Model):
    """
    A URL a user asked to analyze, together with the reach summary shown at the time.

    `results` stores the rollup (total reach, ad count, days, category) and the daily
    chart data so the analysis page can be re-opened without hitting the ads table.
    """
    __tablename__ = 'url_analyses'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    # URL exactly as submitted, and the key used to match ads against it.
    url = db.Column(db.Text, nullable=False)
    normalized_url = db.Column(db.Text, nullable=False, index=True)

    status = db.Column(db.Enum(AnalysisStatusEnum), nullable=False, default=AnalysisStatusEnum.PENDING, index=True)
    results = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship('User', backref=db.backref('analyses', lazy='dynamic'))

    def __repr__(self):
        return f'<UrlAnalysis {self.id} {self.normalized_url} ({self.status.value})>'
