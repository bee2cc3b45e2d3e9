from tunebuzz import db
import json
import time


class Document(db.Model):
    """One keyed record of a collection (``games``, ``pendingGames``, ``catalog``).

    The body is stored JSON-encoded; ``version`` is bumped on every write so
    callers can make conditional writes.
    """
    __tablename__ = 'document'
    collection = db.Column(db.String(64), primary_key=True)
    id = db.Column(db.String(64), primary_key=True)
    body = db.Column(db.Text, nullable=False)  # JSON-encoded record
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.Float, nullable=False, default=time.time, onupdate=time.time)

    @property
    def data(self):
        return json.loads(self.body) if self.body else {}
