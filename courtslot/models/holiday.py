from courtslot.models.db import db
from courtslot.utils import clock


class Holiday(db.Model):
    __tablename__ = "holidays"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: clock.now(), nullable=False)

    @classmethod
    def is_holiday(cls, day) -> bool:
        return cls.query.filter_by(date=day).first() is not None
