import uuid
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from pickem import db
from pickem.utils.timezone_utils import get_utc_time, to_db_datetime


class ReconciliationLease(db.Model):
    """
    Single-row "run in progress" marker.

    A lease is held until it is released or until ``expires_at`` passes, so a
    crashed run never blocks the next one for longer than the lease duration.
    """

    __tablename__ = "reconciliation_leases"

    name = db.Column(db.String(50), primary_key=True)
    holder = db.Column(db.String(64), nullable=False)
    acquired_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f"<ReconciliationLease {self.name} holder={self.holder} expires_at={self.expires_at}>"

    @staticmethod
    def new_holder_id():
        return uuid.uuid4().hex

    @staticmethod
    def acquire(name, holder, duration_seconds, now=None):
        """
        Try to take the lease.

        Returns True when ``holder`` now owns the lease. The takeover of an
        expired lease is a conditional UPDATE so two callers can never both
        succeed.
        """
        now = to_db_datetime(now or get_utc_time())
        expires_at = now + timedelta(seconds=duration_seconds)

        taken = ReconciliationLease.query.filter(
            ReconciliationLease.name == name,
            db.or_(
                ReconciliationLease.expires_at <= now,
                ReconciliationLease.holder == holder,
            ),
        ).update(
            {"holder": holder, "acquired_at": now, "expires_at": expires_at},
            synchronize_session=False,
        )
        if taken:
            db.session.commit()
            return True

        if db.session.get(ReconciliationLease, name) is not None:
            db.session.rollback()
            return False

        db.session.add(
            ReconciliationLease(
                name=name, holder=holder, acquired_at=now, expires_at=expires_at
            )
        )
        try:
            db.session.commit()
        except IntegrityError:
            # Another run inserted the row first
            db.session.rollback()
            return False
        return True

    @staticmethod
    def release(name, holder):
        """Drop the lease if ``holder`` still owns it"""
        released = ReconciliationLease.query.filter_by(name=name, holder=holder).delete(
            synchronize_session=False
        )
        db.session.commit()
        return bool(released)

    @staticmethod
    def force_release(name):
        """Drop the lease regardless of holder (operator use)"""
        released = ReconciliationLease.query.filter_by(name=name).delete(
            synchronize_session=False
        )
        db.session.commit()
        return bool(released)
