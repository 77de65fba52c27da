"""
Active-flag Mixin - soft delete for catalog and lifecycle tables.

Rows are never physically removed. Deactivated rows keep their history
(incidents keep their work orders, roles keep their permission links)
but drop out of every query that goes through ``query_active()``.

Usage:
    class WorkOrder(ActiveMixin, db.Model):
        ...

    wo.deactivate()
    db.session.commit()

    WorkOrder.query_active().filter_by(incident_id=7).all()
"""

from vic_tracker.models import db


class ActiveMixin:
    """Mixin that adds an ``active`` flag to any SQLAlchemy model."""

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def deactivate(self):
        """Mark this record as deleted."""
        self.active = False

    @classmethod
    def query_active(cls):
        """Return a query that excludes deactivated records."""
        return cls.query.filter(cls.active.is_(True))
