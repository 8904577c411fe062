from sqlalchemy import func
from sqlalchemy.orm import sessionmaker

from app.database import session_scope
from app.models import UsageRecordRow
from app.vision.types import UsageRecord

_COLUMNS = (
    "document_type", "model", "input_tokens", "output_tokens", "tokens", "cost",
    "processing_time_ms", "success", "attempt", "error_code", "created_at",
)


class SqlUsageStore:
    """Append-only usage log in the ``usage_records`` table.

    Rows beyond the retention cap are evicted oldest-first on insert, so the
    table stays bounded and can be shared by several app instances.
    Counters only cover the retained rows.
    """

    def __init__(self, session_factory: sessionmaker, retention: int = 1000):
        self._session_factory = session_factory
        self._retention = retention

    def record(self, entry: UsageRecord) -> None:
        with session_scope(self._session_factory) as db:
            db.add(UsageRecordRow(**{name: getattr(entry, name) for name in _COLUMNS}))
            db.flush()
            total = db.query(func.count(UsageRecordRow.id)).scalar() or 0
            overflow = total - self._retention
            if overflow > 0:
                oldest = [
                    row.id
                    for row in db.query(UsageRecordRow.id).order_by(UsageRecordRow.id.asc()).limit(overflow)
                ]
                db.query(UsageRecordRow).filter(UsageRecordRow.id.in_(oldest)).delete(
                    synchronize_session=False
                )

    def records(self) -> list[UsageRecord]:
        with session_scope(self._session_factory) as db:
            rows = db.query(UsageRecordRow).order_by(UsageRecordRow.id.asc()).all()
            return [UsageRecord(**{name: getattr(row, name) for name in _COLUMNS}) for row in rows]

    def counters(self) -> dict[str, float]:
        with session_scope(self._session_factory) as db:
            requests = db.query(func.count(UsageRecordRow.id)).scalar() or 0
            successes = (
                db.query(func.count(UsageRecordRow.id))
                .filter(UsageRecordRow.success.is_(True))
                .scalar()
                or 0
            )
            tokens, cost = db.query(
                func.coalesce(func.sum(UsageRecordRow.tokens), 0),
                func.coalesce(func.sum(UsageRecordRow.cost), 0.0),
            ).one()
        return {
            "requests": requests,
            "successes": successes,
            "failures": requests - successes,
            "tokens": tokens,
            "cost": float(cost),
        }
