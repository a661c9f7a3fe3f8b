"""
Query Module

Filtered reads and aggregations over stored activities.

A `QueryFilter` is turned into one list of SQL conditions which is shared by
the row query and every aggregate query, so all views of a report agree.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Integer, func, literal_column, select
from sqlalchemy.exc import SQLAlchemyError

from activity_tracker import config
from activity_tracker.database import get_sync_session
from activity_tracker.errors import InvalidFilterError, QueryError
from activity_tracker.models import Activity

logger = logging.getLogger(__name__)

MILLIS_PER_HOUR = 3_600_000

GRANULARITIES = ("hour", "day", "week", "month")
DEFAULT_GRANULARITY = "day"

DISTINCT_FIELDS = {
    "project": Activity.project,
    "language": Activity.language,
    "computerId": Activity.computer_id,
    "computer_id": Activity.computer_id,
}


def to_millis(moment: datetime) -> int:
    """Milliseconds since epoch; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _as_tuple(values: Optional[Iterable[str]]) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(values)


@dataclass(frozen=True)
class QueryFilter:
    """Constraints for a report. Empty fields mean no constraint."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    projects: Tuple[str, ...] = ()
    languages: Tuple[str, ...] = ()
    computers: Tuple[str, ...] = ()
    files: Tuple[str, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None

    def __post_init__(self):
        for name in ("projects", "languages", "computers", "files"):
            object.__setattr__(self, name, _as_tuple(getattr(self, name)))
        if self.limit is not None and self.limit < 0:
            raise InvalidFilterError(f"limit must not be negative, got {self.limit}")
        if self.offset is not None and self.offset < 0:
            raise InvalidFilterError(f"offset must not be negative, got {self.offset}")
        if self.start and self.end and to_millis(self.start) > to_millis(self.end):
            raise InvalidFilterError("startDate must not be after endDate")

    @property
    def has_range(self) -> bool:
        return self.start is not None or self.end is not None

    def with_default_range(self, now: datetime, days: int) -> "QueryFilter":
        """Trailing `days` ending at `now` when neither bound is set."""
        if self.has_range:
            return self
        return replace(self, start=now - timedelta(days=days), end=now)

    def conditions(self) -> list:
        conditions = []
        if self.start is not None:
            conditions.append(Activity.timestamp >= to_millis(self.start))
        if self.end is not None:
            conditions.append(Activity.timestamp <= to_millis(self.end))
        if self.projects:
            conditions.append(Activity.project.in_(self.projects))
        if self.languages:
            conditions.append(Activity.language.in_(self.languages))
        if self.computers:
            conditions.append(Activity.computer_id.in_(self.computers))
        if self.files:
            conditions.append(Activity.file.in_(self.files))
        return conditions


def period_label(moment: datetime, granularity: str) -> str:
    if granularity == "hour":
        return moment.strftime("%Y-%m-%d %H:00:00")
    if granularity == "week":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week:02d}"
    if granularity == "month":
        return moment.strftime("%Y-%m")
    return moment.strftime("%Y-%m-%d")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActivityQueryEngine:
    """Read side of the primary store."""

    def __init__(
        self,
        engine,
        default_days: int = config.DEFAULT_REPORT_DAYS,
        top_limit: int = config.TOP_GROUP_LIMIT,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.engine = engine
        self.default_days = default_days
        self.top_limit = top_limit
        self._clock = clock

    def resolve(self, query_filter: Optional[QueryFilter] = None) -> QueryFilter:
        """Apply the default date range to a filter."""
        query_filter = query_filter or QueryFilter()
        return query_filter.with_default_range(self._clock(), self.default_days)

    @contextmanager
    def _reading(self, what: str):
        try:
            with get_sync_session(self.engine) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Error reading {what}: {str(e)}")
            raise QueryError(f"Failed to read {what}: {e}") from e

    def query(self, query_filter: Optional[QueryFilter] = None) -> List[Dict[str, Any]]:
        """Activities matching the filter, newest first."""
        query_filter = self.resolve(query_filter)
        stmt = (
            select(Activity)
            .where(*query_filter.conditions())
            .order_by(Activity.timestamp.desc(), Activity.id.desc())
        )
        if query_filter.limit:
            stmt = stmt.limit(query_filter.limit)
        if query_filter.offset:
            stmt = stmt.offset(query_filter.offset)

        with self._reading("activities") as session:
            return [activity.to_dict() for activity in session.scalars(stmt)]

    def statistics(self, query_filter: Optional[QueryFilter] = None) -> Dict[str, Any]:
        """Total duration, count and top languages/projects by duration."""
        query_filter = self.resolve(query_filter)
        conditions = query_filter.conditions()

        totals = select(
            func.coalesce(func.sum(Activity.duration), 0),
            func.count(Activity.id),
        ).where(*conditions)

        with self._reading("statistics") as session:
            total_duration, count = session.execute(totals).one()
            top_languages = self._top(session, Activity.language, conditions)
            top_projects = self._top(session, Activity.project, conditions)

        return {
            "totalDuration": int(total_duration),
            "count": int(count),
            "topLanguages": [
                {"language": value, "duration": duration, "count": n}
                for value, duration, n in top_languages
            ],
            "topProjects": [
                {"project": value, "duration": duration, "count": n}
                for value, duration, n in top_projects
            ],
        }

    def _top(self, session, column, conditions) -> List[Tuple[str, int, int]]:
        total = func.sum(Activity.duration)
        stmt = (
            select(column, total, func.count(Activity.id))
            .where(*conditions, column.is_not(None), column != "")
            .group_by(column)
            .order_by(total.desc(), func.min(Activity.id).asc())
            .limit(self.top_limit)
        )
        return [(value, int(duration), int(n)) for value, duration, n in session.execute(stmt)]

    def grouped_by_period(
        self,
        query_filter: Optional[QueryFilter] = None,
        granularity: str = DEFAULT_GRANULARITY,
    ) -> List[Dict[str, Any]]:
        """
        Duration and count per time period, oldest period first.

        Rows are grouped by hour in SQL and rolled up to the requested
        granularity (UTC) here, which keeps the SQL portable across dialects.
        """
        if granularity not in GRANULARITIES:
            logger.debug(f"Unknown granularity '{granularity}', grouping by day")
            granularity = DEFAULT_GRANULARITY

        query_filter = self.resolve(query_filter)
        # Literal divisor so SELECT and GROUP BY render the same expression
        hour = literal_column(str(MILLIS_PER_HOUR), Integer)
        bucket = (Activity.timestamp // hour).label("bucket")
        stmt = (
            select(bucket, func.sum(Activity.duration), func.count(Activity.id))
            .where(*query_filter.conditions())
            .group_by(bucket)
            .order_by(bucket)
        )

        with self._reading("timeline") as session:
            rows = session.execute(stmt).all()

        periods: Dict[str, Dict[str, Any]] = {}
        for hour_index, duration, count in rows:
            moment = datetime.fromtimestamp(int(hour_index) * 3600, tz=timezone.utc)
            label = period_label(moment, granularity)
            period = periods.setdefault(label, {"period": label, "duration": 0, "count": 0})
            period["duration"] += int(duration)
            period["count"] += int(count)
        return [periods[label] for label in sorted(periods)]

    def distinct_values(self, field: str) -> List[str]:
        """Sorted distinct non-empty values of project, language or computerId."""
        column = DISTINCT_FIELDS.get(field)
        if column is None:
            raise InvalidFilterError(f"Cannot list values of field '{field}'")
        stmt = (
            select(column)
            .where(column.is_not(None), column != "")
            .distinct()
            .order_by(column)
        )
        with self._reading(f"{field} values") as session:
            return list(session.scalars(stmt))
