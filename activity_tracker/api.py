"""
API Module

Report endpoints over the primary store, plus the write endpoint feeding the
storage adapter.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from activity_tracker.errors import (
    InvalidFilterError,
    QueryError,
    StoreUnavailableError,
    ValidationError,
)
from activity_tracker.query import QueryFilter
from activity_tracker.storage import StorageAdapter

logger = logging.getLogger(__name__)
router = APIRouter()


class ActivityIn(BaseModel):
    """Activity as posted by a producer; camelCase or snake_case keys."""

    model_config = ConfigDict(populate_by_name=True)

    kind: Union[str, int] = "open"
    timestamp: int
    duration: int
    language: str = ""
    file: str = ""
    project: str = ""
    computer_id: str = Field("", alias="computerId")
    vcs_type: str = Field("", alias="vcsType")
    vcs_repo: str = Field("", alias="vcsRepo")
    vcs_branch: str = Field("", alias="vcsBranch")
    line: int = 0
    char: int = 0


def get_storage(request: Request) -> StorageAdapter:
    return request.app.state.storage


def failure(error, status_code: int = 500) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"success": False, "error": str(error)}
    )


def query_failure(error: QueryError) -> JSONResponse:
    if isinstance(error, InvalidFilterError):
        return failure(error, 400)
    if isinstance(error, StoreUnavailableError):
        return failure(error, 503)
    return failure(error, 500)


def _list_param(request: Request, name: str) -> List[str]:
    # Accept both ?projects=a&projects=b and ?projects[]=a
    params = request.query_params
    return [v for v in params.getlist(name) + params.getlist(f"{name}[]") if v]


def _parse_date(value: Optional[str], name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidFilterError(f"{name} is not an ISO-8601 date: {value}")
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def build_filter(
    request: Request,
    start_date: Optional[str],
    end_date: Optional[str],
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> QueryFilter:
    """Build a QueryFilter from report query parameters."""
    return QueryFilter(
        start=_parse_date(start_date, "startDate"),
        end=_parse_date(end_date, "endDate"),
        projects=_list_param(request, "projects"),
        languages=_list_param(request, "languages"),
        computers=_list_param(request, "computers"),
        files=_list_param(request, "files"),
        limit=limit,
        offset=offset,
    )


@router.get("/report")
def get_report(
    request: Request,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    storage: StorageAdapter = Depends(get_storage),
):
    """
    Activities matching the filters (newest first) with their statistics.
    """
    try:
        query_filter = build_filter(request, start_date, end_date, limit, offset)
        engine = storage.query_engine
        query_filter = engine.resolve(query_filter)
        activities = engine.query(query_filter)
        statistics = engine.statistics(query_filter)
    except QueryError as e:
        logger.error(f"Error building report: {str(e)}")
        return query_failure(e)
    except Exception as e:
        logger.error(f"Error building report: {str(e)}")
        return failure("Internal server error")

    return {
        "success": True,
        "data": activities,
        "statistics": statistics,
        "meta": {
            "total": len(activities),
            "startDate": query_filter.start.isoformat() if query_filter.start else None,
            "endDate": query_filter.end.isoformat() if query_filter.end else None,
            "filters": {
                "projects": list(query_filter.projects),
                "languages": list(query_filter.languages),
                "computers": list(query_filter.computers),
                "files": list(query_filter.files),
            },
        },
    }


@router.get("/statistics")
def get_statistics(
    request: Request,
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    group_by: str = Query("day", alias="groupBy", description="hour, day, week or month"),
    storage: StorageAdapter = Depends(get_storage),
):
    """
    Aggregated statistics and a timeline grouped by `groupBy`.
    """
    try:
        query_filter = build_filter(request, start_date, end_date)
        engine = storage.query_engine
        query_filter = engine.resolve(query_filter)
        statistics = engine.statistics(query_filter)
        timeline = engine.grouped_by_period(query_filter, group_by)
    except QueryError as e:
        logger.error(f"Error computing statistics: {str(e)}")
        return query_failure(e)
    except Exception as e:
        logger.error(f"Error computing statistics: {str(e)}")
        return failure("Internal server error")

    return {"success": True, "statistics": statistics, "timeline": timeline}


@router.get("/filters")
def get_filters(storage: StorageAdapter = Depends(get_storage)):
    """
    Distinct projects, languages and computers available for filtering.
    """
    try:
        engine = storage.query_engine
        filters = {
            "projects": engine.distinct_values("project"),
            "languages": engine.distinct_values("language"),
            "computers": engine.distinct_values("computerId"),
        }
    except QueryError as e:
        logger.error(f"Error listing filters: {str(e)}")
        return query_failure(e)
    except Exception as e:
        logger.error(f"Error listing filters: {str(e)}")
        return failure("Internal server error")

    return {"success": True, "filters": filters}


@router.post("/activities", status_code=202)
def post_activity(body: ActivityIn, storage: StorageAdapter = Depends(get_storage)):
    """
    Queue one activity for storage. Returns before the write is committed.
    """
    try:
        future = storage.write(body.model_dump())
    except ValidationError as e:
        return failure(e, 400)
    if future is None:
        return failure("Storage was not initialized", 503)
    return {"success": True, "queued": True}


@router.get("/status")
def get_status(storage: StorageAdapter = Depends(get_storage)):
    """
    Active backend and write backlog.
    """
    return {
        "success": True,
        "backend": storage.backend_name,
        "queueDepth": storage.queue_depth,
        "stats": storage.queue_stats(),
    }
