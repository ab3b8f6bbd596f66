"""Log ingest and search"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ...log_index import LogIndex
from ...queries import log_search_request, shape_log_hits
from ...simulator import isoformat_ms
from ..dependencies import get_log_index

router = APIRouter(prefix="/api/logs", tags=["logs"])


class LogEntryRequest(BaseModel):
    """Single log event to ingest. Every field is optional."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: Optional[str] = Field(None, description="Event time (ISO format)")
    level: Optional[str] = Field(None, description="info, warn, error or debug")
    service: Optional[str] = Field(None, description="Emitting service")
    message: Optional[str] = Field(None, description="Log message")
    trace_id: Optional[str] = Field(None, alias="traceId", description="Trace identifier")
    duration: Optional[int] = Field(None, ge=0, description="Duration in ms")
    archived: Optional[bool] = Field(None, description="Archived flag")


@router.post("", status_code=201)
def ingest_log(entry: LogEntryRequest, log_index: LogIndex = Depends(get_log_index)):
    doc = {
        "timestamp": entry.timestamp or isoformat_ms(datetime.now(timezone.utc)),
        "level": entry.level or "info",
        "service": entry.service or "unknown",
        "message": entry.message or "",
        "traceId": entry.trace_id or str(uuid.uuid4()),
        "duration": entry.duration if entry.duration is not None else 0,
        "archived": entry.archived if entry.archived is not None else False,
    }
    log_index.index_document(doc)
    return doc


@router.get("")
def search_logs(
    from_: int = Query(0, alias="from", ge=0),
    size: int = Query(50, ge=0, le=10000),
    level: Optional[str] = None,
    service: Optional[str] = None,
    q: Optional[str] = None,
    time_range: Optional[str] = Query(None, alias="timeRange"),
    log_index: LogIndex = Depends(get_log_index),
):
    request = log_search_request(
        from_=from_, size=size, level=level, service=service, q=q, time_range=time_range
    )
    result = log_index.es.search(index=log_index.index_name, **request)
    return shape_log_hits(result)
