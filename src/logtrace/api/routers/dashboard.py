"""Dashboard aggregations over the last hour"""

from fastapi import APIRouter, Depends

from ...log_index import LogIndex
from ...queries import (
    dashboard_stats_requests,
    shape_dashboard_stats,
    shape_service_volume,
    shape_volume,
    service_volume_request,
    volume_request,
)
from ..dependencies import get_log_index

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
def dashboard_stats(log_index: LogIndex = Depends(get_log_index)):
    es = log_index.es
    index = log_index.index_name
    requests = dashboard_stats_requests()

    today = es.count(index=index, **requests["today"])
    levels = es.search(index=index, **requests["levels"])
    services = es.search(index=index, **requests["services"])
    duration = es.search(index=index, **requests["duration"])

    return shape_dashboard_stats(today, levels, services, duration)


@router.get("/volume")
def dashboard_volume(log_index: LogIndex = Depends(get_log_index)):
    result = log_index.es.search(index=log_index.index_name, **volume_request())
    return shape_volume(result)


@router.get("/services")
def dashboard_services(log_index: LogIndex = Depends(get_log_index)):
    result = log_index.es.search(index=log_index.index_name, **service_volume_request())
    return shape_service_volume(result)
