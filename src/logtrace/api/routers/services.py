"""Per-service health overview"""

from fastapi import APIRouter, Depends

from ...log_index import LogIndex
from ...queries import services_overview_request, shape_services_overview
from ..dependencies import get_log_index

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("")
def services_overview(log_index: LogIndex = Depends(get_log_index)):
    result = log_index.es.search(index=log_index.index_name, **services_overview_request())
    return shape_services_overview(result)
