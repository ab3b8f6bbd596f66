"""Retention policies and on-demand cleanup"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ...log_index import LogIndex
from ...retention import RetentionManager
from ..dependencies import get_log_index, get_retention

router = APIRouter(prefix="/api/retention", tags=["retention"])


class PolicyUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: Optional[str] = None
    retention_days: Optional[int] = Field(None, alias="retentionDays")


class PolicyUpdateRequest(BaseModel):
    policies: Optional[List[PolicyUpdate]] = None


@router.get("")
def list_policies(retention: RetentionManager = Depends(get_retention)):
    return {"policies": retention.policies}


@router.post("")
def update_policies(body: PolicyUpdateRequest, retention: RetentionManager = Depends(get_retention)):
    if body.policies:
        retention.update_policies(
            {"service": p.service, "retentionDays": p.retention_days} for p in body.policies
        )
    return {"policies": retention.policies}


@router.get("/stats")
def index_stats(log_index: LogIndex = Depends(get_log_index)):
    return log_index.index_stats()


@router.post("/cleanup")
def cleanup(retention: RetentionManager = Depends(get_retention)):
    return retention.cleanup()
