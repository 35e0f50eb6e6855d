"""用量与配额相关的请求/响应模型。"""

from typing import Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class StorageUsageData(BaseModel):
    usage: int
    usageInGB: float
    limit: int
    limitInGB: int
    percentage: Optional[float] = None
    plan: str


class QuotaItem(BaseModel):
    current: int
    limit: int
    allowed: bool
    remaining: Optional[int] = None


class PlanFeatures(BaseModel):
    advancedFeatures: bool
    teamFeatures: bool
    prioritySupport: bool


class UsageOverviewData(BaseModel):
    plan: str
    storage: QuotaItem
    aiRequests: QuotaItem
    workspaces: QuotaItem
    panels: QuotaItem
    features: PlanFeatures


class AIRequestCheckData(BaseModel):
    success: bool
    message: str
    currentCount: Optional[int] = None
    limit: Optional[int] = None
    error: Optional[str] = None


class AIRequestLogBody(BaseModel):
    type: Optional[str] = None
    tokenCount: int = Field(0, ge=0)
    successful: bool = True


class AIRequestLogData(BaseModel):
    logId: int


class WorkspaceCreateBody(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class WorkspaceItem(BaseModel):
    id: str
    name: str


class PanelOpenBody(BaseModel):
    panelId: str = Field(..., min_length=1, max_length=128)
    currentPanelCount: Optional[int] = Field(None, ge=0)


class PanelListData(BaseModel):
    panels: list[str]
    count: int


StorageUsageResponse = ResponseEnvelope[StorageUsageData]
UsageOverviewResponse = ResponseEnvelope[UsageOverviewData]
AIRequestCheckResponse = ResponseEnvelope[AIRequestCheckData]
AIRequestLogResponse = ResponseEnvelope[AIRequestLogData]
WorkspaceResponse = ResponseEnvelope[WorkspaceItem]
WorkspaceListResponse = ResponseEnvelope[list[WorkspaceItem]]
PanelListResponse = ResponseEnvelope[PanelListData]
