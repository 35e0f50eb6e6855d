"""订阅计划与配额上限的静态定义。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from app.packages.drive.core.constants import (
    BYTES_PER_GB,
    PLAN_FREE,
    PLAN_PREMIUM,
    PLAN_TEAM,
    UNLIMITED,
)


@dataclass(frozen=True)
class PlanLimits:
    """单个计划的配额上限，``-1`` 表示不限。"""

    name: str
    storage_gb: int
    ai_requests_per_day: int
    workspaces: int
    advanced_features: bool = False
    team_features: bool = False
    priority_support: bool = False

    @property
    def storage_bytes(self) -> int:
        if self.storage_gb == UNLIMITED:
            return UNLIMITED
        return self.storage_gb * BYTES_PER_GB


PLAN_LIMITS: Mapping[str, PlanLimits] = {
    PLAN_FREE: PlanLimits(
        name=PLAN_FREE,
        storage_gb=5,
        ai_requests_per_day=50,
        workspaces=1,
    ),
    PLAN_PREMIUM: PlanLimits(
        name=PLAN_PREMIUM,
        storage_gb=50,
        ai_requests_per_day=500,
        workspaces=UNLIMITED,
        advanced_features=True,
        priority_support=True,
    ),
    PLAN_TEAM: PlanLimits(
        name=PLAN_TEAM,
        storage_gb=100,
        ai_requests_per_day=2000,
        workspaces=UNLIMITED,
        advanced_features=True,
        team_features=True,
        priority_support=True,
    ),
}


def normalize_plan(plan: Optional[str]) -> str:
    """大小写不敏感地解析计划名，未知或为空时视为 FREE。"""
    key = (plan or "").strip().upper()
    return key if key in PLAN_LIMITS else PLAN_FREE


def get_plan_limits(plan: Optional[str], table: Optional[Mapping[str, PlanLimits]] = None) -> PlanLimits:
    limits = table if table is not None else PLAN_LIMITS
    key = (plan or "").strip().upper()
    return limits.get(key) or limits[PLAN_FREE]


def is_feature_available(plan: Optional[str], feature: str) -> bool:
    """判断计划是否具备某项功能；未列出的功能对所有计划开放。"""
    limits = get_plan_limits(plan)
    features = {
        "aiAdvanced": limits.advanced_features,
        "multiFileAnalysis": limits.advanced_features,
        "teamCollaboration": limits.team_features,
        "prioritySupport": limits.priority_support,
        "api": limits.name != PLAN_FREE,
    }
    return features.get(feature, True)


def has_multi_file_analysis(plan: Optional[str]) -> bool:
    return is_feature_available(plan, "multiFileAnalysis")
