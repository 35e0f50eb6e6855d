"""枚举定义：约束文件类型、订阅状态与配额资源的可选值。"""

from enum import Enum


class FileKindEnum(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class SubscriptionStatusEnum(str, Enum):
    """订阅状态，仅 ACTIVE 与 TRIALING 视为有效订阅。"""

    ACTIVE = "ACTIVE"
    TRIALING = "TRIALING"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"
    INACTIVE = "INACTIVE"


class QuotaResourceEnum(str, Enum):
    """配额检查涉及的资源类型。"""

    STORAGE = "storage"
    AI_REQUESTS = "ai_requests"
    WORKSPACES = "workspaces"
    PANELS = "panels"


class OnErrorEnum(str, Enum):
    """配额检查在查询失败时的处理策略：放行或拒绝。"""

    ADMIT = "admit"
    REJECT = "reject"


class SaveOutcomeEnum(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
