"""常量定义：集中维护状态码、计划名称与配额相关的固定值。"""

HTTP_STATUS_OK = 200
HTTP_STATUS_CREATED = 201
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_CONFLICT = 409
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_INTERNAL_SERVER_ERROR = 500
HTTP_STATUS_BAD_GATEWAY = 502
HTTP_STATUS_INSUFFICIENT_STORAGE = 507

ACCESS_TOKEN_TYPE = "bearer"

# 计划相关
PLAN_FREE = "FREE"
PLAN_PREMIUM = "PREMIUM"
PLAN_TEAM = "TEAM"
UNLIMITED = -1
FREE_PANEL_LIMIT = 3

BYTES_PER_GB = 1024 * 1024 * 1024

# 对象存储
DEFAULT_CONTENT_TYPE = "application/octet-stream"
OBJECT_KEY_PREFIX = "users"

# 配额错误的机器可读标识，前端据此触发升级流程
UPGRADE_REQUIRED = "UPGRADE_REQUIRED"
