from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class MonitorStatus(StrEnum):
    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class AnalyticsStats(BaseModel):
    hits: int
    misses: int
    errors: int
    evictions: int
    expirations: int
    hit_rate: float
    total_requests: int


class CacheHealthReport(BaseModel):
    status: HealthStatus
    stats: AnalyticsStats


class PopularKey(BaseModel):
    key: str
    hits: int


class NamespaceMetrics(BaseModel):
    namespace: str
    hit_rate: float = 0.0
    miss_rate: float = 0.0
    total_requests: int = 0
    avg_response_time_ms: float = 0.0
    memory_usage: float = 0.0
    error_rate: float = 0.0
    last_cleared: datetime | None = None
    popular_keys: list[PopularKey] = []


class NamespaceHealth(BaseModel):
    status: MonitorStatus
    score: int
    issues: list[str] = []
    recommendations: list[str] = []
