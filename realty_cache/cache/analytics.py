"""Cache metrics sinks and health scoring.

Counters live on instances that the composer of a cache owns and injects,
so separate caches (and tests) never share state.
"""

import logging
from typing import Protocol

from realty_cache.models.health import (
    AnalyticsStats,
    CacheHealthReport,
    HealthStatus,
    MonitorStatus,
    NamespaceHealth,
    NamespaceMetrics,
)

logger = logging.getLogger(__name__)


class MetricsRecorder(Protocol):
    """Event sink a :class:`MemoryCache` reports to."""

    def record_hit(self) -> None: ...

    def record_miss(self) -> None: ...

    def record_eviction(self) -> None: ...

    def record_expiration(self) -> None: ...

    def record_error(self) -> None: ...


class CacheAnalytics:
    """Counts cache events. Implements :class:`MetricsRecorder`."""

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.errors = 0
        self.evictions = 0
        self.expirations = 0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_eviction(self) -> None:
        self.evictions += 1

    def record_expiration(self) -> None:
        self.expirations += 1

    def record_error(self) -> None:
        self.errors += 1

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage (0-100)."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100

    def get_stats(self) -> AnalyticsStats:
        return AnalyticsStats(
            hits=self.hits,
            misses=self.misses,
            errors=self.errors,
            evictions=self.evictions,
            expirations=self.expirations,
            hit_rate=self.hit_rate,
            total_requests=self.hits + self.misses + self.errors,
        )

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.errors = 0
        self.evictions = 0
        self.expirations = 0


def get_cache_health(analytics: CacheAnalytics) -> CacheHealthReport:
    """Classify overall cache health from the analytics counters."""
    stats = analytics.get_stats()

    status = HealthStatus.HEALTHY
    if stats.hit_rate < 50:
        status = HealthStatus.UNHEALTHY
    elif stats.hit_rate < 75:
        status = HealthStatus.DEGRADED

    if stats.errors > stats.hits:
        status = HealthStatus.UNHEALTHY

    return CacheHealthReport(status=status, stats=stats)


# ── Per-namespace health ──────────────────────────────────────────────────────


def _status_for_score(score: float) -> MonitorStatus:
    if score < 50:
        return MonitorStatus.CRITICAL
    if score < 80:
        return MonitorStatus.WARNING
    return MonitorStatus.HEALTHY


def check_namespace_metrics(metrics: NamespaceMetrics) -> NamespaceHealth:
    """Score a namespace out of 100 based on hit rate, errors, memory and latency."""
    issues: list[str] = []
    recommendations: list[str] = []
    score = 100

    if metrics.hit_rate < 0.5:
        issues.append(f"Low hit rate: {metrics.hit_rate * 100:.1f}%")
        recommendations.append("Consider increasing cache TTL or warming cache")
        score -= 30
    elif metrics.hit_rate < 0.7:
        issues.append(f"Moderate hit rate: {metrics.hit_rate * 100:.1f}%")
        recommendations.append("Optimize cache keys and TTL settings")
        score -= 15

    if metrics.error_rate > 0.1:
        issues.append(f"High error rate: {metrics.error_rate * 100:.1f}%")
        recommendations.append("Investigate cache errors and fallback mechanisms")
        score -= 25
    elif metrics.error_rate > 0.05:
        issues.append(f"Moderate error rate: {metrics.error_rate * 100:.1f}%")
        recommendations.append("Monitor cache errors closely")
        score -= 10

    if metrics.memory_usage > 0.9:
        issues.append(f"High memory usage: {metrics.memory_usage * 100:.1f}%")
        recommendations.append("Consider reducing memory TTL or increasing memory limits")
        score -= 20

    if metrics.avg_response_time_ms > 1000:
        issues.append(f"Slow response time: {metrics.avg_response_time_ms:.0f}ms")
        recommendations.append("Optimize cache storage or reduce data size")
        score -= 15

    return NamespaceHealth(
        status=_status_for_score(score),
        score=score,
        issues=issues,
        recommendations=recommendations,
    )


class CacheHealthMonitor:
    """Collects :class:`NamespaceMetrics` and scores them.

    Owned by whoever composes the caches; there is no global instance.
    """

    def __init__(self) -> None:
        self._metrics: dict[str, NamespaceMetrics] = {}
        self.health_checks = [check_namespace_metrics]

    def update_metrics(self, namespace: str, **fields: object) -> NamespaceMetrics:
        existing = self._metrics.get(namespace) or NamespaceMetrics(namespace=namespace)
        updated = NamespaceMetrics.model_validate({**existing.model_dump(), **fields})
        self._metrics[namespace] = updated
        return updated

    def get_metrics(self, namespace: str) -> NamespaceMetrics | None:
        return self._metrics.get(namespace)

    def all_metrics(self) -> list[NamespaceMetrics]:
        return list(self._metrics.values())

    def get_health(self, namespace: str) -> NamespaceHealth:
        metrics = self._metrics.get(namespace)
        if metrics is None:
            return NamespaceHealth(
                status=MonitorStatus.WARNING,
                score=0,
                issues=["No metrics available"],
                recommendations=["Initialize cache monitoring"],
            )
        return self._aggregate(metrics)

    def get_all_health(self) -> dict[str, NamespaceHealth]:
        return {ns: self._aggregate(m) for ns, m in self._metrics.items()}

    def clear_metrics(self, namespace: str | None = None) -> None:
        if namespace is None:
            self._metrics.clear()
        else:
            self._metrics.pop(namespace, None)

    def _aggregate(self, metrics: NamespaceMetrics) -> NamespaceHealth:
        results = [check(metrics) for check in self.health_checks]
        avg_score = sum(r.score for r in results) / len(results)
        # dict.fromkeys keeps first-seen order while dropping duplicates
        issues = list(dict.fromkeys(i for r in results for i in r.issues))
        recommendations = list(
            dict.fromkeys(rec for r in results for rec in r.recommendations)
        )
        health = NamespaceHealth(
            status=_status_for_score(avg_score),
            score=round(avg_score),
            issues=issues,
            recommendations=recommendations,
        )
        if health.status != MonitorStatus.HEALTHY:
            logger.warning(
                "Cache namespace '%s' is %s (score %d)",
                metrics.namespace,
                health.status,
                health.score,
            )
        return health
