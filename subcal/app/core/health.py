"""
Health check aggregation — configuration probe for delivery channels.

Checks:
    • Email channel (SMTP credentials, or simulation)
    • Telegram channel (bot token + chat id, or simulation)

No network calls are made: a probe that sent a message would notify the
user on every poll. Missing credentials degrade the report rather than
failing it, since the API still matches subscriptions without them.

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from subcal.app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = default_settings.APP_VERSION
    environment: str = default_settings.ENVIRONMENT
    dispatch_mode: str = default_settings.DISPATCH_MODE
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "dispatch_mode": self.dispatch_mode,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


def check_email_channel(config: Settings) -> ComponentHealth:
    comp = ComponentHealth(name="email")
    start = time.monotonic()
    provider = config.EMAIL_PROVIDER.lower()
    comp.details = {"provider": provider}

    if provider == "simulation":
        comp.message = "Simulated delivery"
    elif provider != "smtp":
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Unknown email provider: {config.EMAIL_PROVIDER}"
    elif config.email_configured:
        comp.message = "SMTP credentials configured"
        comp.details.update({"host": config.SMTP_HOST, "port": config.SMTP_PORT})
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = "EMAIL_USER / EMAIL_PASS not set"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_telegram_channel(config: Settings) -> ComponentHealth:
    comp = ComponentHealth(name="telegram")
    start = time.monotonic()
    provider = config.TELEGRAM_PROVIDER.lower()
    comp.details = {"provider": provider, "parse_mode": config.TELEGRAM_PARSE_MODE}

    if config.DISPATCH_MODE.lower() == "single":
        comp.message = "Not used in single-channel mode"
    elif provider == "simulation":
        comp.message = "Simulated delivery"
    elif provider != "bot_api":
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Unknown telegram provider: {config.TELEGRAM_PROVIDER}"
    elif config.telegram_configured:
        comp.message = "Bot token and chat id configured"
    else:
        comp.status = HealthStatus.DEGRADED
        comp.message = "TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID not set"

    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(config: Optional[Settings] = None) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    config = config or default_settings
    report = HealthReport(
        version=config.APP_VERSION,
        environment=config.ENVIRONMENT,
        dispatch_mode=config.DISPATCH_MODE,
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    report.components.append(check_email_channel(config))
    report.components.append(check_telegram_channel(config))

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    if report.status != HealthStatus.HEALTHY:
        logger.warning("Health check: %s", report.status.value)

    return report
