"""Reconciliation settings, read from ``[tool.protean.custom]``."""

from dataclasses import dataclass

from protean.utils.globals import current_domain


@dataclass(frozen=True)
class ReconciliationSettings:
    platform_fee_rate: float = 0.033
    stage_timeout_seconds: float = 10.0
    notification_from_email: str = "orders@marketplace.example.com"
    notification_max_retries: int = 3
    notification_retry_base_seconds: int = 60
    default_country_code: str = "+44"

    @classmethod
    def from_domain(cls, domain=None) -> "ReconciliationSettings":
        """Build settings from the active domain's custom config, keeping defaults for missing keys."""
        domain = domain or current_domain
        custom = domain.config.get("custom", {}) or {}
        defaults = cls()
        return cls(
            platform_fee_rate=float(custom.get("PLATFORM_FEE_RATE", defaults.platform_fee_rate)),
            stage_timeout_seconds=float(custom.get("STAGE_TIMEOUT_SECONDS", defaults.stage_timeout_seconds)),
            notification_from_email=custom.get("NOTIFICATION_FROM_EMAIL", defaults.notification_from_email),
            notification_max_retries=int(custom.get("NOTIFICATION_MAX_RETRIES", defaults.notification_max_retries)),
            notification_retry_base_seconds=int(
                custom.get("NOTIFICATION_RETRY_BASE_SECONDS", defaults.notification_retry_base_seconds)
            ),
            default_country_code=custom.get("DEFAULT_COUNTRY_CODE", defaults.default_country_code),
        )
