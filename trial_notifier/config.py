# trial_notifier/config.py

import os
import logging
import unicodedata
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trial_notifier.errors import ConfigError

NBSP = "\xa0"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------- env helpers ----------
def _sanitize(text: Optional[str]) -> str:
    """
    Normalize to NFKC and replace NBSP with normal spaces to avoid hidden Unicode issues
    (values pasted into hosting dashboards often carry them).
    """
    if text is None:
        return ""
    return unicodedata.normalize("NFKC", str(text)).replace(NBSP, " ")


def _env_str(env: Mapping[str, str], *names: str, default: str = "") -> str:
    for name in names:
        val = _sanitize(env.get(name)).strip()
        if val:
            return val
    return default


def _env_bool(env: Mapping[str, str], name: str) -> bool:
    return _env_str(env, name).lower() in {"1", "true", "yes", "on"}


def _env_int(
    env: Mapping[str, str],
    name: str,
    default: int,
    _min: Optional[int] = None,
    _max: Optional[int] = None,
) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        val = int(_sanitize(raw).strip())
    except ValueError:
        return default
    if _min is not None and val < _min:
        return default
    if _max is not None and val > _max:
        return default
    return val


def env_log_level(default: str = "INFO", env: Optional[Mapping[str, str]] = None) -> int:
    """Normalize LOG_LEVEL env (e.g., 'info', 'INFO', '20') to a valid logging level."""
    env = os.environ if env is None else env
    lvl = str(env.get("LOG_LEVEL", default)).strip()
    if lvl.isdigit():
        return int(lvl)
    return getattr(logging, lvl.upper(), logging.INFO)


def configure_logging(env: Optional[Mapping[str, str]] = None) -> None:
    logging.basicConfig(level=env_log_level(env=env), format=LOG_FORMAT)


def load_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as ex:
        raise ConfigError(f"unknown timezone APP_TZ={name!r}") from ex


# ---------- settings ----------
@dataclass(frozen=True)
class Settings:
    timezone: ZoneInfo
    database_url: str
    tenants_table: str = "tenants"

    # scheduler
    cron_hour: int = 9
    cron_minute: int = 0
    misfire_grace: int = 3600
    job_id: str = "trial_end_notice_daily"
    run_on_deploy: bool = False

    # mail transport
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_timeout: int = 30
    from_email: str = "no-reply@pitlink.example"
    from_name: str = "PitLink"
    disable_email: bool = False
    product_name: str = "PitLink"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Raises ConfigError for anything that would make every run fail: an unknown
    timezone, no database URL, or SMTP credentials missing while mail is enabled.
    """
    env = os.environ if environ is None else environ

    tz = load_timezone(_env_str(env, "APP_TZ", default="Asia/Tokyo"))

    database_url = _env_str(env, "DATABASE_URL", "DB_URL")
    if not database_url:
        raise ConfigError("DATABASE_URL/DB_URL is not set")

    disable_email = _env_bool(env, "DISABLE_EMAIL")
    smtp_user = _env_str(env, "SMTP_USER")
    smtp_pass = _env_str(env, "SMTP_PASS")
    if not disable_email and not (smtp_user and smtp_pass):
        raise ConfigError("SMTP_USER/SMTP_PASS are not set (set DISABLE_EMAIL=1 for a dry run)")

    return Settings(
        timezone=tz,
        database_url=database_url,
        tenants_table=_env_str(env, "TBL_TENANTS", default="tenants"),
        cron_hour=_env_int(env, "CRON_HOUR", 9, 0, 23),
        cron_minute=_env_int(env, "CRON_MINUTE", 0, 0, 59),
        misfire_grace=_env_int(env, "MISFIRE_GRACE", 3600, 0, 24 * 3600),
        job_id=_env_str(env, "JOB_ID", default="trial_end_notice_daily"),
        run_on_deploy=_env_bool(env, "RUN_ON_DEPLOY"),
        # Accept both SMTP_SERVER and SMTP_HOST
        smtp_host=_env_str(env, "SMTP_SERVER", "SMTP_HOST", default="localhost"),
        smtp_port=_env_int(env, "SMTP_PORT", 587, 1, 65535),
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        smtp_timeout=_env_int(env, "SMTP_TIMEOUT", 30, 1, 600),
        from_email=_env_str(env, "FROM_EMAIL", "SMTP_FROM", default=smtp_user or "no-reply@pitlink.example"),
        from_name=_env_str(env, "FROM_NAME", default="PitLink"),
        disable_email=disable_email,
        product_name=_env_str(env, "PRODUCT_NAME", default="PitLink"),
    )


__all__ = [
    "Settings",
    "load_settings",
    "load_timezone",
    "configure_logging",
    "env_log_level",
    "LOG_FORMAT",
]
