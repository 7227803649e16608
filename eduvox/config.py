import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, 0.0), 1.0)


def _csv_env(name, lower=False):
    values = set()
    for item in (os.getenv(name, '') or '').split(','):
        item = item.strip()
        if item:
            values.add(item.lower() if lower else item)
    return frozenset(values)


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


@dataclass(frozen=True)
class AppConfig:
    """Central config object, read from the environment once per app."""

    flask_secret_key: str = ''
    log_level: str = 'INFO'
    environment: str = 'development'
    sentry_dsn: str = ''
    sentry_environment: str = 'production'
    sentry_release: str = 'eduvox'
    sentry_traces_sample_rate: float = 0.0
    gemini_api_key: str = ''
    gemini_model: str = 'gemini-2.5-flash'
    firebase_credentials_path: str = 'firebase-credentials.json'
    entitlement_cache_ttl_seconds: int = 300
    admin_emails: frozenset = field(default_factory=frozenset)
    admin_uids: frozenset = field(default_factory=frozenset)

    @property
    def is_dev_like(self):
        return self.environment in DEV_ENV_NAMES


def load_config() -> AppConfig:
    load_dotenv()
    config = AppConfig(
        flask_secret_key=os.getenv('FLASK_SECRET_KEY', ''),
        log_level=(os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper(),
        environment=runtime_environment(),
        sentry_dsn=(os.getenv('SENTRY_DSN', '') or '').strip(),
        sentry_environment=(os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip(),
        sentry_release=(os.getenv('SENTRY_RELEASE', 'eduvox') or 'eduvox').strip(),
        sentry_traces_sample_rate=safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0),
        gemini_api_key=(os.getenv('GEMINI_API_KEY', '') or '').strip(),
        gemini_model=(os.getenv('GEMINI_MODEL', 'gemini-2.5-flash') or 'gemini-2.5-flash').strip(),
        firebase_credentials_path=(os.getenv('FIREBASE_CREDENTIALS_PATH', 'firebase-credentials.json') or 'firebase-credentials.json').strip(),
        entitlement_cache_ttl_seconds=safe_int_env('ENTITLEMENT_CACHE_TTL_SECONDS', 300, minimum=0, maximum=86400),
        admin_emails=_csv_env('ADMIN_EMAILS', lower=True),
        admin_uids=_csv_env('ADMIN_UIDS'),
    )
    if not config.is_dev_like and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
