import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/135.0.0.0 Safari/537.36"
)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
    "--disable-gpu",
]

VIEWPORT = {"width": 1366, "height": 900}

TRANSCRIPT_BUTTON_SELECTOR = "ytd-button-renderer yt-button-shape button"
TRANSCRIPT_BUTTON_KEYWORD = "transcript"
SEGMENT_CONTAINER_SELECTOR = "#segments-container"
SEGMENT_SELECTOR = "#segments-container ytd-transcript-segment-renderer"
SEGMENT_TEXT_SELECTOR = f"{SEGMENT_SELECTOR} .segment-text"

API_PREFIX = "/api/"
REQUEST_ID_SLICE_SIZE = 8
LOG_MESSAGE_URL_TRUNCATE = 120
NETWORK_IDLE_SETTLE_TIMEOUT = 5

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_str(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = _env_str(environ, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _env_str(environ, name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _env_str(environ, name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_list(environ: Mapping[str, str], name: str) -> Tuple[str, ...]:
    raw = environ.get(name) or ""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once at startup and passed down."""

    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: Tuple[str, ...] = ()
    api_key: Optional[str] = None
    trusted_proxies: Tuple[str, ...] = ("127.0.0.1",)

    chromium_path: Optional[str] = None
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    chromium_args: Tuple[str, ...] = field(default_factory=lambda: tuple(CHROMIUM_ARGS))

    navigation_timeout: float = 30.0
    container_timeout: float = 20.0
    scroll_interval: float = 1.5
    stable_rounds: int = 3
    max_scroll_polls: int = 400

    rate_limit_max: int = 10
    rate_limit_window: int = 60
    max_body_bytes: int = 10 * 1024

    max_concurrent_sessions: int = 0
    session_queue_timeout: float = 30.0

    log_level: str = "INFO"

    @property
    def api_key_required(self) -> bool:
        return self.api_key is not None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        defaults = cls()

        stable_rounds = _env_int(env, "SCROLL_STABLE_ROUNDS", defaults.stable_rounds)
        if stable_rounds < 1:
            raise ValueError("SCROLL_STABLE_ROUNDS must be at least 1")
        rate_limit_max = _env_int(env, "RATE_LIMIT_MAX", defaults.rate_limit_max)
        rate_limit_window = _env_int(env, "RATE_LIMIT_WINDOW", defaults.rate_limit_window)
        if rate_limit_max < 1 or rate_limit_window < 1:
            raise ValueError("RATE_LIMIT_MAX and RATE_LIMIT_WINDOW must be at least 1")

        return cls(
            host=_env_str(env, "HOST") or defaults.host,
            port=_env_int(env, "PORT", defaults.port),
            allowed_origins=_env_list(env, "ALLOWED_ORIGINS"),
            api_key=_env_str(env, "API_KEY"),
            trusted_proxies=_env_list(env, "TRUSTED_PROXIES") or defaults.trusted_proxies,
            chromium_path=_env_str(env, "CHROMIUM_PATH"),
            headless=_env_bool(env, "HEADLESS", defaults.headless),
            user_agent=_env_str(env, "USER_AGENT") or defaults.user_agent,
            navigation_timeout=_env_float(env, "NAVIGATION_TIMEOUT", defaults.navigation_timeout),
            container_timeout=_env_float(env, "SEGMENT_CONTAINER_TIMEOUT", defaults.container_timeout),
            scroll_interval=_env_float(env, "SCROLL_INTERVAL", defaults.scroll_interval),
            stable_rounds=stable_rounds,
            max_scroll_polls=_env_int(env, "SCROLL_MAX_POLLS", defaults.max_scroll_polls),
            rate_limit_max=rate_limit_max,
            rate_limit_window=rate_limit_window,
            max_body_bytes=_env_int(env, "MAX_BODY_BYTES", defaults.max_body_bytes),
            max_concurrent_sessions=_env_int(env, "MAX_CONCURRENT_SESSIONS", defaults.max_concurrent_sessions),
            session_queue_timeout=_env_float(env, "SESSION_QUEUE_TIMEOUT", defaults.session_queue_timeout),
            log_level=(_env_str(env, "LOG_LEVEL") or defaults.log_level).upper(),
        )
