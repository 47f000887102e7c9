"""Environment-driven settings for the authentication component.

Values come from the process environment; call ``load_dotenv()`` first
(scripts do) to pick up a ``.env`` file.
"""

import os
from dataclasses import dataclass
from typing import Mapping

DEFAULT_LOGIN_MAX_ATTEMPTS = 5
DEFAULT_LOGIN_LOCK_DURATION_MS = 2 * 60 * 60 * 1000  # 2 hours
DEFAULT_PASSWORD_HASH_COST = 12

# Keeps now + lock duration well inside the datetime range
MAX_LOGIN_LOCK_DURATION_MS = 365 * 24 * 60 * 60 * 1000  # 1 year


@dataclass(frozen=True)
class AuthSettings:
    login_max_attempts: int = DEFAULT_LOGIN_MAX_ATTEMPTS
    login_lock_duration_ms: int = DEFAULT_LOGIN_LOCK_DURATION_MS
    password_hash_cost: int = DEFAULT_PASSWORD_HASH_COST


def _read_int(environ: Mapping[str, str], name: str, default: int, minimum: int, maximum: int | None = None) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ValueError(f"{name} must be {bounds}, got {value}")
    return value


def load_auth_settings(environ: Mapping[str, str] | None = None) -> AuthSettings:
    """Read LOGIN_MAX_ATTEMPTS, LOGIN_LOCK_DURATION_MS and PASSWORD_HASH_COST.

    Raises:
        ValueError: a variable is set but not a valid integer in range
    """
    env = os.environ if environ is None else environ
    return AuthSettings(
        login_max_attempts=_read_int(env, 'LOGIN_MAX_ATTEMPTS', DEFAULT_LOGIN_MAX_ATTEMPTS, minimum=1),
        login_lock_duration_ms=_read_int(
            env, 'LOGIN_LOCK_DURATION_MS', DEFAULT_LOGIN_LOCK_DURATION_MS,
            minimum=1, maximum=MAX_LOGIN_LOCK_DURATION_MS,
        ),
        password_hash_cost=_read_int(env, 'PASSWORD_HASH_COST', DEFAULT_PASSWORD_HASH_COST, minimum=4, maximum=31),
    )
