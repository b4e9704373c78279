"""Environment detection utilities."""

import os

LOCAL_ENVIRONMENTS = ("local", "test")
DEPLOYED_ENVIRONMENTS = ("staging", "production")


def get_environment() -> str:
    """Current ENV value: 'local', 'test', 'staging' or 'production'."""
    return os.getenv("ENV", "local")


def is_debug() -> bool:
    return get_environment() in LOCAL_ENVIRONMENTS


def is_deployed() -> bool:
    """Sentry and secure cookies only make sense on staging and production."""
    return get_environment() in DEPLOYED_ENVIRONMENTS
