"""Utility modules for the onboarding backend application."""

from app.utils.logger import logger, setup_logger
from app.utils.environment import get_environment, is_debug, is_deployed
from app.utils.sentry_utils import configure_sentry, capture_exception, set_user_context
from app.utils.constants import (
    API_VERSION,
    API_PREFIX,
    ONBOARDING_STEP_STARTED,
    ONBOARDING_STEP_PLAN_SELECTED,
    ONBOARDING_STEP_COMPLETED,
)

__all__ = [
    # Logger
    "logger",
    "setup_logger",
    # Environment
    "get_environment",
    "is_debug",
    "is_deployed",
    # Sentry
    "configure_sentry",
    "capture_exception",
    "set_user_context",
    # Constants
    "API_VERSION",
    "API_PREFIX",
    "ONBOARDING_STEP_STARTED",
    "ONBOARDING_STEP_PLAN_SELECTED",
    "ONBOARDING_STEP_COMPLETED",
]
