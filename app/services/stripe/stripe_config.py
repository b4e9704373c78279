"""Stripe configuration settings"""

import os
from functools import lru_cache

from pydantic_settings import BaseSettings


class StripeSettings(BaseSettings):
    """Stripe configuration loaded from environment variables"""

    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""

    # Hosted Payment Links used during onboarding
    stripe_pro_payment_link: str = ""
    stripe_enterprise_payment_link: str = ""

    # Price IDs used for in-place plan changes
    stripe_price_pro: str = ""
    stripe_price_enterprise: str = ""

    class Config:
        env_file = f".env.{os.getenv('ENV', 'local')}"
        extra = "ignore"


@lru_cache
def get_stripe_settings() -> StripeSettings:
    return StripeSettings()


stripe_settings = get_stripe_settings()
