"""Application-wide constants."""

# API Configuration
API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

# Onboarding progress markers (user_preferences.onboarding_step)
ONBOARDING_STEP_STARTED = 1
ONBOARDING_STEP_PLAN_SELECTED = 2
ONBOARDING_STEP_COMPLETED = 3

# Query parameters understood by hosted payment links
PAYMENT_LINK_EMAIL_PARAM = "prefilled_email"
PAYMENT_LINK_REFERENCE_PARAM = "client_reference_id"

# Subscription statuses that grant product access
ACCESS_GRANTING_STATUSES = ("active", "trialing")

# Login error indicator appended to the login route
AUTH_FAILED_ERROR = "auth-failed"
