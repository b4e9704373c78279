"""Trial window reads and provisioning."""

from app.services.trial.trial_service import TrialService, TrialState, trial_service

__all__ = ["TrialService", "TrialState", "trial_service"]
