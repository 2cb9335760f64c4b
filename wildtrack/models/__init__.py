"""Database models."""

from .observation import POACHING_TYPES, Category, Observation
from .passcode import PendingPasscodeRecord
from .user import USER_STATUSES, UserAccount
from .water import WATER_PARAMETERS, WaterSample

__all__ = [
    "Observation",
    "Category",
    "POACHING_TYPES",
    "UserAccount",
    "USER_STATUSES",
    "WaterSample",
    "WATER_PARAMETERS",
    "PendingPasscodeRecord",
]
