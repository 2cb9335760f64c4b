"""Service-layer utilities."""

from .fires import FirmsClient, run_fire_check
from .notifications import EmailJsTransport, NotificationDispatcher
from .observations import ObservationService
from .passcodes import InMemoryPasscodeStore, PasscodeService
from .storage import BlobStore

__all__ = [
    "BlobStore",
    "EmailJsTransport",
    "FirmsClient",
    "InMemoryPasscodeStore",
    "NotificationDispatcher",
    "ObservationService",
    "PasscodeService",
    "run_fire_check",
]
