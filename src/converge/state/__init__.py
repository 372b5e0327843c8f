from .lock import StateLock, force_unlock
from .store import StateStore, STATE_FORMAT_VERSION

__all__ = ["StateLock", "StateStore", "force_unlock", "STATE_FORMAT_VERSION"]
