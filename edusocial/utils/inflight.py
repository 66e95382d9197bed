import logging
import threading
from contextlib import contextmanager
from typing import Hashable, Set

from edusocial.exceptions import ConflictIgnored

logger = logging.getLogger(__name__)


class InFlightGuard:
    """Allows at most one outstanding request per (action, user, target) key."""

    def __init__(self):
        self._keys: Set[Hashable] = set()
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, action: str, user_id: str, target_id: str):
        key = (action, user_id, target_id)
        with self._lock:
            if key in self._keys:
                logger.info(f"Duplicate {action} from {user_id} on {target_id} ignored while in flight")
                raise ConflictIgnored("İşlem zaten sürüyor")
            self._keys.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._keys.discard(key)

    def is_held(self, action: str, user_id: str, target_id: str) -> bool:
        with self._lock:
            return (action, user_id, target_id) in self._keys


# Shared by the like / accept / comment actions
guard = InFlightGuard()
