import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone

from core.services.errors import RateLimitedError


@dataclass
class _Window:
    count: int
    reset_at: float


class LoginRateLimiter:
    """Limite de tentativas de login por endereco, numa janela fixa.

    Uma instancia por processo, criada em AccountsConfig.ready().
    """

    def __init__(
        self, max_attempts=10, window_seconds=300, max_tracked_keys=1024, clock=time.monotonic, wall_clock=time.time
    ):
        self.max_attempts = max_attempts
        self.max_tracked_keys = max_tracked_keys
        self.window_seconds = window_seconds
        self._clock = clock
        self._wall_clock = wall_clock
        self._attempts = {}
        self._lock = threading.Lock()

    def hit(self, key):
        with self._lock:
            now = self._clock()
            current = self._attempts.get(key)
            if current is None and len(self._attempts) >= self.max_tracked_keys:
                self._prune(now)
            if current is None or current.reset_at <= now:
                self._attempts[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return
            if current.count >= self.max_attempts:
                reset_at = self._wall_clock() + (current.reset_at - now)
                raise RateLimitedError(
                    "Muitas tentativas de login. Tente novamente em alguns minutos.",
                    details={"resetAt": datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()},
                )
            current.count += 1

    def __len__(self):
        return len(self._attempts)

    def _prune(self, now):
        expired = [key for key, window in self._attempts.items() if window.reset_at <= now]
        for key in expired:
            del self._attempts[key]

    def reset(self, key=None):
        with self._lock:
            if key is None:
                self._attempts.clear()
            else:
                self._attempts.pop(key, None)
