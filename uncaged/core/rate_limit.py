"""
Rate limit simple en memoria (por identificador + ruta), ventana deslizante.

Uso típico en un router:
    limiter.allow((ip, "/auth/login"), limit=10, window_seconds=300)

Es estado por proceso; con varios workers cada uno cuenta por separado.
"""
import threading
from time import monotonic
from typing import Callable, Dict, Tuple

Key = Tuple[str, str]


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = monotonic, sweep_every: int = 1000) -> None:
        self._buckets: Dict[Key, list[float]] = {}
        self._windows: Dict[Key, int] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self._sweep_every = sweep_every
        self._calls = 0

    def __len__(self) -> int:
        return len(self._buckets)

    def allow(self, key: Key, limit: int = 5, window_seconds: int = 60) -> bool:
        """Devuelve True si se permite la acción y registra el intento.

        key: (identificador, ruta)
        limit: máximo de intentos dentro de la ventana
        window_seconds: ventana de tiempo en segundos
        """
        now = self._clock()
        with self._lock:
            self._calls += 1
            if self._calls % self._sweep_every == 0:
                self._sweep(now)
            # elimina timestamps fuera de ventana
            q = [t for t in self._buckets.get(key, ()) if now - t < window_seconds]
            self._windows[key] = window_seconds
            if len(q) >= limit:
                self._buckets[key] = q
                return False
            q.append(now)
            self._buckets[key] = q
            return True

    def _sweep(self, now: float) -> None:
        # Claves cuyo último intento ya salió de su ventana (IPs que no volvieron)
        stale = [k for k, q in self._buckets.items() if not q or now - q[-1] >= self._windows.get(k, 0)]
        for k in stale:
            self._buckets.pop(k, None)
            self._windows.pop(k, None)

    def reset(self) -> None:
        """Limpia los buckets (útil en tests o reinicios)."""
        with self._lock:
            self._buckets.clear()
            self._windows.clear()
