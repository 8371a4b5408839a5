"""
Gatekeeper — a shared admission gate for rate-limited provider calls.

After the provider answers with a throttling signal, the caller records the
earliest time a retry may succeed. Until that time passes every gated call
site skips its provider call instead of burning another request.

Behavioral Contract:
- A fresh gate always lets calls through
- not_before(t) overwrites any earlier value (last writer wins)
- can_proceed() is True iff now is strictly after the recorded time
- All reads and writes of the recorded time are serialized
"""

import threading
from datetime import datetime
from typing import Callable, Dict, Optional


def _utcnow() -> datetime:
    return datetime.utcnow()


class Gatekeeper:
    """A single shared timestamp cell guarded by a lock. Not a token bucket."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._not_before: Optional[datetime] = None

    def not_before(self, t: datetime) -> None:
        """Suppress gated calls until `t` has passed."""
        with self._lock:
            self._not_before = t

    def can_proceed(self) -> bool:
        with self._lock:
            if self._not_before is None:
                return True
            return self._clock() > self._not_before

    def retry_after(self) -> Optional[datetime]:
        """The last value passed to not_before, None for a fresh gate."""
        with self._lock:
            return self._not_before


class GatekeeperRegistry:
    """
    Process-wide map of call site → Gatekeeper.

    One registry is created at startup and handed to every component that
    issues gated calls, so that e.g. every fleet handler shares the compute
    gate.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock
        self._lock = threading.Lock()
        self._gates: Dict[str, Gatekeeper] = {}

    def get(self, call_site: str) -> Gatekeeper:
        """Return the gate for a call site, creating it on first use."""
        with self._lock:
            gate = self._gates.get(call_site)
            if gate is None:
                gate = Gatekeeper(clock=self._clock)
                self._gates[call_site] = gate
            return gate

    def snapshot(self) -> Dict[str, dict]:
        with self._lock:
            gates = dict(self._gates)
        result = {}
        for call_site, gate in sorted(gates.items()):
            retry_after = gate.retry_after()
            result[call_site] = {
                "can_proceed": gate.can_proceed(),
                "retry_after": retry_after.isoformat() if retry_after else None,
            }
        return result
