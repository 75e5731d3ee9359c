# Copyright (c) 2018, The Jaeger Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from threading import Lock
from typing import Optional

from .constants import DEFAULT_RESERVOIR_INTERVAL


class Reservoir(object):
    """
    Per-rule quota of sampled traces per one second epoch.

    The quota is assigned by the control plane together with the moment it
    expires. While the quota is valid, take() admits at most `quota` traces
    in every second. Once it expires (or before it was ever assigned) the
    reservoir falls back to borrowing: at most one trace per second is
    admitted until a fresh target arrives. A reservoir with zero capacity
    never borrows.

    All counters are mutated under a single lock, held only for the
    read-modify-write of one call.
    """

    def __init__(self, capacity: int = 0,
                 interval: int = DEFAULT_RESERVOIR_INTERVAL) -> None:
        self.capacity = capacity
        self.quota = 0
        self.expires_at = 0
        self.refreshed_at = 0
        self.interval = interval
        self.used = 0
        self.current_epoch = 0
        self._lock = Lock()

    def expired(self, now: int) -> bool:
        with self._lock:
            return now > self.expires_at

    def borrow(self, now: int) -> bool:
        if self.capacity <= 0:
            return False
        with self._lock:
            if now <= self.expires_at or self.current_epoch >= now:
                return False
            self.current_epoch = now
            self.used = 0
            return True

    def take(self, now: int) -> bool:
        with self._lock:
            if self.current_epoch < now:
                self.used = 0
                self.current_epoch = now
            if self.used < self.quota:
                self.used += 1
                return True
            return False

    def update(self, now: int, quota: Optional[int] = None,
               expires_at: Optional[int] = None,
               interval: Optional[int] = None) -> None:
        # used and current_epoch survive: the epoch may still be in progress
        with self._lock:
            self.refreshed_at = now
            if quota is not None:
                self.quota = quota
            if expires_at is not None:
                self.expires_at = expires_at
            if interval is not None:
                self.interval = interval

    def due(self, now: int) -> bool:
        """Returns True when the rule owning this reservoir should report."""
        with self._lock:
            return now >= self.refreshed_at + self.interval

    def __str__(self):
        return 'Reservoir(quota=%s, expires_at=%s, interval=%s, capacity=%s)' \
            % (self.quota, self.expires_at, self.interval, self.capacity)
