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

import threading
import time


class Clock(object):
    """Provides the current time in whole seconds since the epoch."""

    def now(self) -> int:
        return int(time.time())


class MockClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, now: int = 0) -> None:
        self._now = int(now)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, now: int) -> None:
        with self._lock:
            self._now = int(now)

    def advance(self, seconds: int = 1) -> int:
        with self._lock:
            self._now += int(seconds)
            return self._now
