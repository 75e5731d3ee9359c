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

from centralized_sampling.clock import MockClock
from centralized_sampling.reservoir import Reservoir

NOW = 1500000000


def active_reservoir(quota, capacity=10, expires_at=NOW + 100):
    reservoir = Reservoir(capacity=capacity)
    reservoir.update(NOW, quota=quota, expires_at=expires_at)
    return reservoir


def test_expired():
    reservoir = active_reservoir(quota=1, expires_at=NOW)
    assert not reservoir.expired(NOW), 'expiry moment itself is still valid'
    assert reservoir.expired(NOW + 1)


def test_new_reservoir_is_expired():
    assert Reservoir(capacity=1).expired(NOW)


def test_borrow_once_per_second():
    clock = MockClock(NOW)
    reservoir = Reservoir(capacity=10)
    assert reservoir.borrow(clock.now())
    assert not reservoir.borrow(clock.now())
    clock.advance(1)
    assert reservoir.borrow(clock.now())
    assert not reservoir.borrow(clock.now())


def test_no_borrow_without_capacity():
    assert not Reservoir(capacity=0).borrow(NOW)


def test_no_borrow_while_quota_valid():
    reservoir = active_reservoir(quota=2)
    assert not reservoir.borrow(NOW)


def test_take_up_to_quota_per_second():
    clock = MockClock(NOW)
    reservoir = active_reservoir(quota=5)
    for _ in range(5):
        assert reservoir.take(clock.now())
    assert not reservoir.take(clock.now()), 'quota exhausted for this second'

    clock.advance(1)
    assert reservoir.take(clock.now()), 'new epoch resets used'
    assert reservoir.used == 1
    assert reservoir.current_epoch == NOW + 1


def test_zero_quota_never_takes():
    reservoir = active_reservoir(quota=0)
    for t in range(NOW, NOW + 5):
        assert not reservoir.take(t)


def test_update_keeps_epoch_usage():
    reservoir = active_reservoir(quota=3)
    assert reservoir.take(NOW)
    assert reservoir.take(NOW)
    reservoir.update(NOW, quota=3, expires_at=NOW + 10, interval=5)
    assert reservoir.used == 2
    assert reservoir.take(NOW)
    assert not reservoir.take(NOW)
    assert reservoir.interval == 5
    assert reservoir.refreshed_at == NOW


def test_update_with_nothing_only_refreshes():
    reservoir = active_reservoir(quota=3)
    reservoir.update(NOW + 7)
    assert reservoir.quota == 3
    assert reservoir.expires_at == NOW + 100
    assert reservoir.refreshed_at == NOW + 7


def test_due():
    reservoir = Reservoir(capacity=1, interval=10)
    reservoir.update(NOW)
    assert not reservoir.due(NOW + 9)
    assert reservoir.due(NOW + 10)


def test_concurrent_takes_never_exceed_quota():
    reservoir = active_reservoir(quota=50)
    taken = []
    lock = threading.Lock()

    def worker():
        count = sum(1 for _ in range(100) if reservoir.take(NOW))
        with lock:
            taken.append(count)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert sum(taken) == 50


def test_concurrent_borrows_once_per_second():
    reservoir = Reservoir(capacity=1)
    results = []

    def worker():
        results.append(reservoir.borrow(NOW))

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1
