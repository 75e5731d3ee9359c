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

import secrets
import time

from .metrics import MetricsFactory

CLIENT_ID_BYTES = 12


class ErrorReporter(object):
    """
    Reports errors by emitting metrics, and if logger is provided,
    logging the error message once every log_interval_minutes
    """

    def __init__(self, metrics_factory=None, logger=None, log_interval_minutes=15):
        self.logger = logger
        self.log_interval_minutes = log_interval_minutes
        self.metrics_factory = metrics_factory or MetricsFactory()
        self._counters = {}
        self._last_error_reported_at = 0.0

    def error(self, name, count, *args):
        counter = self._counters.get(name)
        if counter is None:
            counter = self._counters[name] = self.metrics_factory.create_counter(name)
        counter(count)

        if self.logger is None:
            return

        next_logging_deadline = \
            self._last_error_reported_at + (self.log_interval_minutes * 60)
        current_time = time.time()
        if next_logging_deadline >= current_time:
            # If we aren't yet at the next logging deadline
            return

        self.logger.error(*args)
        self._last_error_reported_at = current_time


def get_boolean(string, default):
    string = str(string).lower()
    if string in ['false', '0', 'none']:
        return False
    elif string in ['true', '1']:
        return True
    else:
        return default


def generate_client_id() -> str:
    """Random per-process reporter id: 12 bytes as 24 lowercase hex characters."""
    return secrets.token_hex(CLIENT_ID_BYTES)
