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

from typing import Any, Callable, Dict, Optional


class MetricsFactory(object):
    """Generates new metrics. The base implementation discards everything."""

    def _noop(self, *args):
        pass

    def create_counter(
        self, name: str, tags: Optional[Dict[str, Any]] = None
    ) -> Callable[[int], None]:
        """
        Generates a new counter from the given name and tags and returns
        a callable function used to increment the counter.
        :param name: name of the counter
        :param tags: tags for the counter
        :return: a callable function which takes the value to increase
        the counter by ie. def increment(value)
        """
        return self._noop

    def create_gauge(
        self, name: str, tags: Optional[Dict[str, Any]] = None
    ) -> Callable[[float], None]:
        """
        Generates a new gauge from the given name and tags and returns
        a callable function used to update the gauge.
        :param name: name of the gauge
        :param tags: tags for the gauge
        :return: a callable function which takes the value to update
        the gauge with ie. def update(value)
        """
        return self._noop


class SamplerMetrics(object):
    """Sampler specific metrics."""

    SAMPLER_ERRORS = 'centralized_sampling:sampler_errors'

    def __init__(self, metrics_factory: MetricsFactory) -> None:
        self.decisions_sampled = metrics_factory.create_counter(
            name='centralized_sampling:sampler_decisions', tags={'result': 'sampled'})
        self.decisions_not_sampled = metrics_factory.create_counter(
            name='centralized_sampling:sampler_decisions', tags={'result': 'not_sampled'})
        self.stale_decisions = metrics_factory.create_counter(
            name='centralized_sampling:sampler_stale_decisions')
        self.rules_updated = metrics_factory.create_counter(
            name='centralized_sampling:sampler_updates', tags={'result': 'ok'})
        self.rules_update_failed = metrics_factory.create_counter(
            name='centralized_sampling:sampler_updates', tags={'result': 'err'})
        self.targets_updated = metrics_factory.create_counter(
            name='centralized_sampling:sampler_targets', tags={'result': 'ok'})
        self.targets_update_failed = metrics_factory.create_counter(
            name='centralized_sampling:sampler_targets', tags={'result': 'err'})
        self.rules = metrics_factory.create_gauge(
            name='centralized_sampling:sampler_rules')
