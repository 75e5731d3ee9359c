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

from .constants import (
    HTTP_HOST_KEY,
    HTTP_METHOD_KEY,
    HTTP_TARGET_KEY,
    HTTP_URL_KEY,
    SAMPLER_PARAM_TAG_KEY,
    SAMPLER_TYPE_REMOTE,
    SAMPLER_TYPE_TAG_KEY,
)
from .matching import attribute_to_str, wildcard_match
from .protocol import (
    RuleProperties,
    SamplingStatisticsDocument,
    SamplingTargetDocument,
)
from .reservoir import Reservoir
from .sampler import (
    ProbabilisticSampler,
    SamplingDecision,
    SamplingParameters,
    SamplingResult,
)


class Rule(object):
    """
    A sampling rule: the properties served by the control plane, the
    reservoir they size, and the statistics reported back.

    The three counters are guarded by a lock that snapshot() also takes, so
    a reset never loses or double counts a concurrent increment.
    """

    def __init__(self, properties: RuleProperties) -> None:
        self.properties = properties
        self.reservoir = Reservoir(capacity=properties.reservoir_size)
        self._probabilistic_sampler = ProbabilisticSampler(properties.fixed_rate)
        self._tags = {
            SAMPLER_TYPE_TAG_KEY: SAMPLER_TYPE_REMOTE,
            SAMPLER_PARAM_TAG_KEY: properties.name,
        }
        self._lock = Lock()
        self.matched_requests = 0
        self.sampled_requests = 0
        self.borrowed_requests = 0

    @property
    def name(self) -> str:
        return self.properties.name

    @property
    def priority(self) -> int:
        return self.properties.priority

    @property
    def fixed_rate(self) -> float:
        return self._probabilistic_sampler.rate

    def matches(self, parameters: SamplingParameters, service_name: str,
                cloud_platform: str) -> bool:
        props = self.properties
        attributes = parameters.attributes
        url = attribute_to_str(attributes.get(HTTP_URL_KEY))
        target = attribute_to_str(attributes.get(HTTP_TARGET_KEY))
        return (
            wildcard_match(props.service_name, service_name or '') and
            wildcard_match(props.service_type, cloud_platform or '') and
            wildcard_match(props.host, attribute_to_str(attributes.get(HTTP_HOST_KEY))) and
            wildcard_match(props.http_method, attribute_to_str(attributes.get(HTTP_METHOD_KEY))) and
            (wildcard_match(props.url_path, url) or wildcard_match(props.url_path, target)) and
            self._attributes_match(attributes)
        )

    def _attributes_match(self, attributes) -> bool:
        for key, pattern in self.properties.attributes.items():
            if key not in attributes:
                return False
            if not wildcard_match(pattern, attribute_to_str(attributes[key])):
                return False
        return True

    def sample(self, parameters: SamplingParameters, now: int) -> SamplingResult:
        trace_state = parameters.parent_trace_state
        self._count(matched=1)

        if self.reservoir.expired(now):
            if self.reservoir.borrow(now):
                self._count(borrowed=1)
                return SamplingResult(SamplingDecision.RECORD_AND_SAMPLE,
                                      trace_state, self._tags)
        elif self.reservoir.take(now):
            self._count(sampled=1)
            return SamplingResult(SamplingDecision.RECORD_AND_SAMPLE,
                                  trace_state, self._tags)

        # read once: a concurrent target may swap the sampler
        sampler = self._probabilistic_sampler
        if sampler.is_sampled(parameters.trace_id):
            self._count(sampled=1)
            return SamplingResult(SamplingDecision.RECORD_AND_SAMPLE,
                                  trace_state, self._tags)
        return SamplingResult(SamplingDecision.DROP, trace_state, self._tags)

    def _count(self, matched=0, sampled=0, borrowed=0):
        with self._lock:
            self.matched_requests += matched
            self.sampled_requests += sampled
            self.borrowed_requests += borrowed

    def snapshot(self, now: int, client_id: Optional[str] = None) -> SamplingStatisticsDocument:
        """Returns the counters of the window ending now and starts a new one."""
        with self._lock:
            matched, sampled, borrowed = \
                self.matched_requests, self.sampled_requests, self.borrowed_requests
            self.matched_requests = self.sampled_requests = self.borrowed_requests = 0

        return SamplingStatisticsDocument(
            rule_name=self.name,
            client_id=client_id,
            request_count=matched,
            sampled_count=sampled,
            borrow_count=borrowed,
            timestamp=now,
        )

    def due(self, now: int) -> bool:
        return self.reservoir.due(now)

    def apply_target(self, target: SamplingTargetDocument, now: int) -> None:
        if target.fixed_rate is not None and target.fixed_rate != self.fixed_rate:
            self._probabilistic_sampler = ProbabilisticSampler(target.fixed_rate)

        expires_at = None
        if target.reservoir_quota_ttl is not None:
            expires_at = now + target.reservoir_quota_ttl
        self.reservoir.update(
            now,
            quota=target.reservoir_quota,
            expires_at=expires_at,
            interval=target.interval,
        )

    def __str__(self):
        return 'Rule(%s, %s, %s, %s)' % (
            self.name, self.priority, self.fixed_rate, self.reservoir)
