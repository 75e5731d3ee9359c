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

import enum
from typing import Any, Dict, Optional

import opentracing

from .constants import (
    MAX_ID_BITS,
    SAMPLER_TYPE_CONST,
    SAMPLER_TYPE_PROBABILISTIC,
    SAMPLER_TYPE_TAG_KEY,
    SAMPLER_PARAM_TAG_KEY,
)
from .trace_state import TraceState

ID_MASK = (1 << MAX_ID_BITS) - 1


class SamplingDecision(enum.Enum):
    DROP = 0
    RECORD_ONLY = 1
    RECORD_AND_SAMPLE = 2


class SamplingParameters(object):
    """Everything known about a trace at the moment its root span starts."""

    __slots__ = ['trace_id', 'name', 'parent_context', 'attributes']

    def __init__(
        self,
        trace_id: int,
        name: str = '',
        parent_context: Optional[opentracing.SpanContext] = None,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.trace_id = trace_id
        self.name = name
        self.parent_context = parent_context
        self.attributes = attributes or {}

    @property
    def parent_trace_state(self) -> Optional[TraceState]:
        return getattr(self.parent_context, 'trace_state', None)


class SamplingResult(object):
    __slots__ = ['decision', 'trace_state', 'tags']

    def __init__(
        self,
        decision: SamplingDecision,
        trace_state: Optional[TraceState] = None,
        tags: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.decision = decision
        self.trace_state = trace_state
        self.tags = tags or {}

    @property
    def sampled(self) -> bool:
        return self.decision == SamplingDecision.RECORD_AND_SAMPLE

    def __repr__(self):
        return 'SamplingResult(%s, %s)' % (self.decision.name, self.tags)


class Sampler(object):
    """
    Sampler is responsible for deciding if a particular trace should be
    "sampled", i.e. recorded in permanent storage.
    """

    def __init__(self, tags: Optional[Dict[str, Any]] = None) -> None:
        self._tags = tags

    def should_sample(self, parameters: SamplingParameters) -> SamplingResult:
        raise NotImplementedError()

    def close(self):
        raise NotImplementedError()

    def __eq__(self, other):
        return (isinstance(other, self.__class__) and
                self.__dict__ == other.__dict__)

    def __ne__(self, other):
        return not self.__eq__(other)


class ConstSampler(Sampler):
    """ConstSampler always returns the same decision."""

    def __init__(self, decision: bool) -> None:
        super(ConstSampler, self).__init__(
            tags={
                SAMPLER_TYPE_TAG_KEY: SAMPLER_TYPE_CONST,
                SAMPLER_PARAM_TAG_KEY: decision,
            }
        )
        self.decision = decision

    def should_sample(self, parameters: SamplingParameters) -> SamplingResult:
        decision = SamplingDecision.RECORD_AND_SAMPLE if self.decision \
            else SamplingDecision.DROP
        return SamplingResult(decision, parameters.parent_trace_state, self._tags)

    def close(self):
        pass

    def __str__(self):
        return 'ConstSampler(%s)' % self.decision


class ProbabilisticSampler(Sampler):
    """
    A sampler that samples a certain percentage of traces specified by the
    rate, in the range between 0.0 and 1.0.

    Trace ids are random numbers themselves, so the decision does not draw
    a new random number: it checks whether the low 64 bits of the trace id,
    with the top bit dropped, fall below rate * 2^63. The same trace id
    therefore gets the same decision in every service using the same rate.
    """

    def __init__(self, rate: float) -> None:
        super(ProbabilisticSampler, self).__init__(
            tags={
                SAMPLER_TYPE_TAG_KEY: SAMPLER_TYPE_PROBABILISTIC,
                SAMPLER_PARAM_TAG_KEY: rate,
            }
        )
        if not 0.0 <= rate <= 1.0:
            raise ValueError('Sampling rate must be between 0.0 and 1.0')
        self.rate = rate
        self.boundary = int(rate * (1 << (MAX_ID_BITS - 1)))

    def is_sampled(self, trace_id: int) -> bool:
        return ((trace_id & ID_MASK) >> 1) < self.boundary

    def should_sample(self, parameters: SamplingParameters) -> SamplingResult:
        decision = SamplingDecision.RECORD_AND_SAMPLE \
            if self.is_sampled(parameters.trace_id) else SamplingDecision.DROP
        return SamplingResult(decision, parameters.parent_trace_state, self._tags)

    def close(self):
        pass

    def __str__(self):
        return 'ProbabilisticSampler(%s)' % self.rate
