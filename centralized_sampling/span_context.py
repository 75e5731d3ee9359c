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

import opentracing
from typing import Dict, Optional

from .trace_state import TraceState

SAMPLED_FLAG = 0x01


class SpanContext(opentracing.SpanContext):
    """
    Parent context handed to the sampler: the identity of the parent span,
    its sampling flag and the vendor trace-state to be propagated.
    """

    __slots__ = ['trace_id', 'span_id', 'flags', 'trace_state', '_baggage']

    def __init__(
        self,
        trace_id: int,
        span_id: int,
        flags: int = 0,
        trace_state: Optional[TraceState] = None,
        baggage: Optional[Dict[str, str]] = None,
    ) -> None:
        self.trace_id = trace_id
        self.span_id = span_id
        self.flags = flags
        self.trace_state = trace_state
        self._baggage = baggage or opentracing.SpanContext.EMPTY_BAGGAGE

    @property
    def baggage(self) -> Dict[str, str]:
        return self._baggage or opentracing.SpanContext.EMPTY_BAGGAGE

    @property
    def sampled(self) -> bool:
        return bool(self.flags & SAMPLED_FLAG)

    @property
    def has_trace(self) -> bool:
        return bool(self.trace_id and self.span_id)

    def with_baggage_item(self, key: str, value: Optional[str]) -> 'SpanContext':
        baggage = dict(self._baggage)
        if value is not None:
            baggage[key] = value
        else:
            baggage.pop(key, None)
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            flags=self.flags,
            trace_state=self.trace_state,
            baggage=baggage,
        )
