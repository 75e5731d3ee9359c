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

__version__ = '1.0.0'

from .config import Config  # noqa
from .clock import Clock, MockClock  # noqa
from .manifest import Manifest  # noqa
from .remote_sampler import RemoteControlledSampler  # noqa
from .sampler import ConstSampler  # noqa
from .sampler import ProbabilisticSampler  # noqa
from .sampler import SamplingDecision  # noqa
from .sampler import SamplingParameters  # noqa
from .sampler import SamplingResult  # noqa
from .span_context import SpanContext  # noqa
from .trace_state import TraceState  # noqa
