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

import mock

from centralized_sampling.metrics import MetricsFactory, SamplerMetrics


def test_metrics_factory_noop():
    mf = MetricsFactory()
    mf.create_counter('foo')(1)
    mf.create_gauge('foo')(1)


def test_sampler_metrics_names():
    mf = mock.MagicMock()
    SamplerMetrics(mf)
    counters = {(c[1]['name'], tuple(sorted((c[1].get('tags') or {}).items())))
                for c in mf.create_counter.call_args_list}
    assert ('centralized_sampling:sampler_decisions', (('result', 'sampled'),)) in counters
    assert ('centralized_sampling:sampler_updates', (('result', 'err'),)) in counters
    assert ('centralized_sampling:sampler_targets', (('result', 'ok'),)) in counters
    assert mf.create_gauge.call_args == mock.call(name='centralized_sampling:sampler_rules')
