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

from . import __version__


# Number of trace id bits consulted by the probabilistic decision
MAX_ID_BITS = 64

# How often the remote controlled sampler polls for the full rule set
DEFAULT_SAMPLING_INTERVAL = 60

# Tick of the target loop when no target has specified a shorter interval
DEFAULT_TARGETS_POLLING_INTERVAL = 1

# Reporting interval of a rule before the control plane assigns one
DEFAULT_RESERVOIR_INTERVAL = 10

# A manifest not refreshed within this many seconds is considered stale
DEFAULT_MANIFEST_TTL = 3600

# Deadline of every control plane request and of the shutdown drain
DEFAULT_REQUEST_TIMEOUT = 10

# Probability used until the first rule set is received
DEFAULT_SAMPLING_PROBABILITY = 0.001

DEFAULT_ENDPOINT = '127.0.0.1:2000'

# Only rule records with this version are accepted
SUPPORTED_RULE_VERSION = 1

# Name and priority of the catch-all rule installed before the first refresh
DEFAULT_RULE_NAME = 'Default'
DEFAULT_RULE_PRIORITY = 10000

CLIENT_VERSION = 'Python-%s' % __version__

# the type of sampler that always makes the same decision.
SAMPLER_TYPE_CONST = 'const'

# the type of sampler that samples traces with a certain fixed probability.
SAMPLER_TYPE_PROBABILISTIC = 'probabilistic'

# the type of sampler that follows rules served by the control plane.
SAMPLER_TYPE_REMOTE = 'remote'

SAMPLER_TYPE_TAG_KEY = 'sampler.type'
SAMPLER_PARAM_TAG_KEY = 'sampler.param'

# Span attributes consulted by rule matching
HTTP_HOST_KEY = 'http.host'
HTTP_METHOD_KEY = 'http.method'
HTTP_URL_KEY = 'http.url'
HTTP_TARGET_KEY = 'http.target'
