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

import logging
from typing import Iterable, Optional

import tornado.httpclient
from threadloop import ThreadLoop

from .constants import DEFAULT_REQUEST_TIMEOUT
from .protocol import (
    RULES_PATH,
    TARGETS_PATH,
    SamplingStatisticsDocument,
    encode_rules_request,
    encode_targets_request,
)

default_logger = logging.getLogger('centralized_sampling')

JSON_HEADERS = {'Content-Type': 'application/json'}


def parse_endpoint(endpoint: str):
    """
    Splits a `host:port` endpoint. Raises ValueError when the endpoint has a
    scheme, starts with a special character or carries a non-numeric port.
    """
    if not endpoint or '://' in endpoint or '/' in endpoint:
        raise ValueError('endpoint must have the form host:port, got %r' % endpoint)
    if not endpoint[0].isalnum() and endpoint[0] != '[':
        raise ValueError('endpoint must start with a host name or address: %r' % endpoint)
    host, sep, port = endpoint.rpartition(':')
    if not sep or not host or not port.isdigit():
        raise ValueError('endpoint must have the form host:port, got %r' % endpoint)
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError('endpoint port out of range: %r' % endpoint)
    return host.strip('[]'), port_number


class SamplingClient(object):
    """
    SamplingClient talks to the sampling control plane over JSON HTTP.
    It works in tornado and non-tornado environments. If in tornado, pass
    in the ioloop, if not then SamplingClient will run one on a daemon
    thread of its own.

    Both requests return tornado futures resolving to the raw HTTP response;
    decoding is left to the caller.
    """

    def __init__(self, host: str, port: int, io_loop=None,
                 request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
                 logger: Optional[logging.Logger] = None) -> None:
        self.host = host
        self.port = int(port)
        self.request_timeout = request_timeout
        self.logger = logger or default_logger
        self._thread_loop = None
        self.io_loop = io_loop or self._create_new_thread_loop()
        self.base_url = 'http://%s:%d' % (self.host, self.port)

    @classmethod
    def from_endpoint(cls, endpoint: str, **kwargs) -> 'SamplingClient':
        host, port = parse_endpoint(endpoint)
        return cls(host, port, **kwargs)

    def _create_new_thread_loop(self):
        """
        Create a daemonized thread that will run Tornado IOLoop.
        :return: the IOLoop backed by the new thread.
        """
        self._thread_loop = ThreadLoop()
        if not self._thread_loop.is_ready():
            self._thread_loop.start()
        return self._thread_loop._io_loop

    def _post(self, path, body, timeout):
        # must run on self.io_loop: AsyncHTTPClient binds to the current loop
        http_client = tornado.httpclient.AsyncHTTPClient()
        self.logger.debug('POST %s%s', self.base_url, path)
        return http_client.fetch(
            self.base_url + path, method='POST', body=body, headers=JSON_HEADERS,
            request_timeout=timeout or self.request_timeout)

    def get_sampling_rules(self, next_token: Optional[str] = None,
                           timeout: Optional[float] = None):
        return self._post(RULES_PATH, encode_rules_request(next_token), timeout)

    def get_sampling_targets(self, documents: Iterable[SamplingStatisticsDocument],
                             timeout: Optional[float] = None):
        return self._post(TARGETS_PATH, encode_targets_request(documents), timeout)

    def close(self):
        """Stops the IOLoop thread if this client started one."""
        if self._thread_loop is not None:
            self.io_loop.add_callback(self.io_loop.stop)
            self._thread_loop = None
