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

from collections import OrderedDict
from typing import Callable, Iterator, Optional, Tuple
from urllib import parse as urllib_parse


class TraceState(object):
    """
    Vendor-scoped key/value list carried across service boundaries with the
    trace (W3C `tracestate`). The most recently added key comes first.
    Samplers pass it through untouched.
    """

    __slots__ = ['_trace_state', '_encoder']

    def __init__(self, header_value: Optional[str] = None,
                 encoder: Optional[Callable[[str], str]] = None) -> None:
        self._trace_state: 'OrderedDict[str, str]' = OrderedDict()
        self._encoder = encoder
        if header_value:
            self.parse_from_header(header_value)

    def parse_from_header(self, value: str) -> None:
        states = urllib_parse.unquote(value).split(',')
        states.reverse()
        for state in states:
            if '=' in state:
                key, value = state.split('=', 1)
                self.add(key.strip(), value.strip(), skip_encode=True)

    def add(self, key: str, value: Optional[str] = None,
            skip_encode: bool = False) -> None:
        if not key:
            return
        if not value:
            value = self._trace_state.get(key, None)
            skip_encode = True
            if not value:
                return

        if self._encoder and skip_encode is False:
            value = self._encoder(value)

        self._trace_state[str(key)] = str(value)
        self._trace_state.move_to_end(str(key), last=False)

    def get(self, key: str) -> Optional[str]:
        return self._trace_state.get(key)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._trace_state.items())

    def get_formatted_header(self, url_parse: bool = True) -> str:
        if not self._trace_state:
            return ''
        header = ','.join(
            '{}={}'.format(key, value) for key, value in self._trace_state.items())
        if url_parse is True:
            header = urllib_parse.quote(header)
        return header

    def __len__(self):
        return len(self._trace_state)

    def __eq__(self, other):
        return isinstance(other, TraceState) and \
            list(self._trace_state.items()) == list(other._trace_state.items())

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return 'TraceState(%s)' % self.get_formatted_header(url_parse=False)
