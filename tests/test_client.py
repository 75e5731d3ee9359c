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

import json

import pytest
import tornado.testing
import tornado.web

from centralized_sampling.client import SamplingClient, parse_endpoint
from centralized_sampling.protocol import (
    SamplingStatisticsDocument,
    decode_rules_response,
    decode_targets_request,
    decode_targets_response,
)

test_rules = json.dumps({
    'SamplingRuleRecords': [{
        'SamplingRule': {
            'RuleName': 'Default', 'Priority': 10000, 'FixedRate': 0.05,
            'ReservoirSize': 1, 'ServiceName': '*', 'ServiceType': '*',
            'Host': '*', 'HTTPMethod': '*', 'URLPath': '*', 'Version': 1,
        },
    }],
})

received = {}


class RulesHandler(tornado.web.RequestHandler):
    def post(self):
        received['rules'] = json.loads(self.request.body)
        received['content_type'] = self.request.headers.get('Content-Type')
        self.write(test_rules)


class TargetsHandler(tornado.web.RequestHandler):
    def post(self):
        documents = decode_targets_request(self.request.body)
        received['targets'] = documents
        self.write(json.dumps({
            'SamplingTargetDocuments': [
                {'RuleName': d.rule_name, 'FixedRate': 0.1, 'Interval': 10,
                 'ReservoirQuota': d.sampled_count, 'ReservoirQuotaTTL': 60}
                for d in documents
            ],
        }))


class Test(tornado.testing.AsyncHTTPTestCase):
    application = tornado.web.Application([
        (r'/GetSamplingRules', RulesHandler),
        (r'/SamplingTargets', TargetsHandler),
    ])

    def get_app(self):
        return Test.application

    def client(self):
        return SamplingClient('127.0.0.1', self.get_http_port(), io_loop=self.io_loop)

    def test_get_sampling_rules(self):
        client = self.client()
        response = self.io_loop.run_sync(
            lambda: client.get_sampling_rules('token-1', timeout=15), timeout=15)
        rules, next_token = decode_rules_response(response.body)
        assert [r.name for r in rules] == ['Default']
        assert next_token is None
        assert received['rules'] == {'NextToken': 'token-1'}
        assert received['content_type'] == 'application/json'

    def test_get_sampling_targets(self):
        client = self.client()
        doc = SamplingStatisticsDocument('Default', 'abc', 10, 4, 1, 1500000000)
        response = self.io_loop.run_sync(
            lambda: client.get_sampling_targets([doc], timeout=15), timeout=15)
        targets = decode_targets_response(response.body)
        assert received['targets'] == [doc]
        assert targets.targets[0].rule_name == 'Default'
        assert targets.targets[0].reservoir_quota == 4

    def test_close_keeps_external_loop(self):
        client = self.client()
        client.close()
        assert client.io_loop is self.io_loop


def test_from_endpoint():
    client = SamplingClient.from_endpoint('127.0.0.1:2000', io_loop=object())
    assert client.host == '127.0.0.1'
    assert client.port == 2000
    assert client.base_url == 'http://127.0.0.1:2000'


@pytest.mark.parametrize('endpoint,expected', [
    ('127.0.0.1:2000', ('127.0.0.1', 2000)),
    ('localhost:2000', ('localhost', 2000)),
    ('xray-daemon.local:65535', ('xray-daemon.local', 65535)),
    ('[::1]:2000', ('::1', 2000)),
])
def test_parse_endpoint(endpoint, expected):
    assert parse_endpoint(endpoint) == expected


@pytest.mark.parametrize('endpoint', [
    '',
    'http://127.0.0.1:2000',
    '127.0.0.1:2000/path',
    '127.0.0.1',
    ':2000',
    '-host:2000',
    'host:port',
    'host:0',
    'host:70000',
])
def test_parse_invalid_endpoint(endpoint):
    with pytest.raises(ValueError):
        parse_endpoint(endpoint)
