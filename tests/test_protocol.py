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

from centralized_sampling.protocol import (
    RuleProperties,
    SamplingStatisticsDocument,
    SamplingTargetDocument,
    UnprocessedStatistic,
    ValidationError,
    check_unique_names,
    decode_rules_response,
    decode_targets_request,
    decode_targets_response,
    encode_rules_request,
    encode_targets_request,
)


def rule_record(name, priority=1, rate=0.05, size=1, version=1, **extra):
    rule = {
        'RuleName': name,
        'Priority': priority,
        'FixedRate': rate,
        'ReservoirSize': size,
        'ServiceName': '*',
        'ServiceType': '*',
        'Host': '*',
        'HTTPMethod': '*',
        'URLPath': '*',
        'Version': version,
    }
    rule.update(extra)
    return {'SamplingRule': rule}


def rules_body(*records, **extra):
    doc = {'SamplingRuleRecords': list(records)}
    doc.update(extra)
    return json.dumps(doc).encode('utf-8')


def test_statistics_document_survives_encoding():
    doc = SamplingStatisticsDocument(
        rule_name='r1', client_id='0123456789abcdef01234567',
        request_count=10, sampled_count=3, borrow_count=1, timestamp=1500000000)
    decoded = decode_targets_request(encode_targets_request([doc]))
    assert decoded == [doc]
    assert decoded[0].to_dict() == {
        'RuleName': 'r1',
        'ClientID': '0123456789abcdef01234567',
        'RequestCount': 10,
        'SampledCount': 3,
        'BorrowCount': 1,
        'Timestamp': 1500000000,
    }


def test_statistics_document_requires_counts():
    with pytest.raises(ValidationError):
        SamplingStatisticsDocument.from_dict({'RuleName': 'r', 'ClientID': 'c'})


def test_encode_rules_request():
    assert json.loads(encode_rules_request()) == {'NextToken': None}
    assert json.loads(encode_rules_request('abc')) == {'NextToken': 'abc'}


def test_decode_rules_response():
    body = rules_body(
        rule_record('r1', priority=2, Attributes={'user': 'vip-*'}),
        rule_record('r2', priority=1, rate=1.0, size=0),
        NextToken='page-2')
    rules, next_token = decode_rules_response(body)
    assert next_token == 'page-2'
    assert [r.name for r in rules] == ['r1', 'r2']
    assert rules[0].attributes == {'user': 'vip-*'}
    assert rules[1].fixed_rate == 1.0
    assert rules[1].reservoir_size == 0


def test_decode_rules_skips_unsupported_records():
    body = rules_body(
        rule_record(''),
        rule_record('old', version=2),
        rule_record('per-op', OperationStrategies=[{'operation': 'x'}]),
        rule_record('adaptive', StrategyType='ratelimiting'),
        rule_record('ok', StrategyType='reservoir'),
    )
    rules, next_token = decode_rules_response(body)
    assert [r.name for r in rules] == ['ok']
    assert next_token is None


def test_decode_rules_missing_fields_default_to_wildcard():
    body = rules_body({'SamplingRule': {'RuleName': 'bare', 'Version': 1}})
    rules, _ = decode_rules_response(body)
    rule = rules[0]
    assert rule.service_name == rule.host == rule.url_path == '*'
    assert rule.priority == 0
    assert rule.fixed_rate == 0.0


@pytest.mark.parametrize('record', [
    rule_record('r', rate=1.5),
    rule_record('r', rate=-0.1),
    rule_record('r', priority=-1),
    rule_record('r', size=-3),
    rule_record('r', size='ten'),
    rule_record('r', Attributes=['x']),
])
def test_decode_rules_rejects_invalid_record(record):
    with pytest.raises(ValidationError):
        decode_rules_response(rules_body(record))


@pytest.mark.parametrize('body', [b'not json', b'[]', b'{"SamplingRuleRecords": 5}'])
def test_decode_rules_rejects_malformed_body(body):
    with pytest.raises(ValidationError):
        decode_rules_response(body)


def test_check_unique_names():
    check_unique_names([RuleProperties('a'), RuleProperties('b')])
    with pytest.raises(ValidationError):
        check_unique_names([RuleProperties('a'), RuleProperties('a', priority=3)])


def test_rule_properties_equality_and_order():
    a = RuleProperties('a', priority=1, fixed_rate=0.1)
    assert a == RuleProperties('a', priority=1, fixed_rate=0.1)
    assert a != RuleProperties('a', priority=1, fixed_rate=0.2)
    assert RuleProperties('B').sort_key() < RuleProperties('a').sort_key()
    assert RuleProperties('z', priority=1).sort_key() < RuleProperties('a', priority=2).sort_key()


def test_decode_targets_response():
    body = json.dumps({
        'LastRuleModification': 1500000000.0,
        'SamplingTargetDocuments': [
            {'RuleName': 'r1', 'FixedRate': 0.1, 'Interval': 5,
             'ReservoirQuota': 3, 'ReservoirQuotaTTL': 20},
            {'RuleName': 'r2', 'Interval': 8},
            {'RuleName': 'r3'},
        ],
        'UnprocessedStatistics': [
            {'RuleName': 'r4', 'ErrorCode': '400', 'Message': 'unknown rule'},
            {'RuleName': 'r5', 'ErrorCode': '500', 'Message': 'try later'},
        ],
    })
    response = decode_targets_response(body)
    assert response.last_rule_modification == 1500000000
    assert response.min_interval == 5
    r1, r2, r3 = response.targets
    assert (r1.fixed_rate, r1.interval, r1.reservoir_quota, r1.reservoir_quota_ttl) == \
        (0.1, 5, 3, 20)
    assert r3.fixed_rate is None and r3.interval is None and r3.reservoir_quota is None
    first, second = response.unprocessed
    assert first.requires_refresh and not first.is_transient
    assert second.is_transient and not second.requires_refresh


def test_decode_empty_targets_response():
    response = decode_targets_response(b'{}')
    assert response.targets == []
    assert response.unprocessed == []
    assert response.last_rule_modification is None
    assert response.min_interval is None


@pytest.mark.parametrize('target', [
    {'FixedRate': 0.1},
    {'RuleName': 'r', 'FixedRate': 2.0},
    {'RuleName': 'r', 'Interval': -10},
    {'RuleName': 'r', 'Interval': 0},
    {'RuleName': 'r', 'ReservoirQuota': -1},
    {'RuleName': 'r', 'ReservoirQuotaTTL': -1},
])
def test_decode_targets_rejects_whole_response(target):
    body = json.dumps({'SamplingTargetDocuments': [{'RuleName': 'ok'}, target]})
    with pytest.raises(ValidationError):
        decode_targets_response(body)


def test_target_document_from_dict():
    target = SamplingTargetDocument.from_dict({'RuleName': 'r', 'ReservoirQuota': 4.0})
    assert target.reservoir_quota == 4
    assert target.rule_name == 'r'


def test_unprocessed_without_code():
    stat = UnprocessedStatistic.from_dict({'RuleName': 'r'})
    assert not stat.is_transient
    assert not stat.requires_refresh
