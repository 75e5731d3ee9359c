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

"""
Wire format of the sampling control plane.

Both requests are JSON POSTs. Every decoder validates the whole message
before anything is handed to the manifest, so a bad response is rejected
as a unit and never half-applied.
"""
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .constants import SUPPORTED_RULE_VERSION

RULES_PATH = '/GetSamplingRules'
TARGETS_PATH = '/SamplingTargets'

STRATEGY_PROBABILISTIC = 'probabilistic'
STRATEGY_RESERVOIR = 'reservoir'
SUPPORTED_STRATEGIES = (STRATEGY_PROBABILISTIC, STRATEGY_RESERVOIR)


class ValidationError(ValueError):
    """A control plane message is malformed or carries out-of-range values."""


class UnsupportedStrategyError(ValidationError):
    """A rule asks for a strategy this sampler does not implement."""


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_int(value, field, minimum=None):
    # JSON numbers may arrive as 5.0
    if _is_number(value) and float(value).is_integer():
        value = int(value)
    if not _is_int(value):
        raise ValidationError('%s must be an integer, got %r' % (field, value))
    if minimum is not None and value < minimum:
        raise ValidationError('%s must be >= %s, got %s' % (field, minimum, value))
    return value


def _as_rate(value, field):
    if not _is_number(value):
        raise ValidationError('%s must be a number, got %r' % (field, value))
    if not 0.0 <= value <= 1.0:
        raise ValidationError('%s not in [0, 1] range: %s' % (field, value))
    return float(value)


def _as_str(value, field, default=None):
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError('%s must be a string, got %r' % (field, value))
    return value


def _loads(body) -> Dict[str, Any]:
    if isinstance(body, bytes):
        body = body.decode('utf-8')
    try:
        doc = json.loads(body)
    except ValueError as e:
        raise ValidationError('response is not valid JSON: %s' % e)
    if not isinstance(doc, dict):
        raise ValidationError('response must be a JSON object')
    return doc


class RuleProperties(object):
    """Immutable description of one sampling rule, as served by the control plane."""

    __slots__ = ['name', 'priority', 'fixed_rate', 'reservoir_size',
                 'service_name', 'service_type', 'host', 'http_method',
                 'url_path', 'version', 'attributes']

    def __init__(self, name: str, priority: int = 0, fixed_rate: float = 0.0,
                 reservoir_size: int = 0, service_name: str = '*',
                 service_type: str = '*', host: str = '*',
                 http_method: str = '*', url_path: str = '*',
                 version: int = SUPPORTED_RULE_VERSION,
                 attributes: Optional[Dict[str, str]] = None) -> None:
        if priority < 0:
            raise ValidationError('Priority must not be negative: %s' % priority)
        if reservoir_size < 0:
            raise ValidationError('ReservoirSize must not be negative: %s' % reservoir_size)
        self.name = name
        self.priority = priority
        self.fixed_rate = _as_rate(fixed_rate, 'FixedRate')
        self.reservoir_size = reservoir_size
        self.service_name = service_name
        self.service_type = service_type
        self.host = host
        self.http_method = http_method
        self.url_path = url_path
        self.version = version
        self.attributes = dict(attributes or {})

    @classmethod
    def from_dict(cls, record: Dict[str, Any]) -> 'RuleProperties':
        if not isinstance(record, dict):
            raise ValidationError('SamplingRule must be an object')

        strategy = record.get('StrategyType')
        if strategy is not None and strategy not in SUPPORTED_STRATEGIES:
            raise UnsupportedStrategyError(
                'Unsupported sampling strategy type: %s' % strategy)
        if record.get('OperationStrategies'):
            raise UnsupportedStrategyError(
                'Per-operation sampling strategies are not supported')

        attributes = record.get('Attributes') or {}
        if not isinstance(attributes, dict):
            raise ValidationError('Attributes must be an object')
        for key, value in attributes.items():
            _as_str(value, 'Attributes[%s]' % key)

        return cls(
            name=_as_str(record.get('RuleName'), 'RuleName', ''),
            priority=_as_int(record.get('Priority', 0), 'Priority', 0),
            fixed_rate=_as_rate(record.get('FixedRate', 0.0), 'FixedRate'),
            reservoir_size=_as_int(record.get('ReservoirSize', 0), 'ReservoirSize', 0),
            service_name=_as_str(record.get('ServiceName'), 'ServiceName', '*'),
            service_type=_as_str(record.get('ServiceType'), 'ServiceType', '*'),
            host=_as_str(record.get('Host'), 'Host', '*'),
            http_method=_as_str(record.get('HTTPMethod'), 'HTTPMethod', '*'),
            url_path=_as_str(record.get('URLPath'), 'URLPath', '*'),
            version=_as_int(record.get('Version', 0), 'Version'),
            attributes=attributes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'RuleName': self.name,
            'Priority': self.priority,
            'FixedRate': self.fixed_rate,
            'ReservoirSize': self.reservoir_size,
            'ServiceName': self.service_name,
            'ServiceType': self.service_type,
            'Host': self.host,
            'HTTPMethod': self.http_method,
            'URLPath': self.url_path,
            'Version': self.version,
            'Attributes': dict(self.attributes),
        }

    def sort_key(self) -> Tuple[int, bytes]:
        return self.priority, self.name.encode('utf-8')

    def __eq__(self, other):
        return isinstance(other, RuleProperties) and \
            self.to_dict() == other.to_dict()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self.name, self.priority, self.fixed_rate))

    def __str__(self):
        return 'RuleProperties(%s, %s, %s, %s)' \
            % (self.name, self.priority, self.fixed_rate, self.reservoir_size)


class SamplingStatisticsDocument(object):
    """Counters of one rule over one reporting window."""

    __slots__ = ['rule_name', 'client_id', 'request_count',
                 'sampled_count', 'borrow_count', 'timestamp']

    def __init__(self, rule_name: str, client_id: str, request_count: int,
                 sampled_count: int, borrow_count: int, timestamp: int) -> None:
        self.rule_name = rule_name
        self.client_id = client_id
        self.request_count = request_count
        self.sampled_count = sampled_count
        self.borrow_count = borrow_count
        self.timestamp = timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            'RuleName': self.rule_name,
            'ClientID': self.client_id,
            'RequestCount': self.request_count,
            'SampledCount': self.sampled_count,
            'BorrowCount': self.borrow_count,
            'Timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> 'SamplingStatisticsDocument':
        if not isinstance(doc, dict):
            raise ValidationError('statistics document must be an object')
        rule_name = _as_str(doc.get('RuleName'), 'RuleName')
        client_id = _as_str(doc.get('ClientID'), 'ClientID')
        if not rule_name or client_id is None:
            raise ValidationError('statistics document requires RuleName and ClientID')
        return cls(
            rule_name=rule_name,
            client_id=client_id,
            request_count=_as_int(doc.get('RequestCount'), 'RequestCount', 0),
            sampled_count=_as_int(doc.get('SampledCount'), 'SampledCount', 0),
            borrow_count=_as_int(doc.get('BorrowCount'), 'BorrowCount', 0),
            timestamp=_as_int(doc.get('Timestamp'), 'Timestamp', 0),
        )

    def __eq__(self, other):
        return isinstance(other, SamplingStatisticsDocument) and \
            self.to_dict() == other.to_dict()

    def __ne__(self, other):
        return not self.__eq__(other)

    def __repr__(self):
        return 'SamplingStatisticsDocument(%s)' % self.to_dict()


class SamplingTargetDocument(object):
    """New reservoir parameters for one rule. Absent fields are None."""

    __slots__ = ['rule_name', 'fixed_rate', 'interval',
                 'reservoir_quota', 'reservoir_quota_ttl']

    def __init__(self, rule_name: str, fixed_rate: Optional[float] = None,
                 interval: Optional[int] = None,
                 reservoir_quota: Optional[int] = None,
                 reservoir_quota_ttl: Optional[int] = None) -> None:
        self.rule_name = rule_name
        self.fixed_rate = fixed_rate
        self.interval = interval
        self.reservoir_quota = reservoir_quota
        self.reservoir_quota_ttl = reservoir_quota_ttl

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> 'SamplingTargetDocument':
        if not isinstance(doc, dict):
            raise ValidationError('target document must be an object')
        rule_name = _as_str(doc.get('RuleName'), 'RuleName')
        if not rule_name:
            raise ValidationError('invalid sampling target: missing rule name')

        fixed_rate = doc.get('FixedRate')
        if fixed_rate is not None:
            fixed_rate = _as_rate(fixed_rate, 'FixedRate')
        interval = doc.get('Interval')
        if interval is not None:
            interval = _as_int(interval, 'Interval', 1)
        quota = doc.get('ReservoirQuota')
        if quota is not None:
            quota = _as_int(quota, 'ReservoirQuota', 0)
        ttl = doc.get('ReservoirQuotaTTL')
        if ttl is not None:
            if not _is_number(ttl) or ttl < 0:
                raise ValidationError('ReservoirQuotaTTL must not be negative: %r' % ttl)
            ttl = int(ttl)

        return cls(rule_name, fixed_rate=fixed_rate, interval=interval,
                   reservoir_quota=quota, reservoir_quota_ttl=ttl)

    def __repr__(self):
        return 'SamplingTargetDocument(%s, %s, %s, %s, %s)' % (
            self.rule_name, self.fixed_rate, self.interval,
            self.reservoir_quota, self.reservoir_quota_ttl)


class UnprocessedStatistic(object):
    __slots__ = ['rule_name', 'error_code', 'message']

    def __init__(self, rule_name: Optional[str], error_code: Optional[str],
                 message: Optional[str] = None) -> None:
        self.rule_name = rule_name
        self.error_code = error_code
        self.message = message

    @classmethod
    def from_dict(cls, doc: Dict[str, Any]) -> 'UnprocessedStatistic':
        if not isinstance(doc, dict):
            raise ValidationError('unprocessed statistic must be an object')
        return cls(
            rule_name=_as_str(doc.get('RuleName'), 'RuleName'),
            error_code=_as_str(doc.get('ErrorCode'), 'ErrorCode'),
            message=_as_str(doc.get('Message'), 'Message'),
        )

    @property
    def is_transient(self) -> bool:
        return bool(self.error_code) and self.error_code.startswith('5')

    @property
    def requires_refresh(self) -> bool:
        return bool(self.error_code) and self.error_code.startswith('4')


class SamplingTargetsResponse(object):
    __slots__ = ['last_rule_modification', 'targets', 'unprocessed']

    def __init__(self, last_rule_modification: Optional[int] = None,
                 targets: Optional[List[SamplingTargetDocument]] = None,
                 unprocessed: Optional[List[UnprocessedStatistic]] = None) -> None:
        self.last_rule_modification = last_rule_modification
        self.targets = targets or []
        self.unprocessed = unprocessed or []

    @property
    def min_interval(self) -> Optional[int]:
        intervals = [t.interval for t in self.targets if t.interval is not None]
        return min(intervals) if intervals else None


def encode_rules_request(next_token: Optional[str] = None) -> bytes:
    return json.dumps({'NextToken': next_token}).encode('utf-8')


def encode_targets_request(documents: Iterable[SamplingStatisticsDocument]) -> bytes:
    return json.dumps({
        'SamplingStatisticsDocuments': [d.to_dict() for d in documents],
    }).encode('utf-8')


def decode_targets_request(body) -> List[SamplingStatisticsDocument]:
    doc = _loads(body)
    documents = doc.get('SamplingStatisticsDocuments') or []
    if not isinstance(documents, list):
        raise ValidationError('SamplingStatisticsDocuments must be a list')
    return [SamplingStatisticsDocument.from_dict(d) for d in documents]


def decode_rules_response(body, logger=None) -> Tuple[List[RuleProperties], Optional[str]]:
    """
    Returns the usable rules of one page and the cursor of the next page.

    Records without a name, with an unsupported version or with an
    unsupported strategy are skipped. Any other invalid record rejects the
    whole page.
    """
    doc = _loads(body)
    records = doc.get('SamplingRuleRecords') or []
    if not isinstance(records, list):
        raise ValidationError('SamplingRuleRecords must be a list')

    rules = []
    for record in records:
        if not isinstance(record, dict):
            raise ValidationError('SamplingRuleRecord must be an object')
        raw = record.get('SamplingRule')
        if not isinstance(raw, dict):
            raise ValidationError('SamplingRuleRecord without SamplingRule')
        name = raw.get('RuleName')
        if not name:
            if logger:
                logger.debug('Skipping sampling rule without rule name')
            continue
        if raw.get('Version') != SUPPORTED_RULE_VERSION:
            if logger:
                logger.debug('Skipping sampling rule %s with unsupported version %s',
                             name, raw.get('Version'))
            continue
        try:
            rules.append(RuleProperties.from_dict(raw))
        except UnsupportedStrategyError as e:
            if logger:
                logger.warning('Skipping sampling rule %s: %s', name, e)

    next_token = _as_str(doc.get('NextToken'), 'NextToken')
    return rules, next_token or None


def check_unique_names(rules: Iterable[RuleProperties]) -> None:
    seen = set()
    for rule in rules:
        if rule.name in seen:
            raise ValidationError('duplicate sampling rule name: %s' % rule.name)
        seen.add(rule.name)


def decode_targets_response(body) -> SamplingTargetsResponse:
    doc = _loads(body)

    last_modification = doc.get('LastRuleModification')
    if last_modification is not None:
        if not _is_number(last_modification):
            raise ValidationError(
                'LastRuleModification must be a number, got %r' % last_modification)
        last_modification = int(last_modification)

    targets = doc.get('SamplingTargetDocuments') or []
    unprocessed = doc.get('UnprocessedStatistics') or []
    if not isinstance(targets, list) or not isinstance(unprocessed, list):
        raise ValidationError('SamplingTargetDocuments and UnprocessedStatistics must be lists')

    return SamplingTargetsResponse(
        last_rule_modification=last_modification,
        targets=[SamplingTargetDocument.from_dict(t) for t in targets],
        unprocessed=[UnprocessedStatistic.from_dict(u) for u in unprocessed],
    )
