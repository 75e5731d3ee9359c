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
from threading import Lock
from typing import Iterable, List, Optional, Tuple

from .clock import Clock
from .constants import (
    DEFAULT_MANIFEST_TTL,
    DEFAULT_RULE_NAME,
    DEFAULT_RULE_PRIORITY,
    SUPPORTED_RULE_VERSION,
)
from .protocol import (
    RuleProperties,
    SamplingStatisticsDocument,
    SamplingTargetDocument,
    check_unique_names,
)
from .rule import Rule
from .sampler import SamplingDecision, SamplingParameters, SamplingResult

default_logger = logging.getLogger('centralized_sampling')


def default_rule(rate: float) -> RuleProperties:
    """Catch-all probabilistic rule used until the control plane answers."""
    return RuleProperties(
        name=DEFAULT_RULE_NAME,
        priority=DEFAULT_RULE_PRIORITY,
        fixed_rate=rate,
        reservoir_size=0,
    )


class Manifest(object):
    """
    The process-wide ordered rule set.

    Decisions read `self._rules` once per call and never lock; the tuple is
    only ever replaced as a whole, so a caller sees either the old or the
    new rule set. Writers (the control loop) serialize on `_update_lock`.
    """

    def __init__(self, rules: Optional[Iterable[RuleProperties]] = None,
                 service_name: str = '', cloud_platform: str = '',
                 clock: Optional[Clock] = None,
                 ttl: int = DEFAULT_MANIFEST_TTL,
                 logger: Optional[logging.Logger] = None) -> None:
        self.service_name = service_name
        self.cloud_platform = cloud_platform
        self.clock = clock or Clock()
        self.ttl = ttl
        self.logger = logger or default_logger
        self.refreshed_at = 0
        self._update_lock = Lock()
        self._rules: Tuple[Rule, ...] = tuple(
            Rule(p) for p in sorted(rules or [], key=RuleProperties.sort_key))

    @property
    def rules(self) -> Tuple[Rule, ...]:
        return self._rules

    def match(self, parameters: SamplingParameters) -> Optional[Rule]:
        for rule in self._rules:
            if rule.matches(parameters, self.service_name, self.cloud_platform):
                return rule
        return None

    def should_sample(self, parameters: SamplingParameters,
                      now: Optional[int] = None) -> SamplingResult:
        rule = self.match(parameters)
        if rule is None:
            return SamplingResult(SamplingDecision.DROP,
                                  parameters.parent_trace_state)
        return rule.sample(parameters, self.clock.now() if now is None else now)

    def snapshots(self, now: int,
                  client_id: Optional[str] = None) -> List[SamplingStatisticsDocument]:
        return [rule.snapshot(now, client_id) for rule in self._rules]

    def due_snapshots(self, now: int,
                      client_id: Optional[str] = None) -> List[SamplingStatisticsDocument]:
        """Snapshots only the rules whose reporting interval has elapsed."""
        return [rule.snapshot(now, client_id)
                for rule in self._rules if rule.due(now)]

    def replace(self, properties: Iterable[RuleProperties],
                now: Optional[int] = None) -> None:
        """
        Installs a new rule set in a single step.

        Rules without a name or with an unsupported version are dropped.
        Duplicate names reject the whole set with ValidationError. A rule
        whose properties did not change keeps its reservoir and counters.
        """
        accepted = []
        for p in properties:
            if not p.name:
                self.logger.debug('Dropping sampling rule without rule name')
                continue
            if p.version != SUPPORTED_RULE_VERSION:
                self.logger.debug('Dropping sampling rule %s with version %s',
                                  p.name, p.version)
                continue
            accepted.append(p)
        check_unique_names(accepted)
        accepted.sort(key=RuleProperties.sort_key)

        with self._update_lock:
            current = {rule.name: rule for rule in self._rules}
            rules = []
            for p in accepted:
                existing = current.get(p.name)
                if existing is not None and existing.properties == p:
                    rules.append(existing)
                else:
                    rules.append(Rule(p))
            self._rules = tuple(rules)
            self.refreshed_at = self.clock.now() if now is None else now

    def update_reservoirs(self, targets: Iterable[SamplingTargetDocument],
                          now: Optional[int] = None) -> None:
        if now is None:
            now = self.clock.now()
        with self._update_lock:
            by_name = {rule.name: rule for rule in self._rules}
            for target in targets:
                rule = by_name.get(target.rule_name)
                if rule is None:
                    self.logger.debug('Ignoring sampling target for unknown rule %s',
                                      target.rule_name)
                    continue
                rule.apply_target(target, now)
                self.logger.debug('Applied sampling target %s', target)

    def stale(self, now: Optional[int] = None) -> bool:
        if now is None:
            now = self.clock.now()
        return self.refreshed_at < now - self.ttl

    def __len__(self):
        return len(self._rules)

    def __str__(self):
        return 'Manifest(%s)' % ', '.join(rule.name for rule in self._rules)
