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

import concurrent.futures
import logging
import random
from datetime import timedelta
from threading import Lock

import tornado.gen

from .clock import Clock
from .constants import (
    DEFAULT_MANIFEST_TTL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SAMPLING_INTERVAL,
    DEFAULT_SAMPLING_PROBABILITY,
    DEFAULT_TARGETS_POLLING_INTERVAL,
)
from .manifest import Manifest, default_rule
from .metrics import MetricsFactory, SamplerMetrics
from .protocol import (
    ValidationError,
    decode_rules_response,
    decode_targets_response,
)
from .sampler import Sampler, SamplingParameters, SamplingResult
from .utils import ErrorReporter, generate_client_id

default_logger = logging.getLogger('centralized_sampling')

# Upper bound on NextToken pages followed within one rule refresh
MAX_RULE_PAGES = 100


class RemoteControlledSampler(Sampler):
    """
    Samples according to rules and reservoir quotas served by a remote
    control plane, and keeps them fresh in the background.

    Decisions are taken on the caller's thread against the current manifest
    and never wait for the network. The control loop runs on the channel's
    IOLoop: every tick it reports the statistics of the rules that are due,
    applies the returned targets, and reloads the full rule set on start-up,
    when the control plane says the rules changed, and every
    `sampling_refresh_interval` seconds. Failures keep the current manifest.
    """

    def __init__(self, channel, service_name, **kwargs):
        """
        :param channel: SamplingClient (or anything with the same
            get_sampling_rules/get_sampling_targets/io_loop surface)
        :param service_name: name of this application, matched by rules
        :param kwargs: optional parameters
            - cloud_platform: matched against the rules' service type
            - init_sampling_rate: rate of the catch-all rule used until the
              first successful refresh, default 0.001
            - sampling_refresh_interval: seconds between full rule reloads
            - targets_polling_interval: longest tick of the control loop
            - manifest_ttl: seconds after which the manifest counts as stale
            - request_timeout: deadline of each request and of close()
            - clock: Clock instance
            - client_id: reporter id, random by default
            - logger:
            - metrics_factory: used to emit sampler metrics
            - error_reporter: ErrorReporter instance
            - error_callback: called with every control path exception
        """
        super(RemoteControlledSampler, self).__init__()
        self._channel = channel
        self.service_name = service_name
        self.cloud_platform = kwargs.get('cloud_platform') or ''
        self.logger = kwargs.get('logger') or default_logger
        self.clock = kwargs.get('clock') or Clock()
        self.client_id = kwargs.get('client_id') or generate_client_id()
        self.metrics_factory = kwargs.get('metrics_factory') or MetricsFactory()
        self.metrics = SamplerMetrics(self.metrics_factory)
        self.error_reporter = kwargs.get('error_reporter') or \
            ErrorReporter(self.metrics_factory, logger=self.logger)
        self.error_callback = kwargs.get('error_callback')

        self.init_sampling_rate = kwargs.get(
            'init_sampling_rate', DEFAULT_SAMPLING_PROBABILITY)
        if not 0.0 <= self.init_sampling_rate <= 1.0:
            raise ValueError('init_sampling_rate must be between 0.0 and 1.0, got %s'
                             % self.init_sampling_rate)
        self.sampling_refresh_interval = kwargs.get(
            'sampling_refresh_interval', DEFAULT_SAMPLING_INTERVAL)
        self.default_polling_interval = kwargs.get(
            'targets_polling_interval', DEFAULT_TARGETS_POLLING_INTERVAL)
        self.request_timeout = kwargs.get('request_timeout', DEFAULT_REQUEST_TIMEOUT)
        manifest_ttl = kwargs.get('manifest_ttl', DEFAULT_MANIFEST_TTL)
        for name, value in (('sampling_refresh_interval', self.sampling_refresh_interval),
                            ('targets_polling_interval', self.default_polling_interval),
                            ('request_timeout', self.request_timeout),
                            ('manifest_ttl', manifest_ttl)):
            if value <= 0:
                raise ValueError('%s must be positive, got %s' % (name, value))
        self.polling_interval = self.default_polling_interval

        self.manifest = Manifest(
            [default_rule(self.init_sampling_rate)],
            service_name=service_name,
            cloud_platform=self.cloud_platform,
            clock=self.clock,
            ttl=manifest_ttl,
            logger=self.logger,
        )

        # touched only on the IOLoop thread
        self._rules_stale = True
        self._in_flight = None

        self.lock = Lock()
        self.running = True
        self._timeout_handle = None

        self.io_loop = channel.io_loop
        if not self.io_loop:
            self.logger.error(
                'Cannot acquire IOLoop, sampling rules will not be updated')
        else:
            # according to IOLoop docs, it's not safe to use timeout methods
            # unless already running in the loop, so we use `add_callback`
            self.io_loop.add_callback(self._init_polling)

    def should_sample(self, parameters: SamplingParameters) -> SamplingResult:
        now = self.clock.now()
        result = self.manifest.should_sample(parameters, now)
        if self.manifest.stale(now):
            self.metrics.stale_decisions(1)
        if result.sampled:
            self.metrics.decisions_sampled(1)
        else:
            self.metrics.decisions_not_sampled(1)
        return result

    def _init_polling(self):
        """
        Bootstrap polling.

        To avoid spiky traffic from a fleet started at once, we use a random
        delay before the first cycle.
        """
        with self.lock:
            if not self.running:
                return
            delay = random.Random().random() * self.polling_interval
            self._timeout_handle = self.io_loop.call_later(delay, self._tick)
        self.logger.info('Delaying sampling rules polling by %.2f sec', delay)

    def _tick(self):
        with self.lock:
            self._timeout_handle = None
            if not self.running:
                return
        if self._in_flight is not None and not self._in_flight.done():
            self.logger.debug('Sampling refresh still in flight, skipping tick')
        else:
            self._in_flight = self._run_cycle()
        self._schedule_next_tick()

    def _schedule_next_tick(self):
        with self.lock:
            if self.running:
                self._timeout_handle = self.io_loop.call_later(
                    self.polling_interval, self._tick)

    @tornado.gen.coroutine
    def _run_cycle(self):
        now = self.clock.now()
        if self._rules_due(now):
            self._rules_stale = True

        if not self._rules_stale:
            refresh = yield self._refresh_targets(now)
            if refresh:
                self._rules_stale = True

        if self._rules_stale:
            yield self._refresh_rules()

    def _rules_due(self, now):
        refreshed_at = self.manifest.refreshed_at
        return now >= refreshed_at + self.sampling_refresh_interval or \
            self.manifest.stale(now)

    @tornado.gen.coroutine
    def _refresh_targets(self, now):
        """
        Reports due statistics and applies the returned targets.
        Resolves to True when the rule set must be reloaded.
        """
        snapshots = self.manifest.due_snapshots(now, self.client_id)
        if not snapshots:
            return False

        self.logger.debug('Reporting sampling statistics for %d rules', len(snapshots))
        try:
            response = yield self._channel.get_sampling_targets(
                snapshots, timeout=self.request_timeout)
            targets = decode_targets_response(response.body)
        except Exception as e:
            # the snapshot already reset the counters, these statistics are lost
            self.metrics.targets_update_failed(1)
            self._report_error(
                e, 'Fail to get sampling targets from control plane: %s', e)
            return False

        self.manifest.update_reservoirs(targets.targets, now)
        self.metrics.targets_updated(1)

        min_interval = targets.min_interval
        if min_interval is not None:
            self.polling_interval = min(self.default_polling_interval, min_interval)
        else:
            self.polling_interval = self.default_polling_interval

        refresh = False
        for stat in targets.unprocessed:
            self.logger.debug(
                'Unprocessed sampling statistics for rule %s: %s %s',
                stat.rule_name, stat.error_code, stat.message)
            if stat.requires_refresh:
                refresh = True

        modified = targets.last_rule_modification
        if modified is not None and modified > self.manifest.refreshed_at:
            refresh = True
        return refresh

    @tornado.gen.coroutine
    def _refresh_rules(self):
        self.logger.debug('Requesting sampling rules refresh')
        rules = []
        next_token = None
        seen_tokens = set()
        try:
            for _ in range(MAX_RULE_PAGES):
                response = yield self._channel.get_sampling_rules(
                    next_token, timeout=self.request_timeout)
                page, next_token = decode_rules_response(response.body, self.logger)
                rules.extend(page)
                if not next_token:
                    break
                if next_token in seen_tokens:
                    raise ValidationError('repeated NextToken %s' % next_token)
                seen_tokens.add(next_token)
            else:
                raise ValidationError('more than %d pages of sampling rules' % MAX_RULE_PAGES)
            self.manifest.replace(rules, self.clock.now())
        except Exception as e:
            self.metrics.rules_update_failed(1)
            self._report_error(
                e, 'Fail to get sampling rules from control plane: %s', e)
            return

        self._rules_stale = False
        self.metrics.rules_updated(1)
        self.metrics.rules(len(self.manifest))
        self.logger.info('Sampling rules set to %s', self.manifest)

    def _report_error(self, exc, *args):
        self.error_reporter.error(SamplerMetrics.SAMPLER_ERRORS, 1, *args)
        if self.error_callback is None:
            return
        try:
            self.error_callback(exc)
        except Exception:
            self.logger.exception('Sampling error callback failed')

    def close(self):
        """
        Stops polling and releases the channel. Returns a Future resolved
        once an in-flight refresh completed, or after request_timeout.
        """
        with self.lock:
            self.running = False

        future = concurrent.futures.Future()
        if not self.io_loop:
            self._close_channel()
            future.set_result(True)
        else:
            self.io_loop.add_callback(self._shutdown, future)
        return future

    def _close_channel(self):
        close = getattr(self._channel, 'close', None)
        if callable(close):
            close()

    @tornado.gen.coroutine
    def _shutdown(self, future):
        with self.lock:
            handle, self._timeout_handle = self._timeout_handle, None
        if handle is not None:
            self.io_loop.remove_timeout(handle)

        in_flight = self._in_flight
        if in_flight is not None and not in_flight.done():
            try:
                yield tornado.gen.with_timeout(
                    timedelta(seconds=self.request_timeout), in_flight)
            except tornado.gen.TimeoutError:
                self.logger.warning(
                    'Abandoning sampling refresh still running after %s sec',
                    self.request_timeout)

        self._close_channel()
        future.set_result(True)

    def __str__(self):
        return 'RemoteControlledSampler(%s, %s)' % (self.service_name, self.manifest)
