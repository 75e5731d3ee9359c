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
import os
from typing import Any, Optional

from .client import SamplingClient, parse_endpoint
from .constants import (
    DEFAULT_ENDPOINT,
    DEFAULT_MANIFEST_TTL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SAMPLING_INTERVAL,
    DEFAULT_SAMPLING_PROBABILITY,
    DEFAULT_TARGETS_POLLING_INTERVAL,
    SAMPLER_TYPE_CONST,
    SAMPLER_TYPE_PROBABILISTIC,
    SAMPLER_TYPE_REMOTE,
)
from .metrics import MetricsFactory
from .remote_sampler import RemoteControlledSampler
from .sampler import ConstSampler, ProbabilisticSampler, Sampler
from .utils import ErrorReporter, get_boolean

logger = logging.getLogger('centralized_sampling')


class Config(object):
    """
    Wraps a YAML configuration section for configuring the sampler.

    service_name is required, but can be passed either as constructor
    parameter, or as config property.

    Example:

    .. code-block:: yaml

        logging: true
        endpoint: 127.0.0.1:2000
        initial_sampling_rate: 0.05
        sampling_refresh_interval: 300
        sampler:
            type: remote

    """

    def __init__(
        self,
        config: dict,
        service_name: Optional[str] = None,
        metrics_factory: Optional[MetricsFactory] = None,
        validate: bool = False,
    ) -> None:
        """
        :param service_name: default service name.
            Can be overwritten by config['service_name'].
        :param metrics_factory: an instance of MetricsFactory class, or None.
        :param validate: reject keys this class does not know.
        """
        if validate:
            self._validate_config(config)
        self.config = config
        if get_boolean(self.config.get('metrics', True), True):
            self._metrics_factory = metrics_factory or MetricsFactory()
        else:
            # if metrics are explicitly disabled, use a dummy
            self._metrics_factory = MetricsFactory()
        self._service_name = config.get('service_name', service_name)
        if not self._service_name:
            raise ValueError('service_name required in the config or param')

        self._error_reporter = ErrorReporter(
            metrics_factory=self._metrics_factory,
            logger=logger if self.logging else None,
        )

    def _validate_config(self, config):
        allowed_keys = ['logging',
                        'metrics',
                        'enabled',
                        'sampler',
                        'endpoint',
                        'initial_sampling_rate',
                        'sampling_refresh_interval',
                        'targets_polling_interval',
                        'manifest_ttl',
                        'request_timeout',
                        'cloud_platform',
                        'service_name']
        unexpected_config_keys = [k for k in config.keys() if k not in allowed_keys]
        if unexpected_config_keys:
            raise ValueError('Unexpected keys found in config:{}'.
                             format(','.join(unexpected_config_keys)))

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def error_reporter(self) -> ErrorReporter:
        return self._error_reporter

    @property
    def enabled(self) -> bool:
        return get_boolean(self.config.get('enabled', True), True)

    @property
    def logging(self) -> bool:
        return get_boolean(self.config.get('logging', False), False)

    @property
    def endpoint(self) -> str:
        """
        :return: `host:port` of the sampling control plane, from the config,
        else from `SAMPLING_ENDPOINT`, else the local default.
        """
        endpoint = self.config.get('endpoint') or \
            os.environ.get('SAMPLING_ENDPOINT') or DEFAULT_ENDPOINT
        parse_endpoint(endpoint)
        return endpoint

    @property
    def cloud_platform(self) -> str:
        return self.config.get('cloud_platform') or \
            os.environ.get('SAMPLING_CLOUD_PLATFORM', '')

    @property
    def initial_sampling_rate(self) -> float:
        rate = float(self.config.get('initial_sampling_rate',
                                     DEFAULT_SAMPLING_PROBABILITY))
        if not 0.0 <= rate <= 1.0:
            raise ValueError('initial_sampling_rate must be between 0.0 and 1.0, got %s'
                             % rate)
        return rate

    @property
    def sampling_refresh_interval(self) -> int:
        return self._positive('sampling_refresh_interval', DEFAULT_SAMPLING_INTERVAL)

    @property
    def targets_polling_interval(self) -> int:
        return self._positive('targets_polling_interval', DEFAULT_TARGETS_POLLING_INTERVAL)

    @property
    def manifest_ttl(self) -> int:
        return self._positive('manifest_ttl', DEFAULT_MANIFEST_TTL)

    @property
    def request_timeout(self) -> float:
        return self._positive('request_timeout', DEFAULT_REQUEST_TIMEOUT)

    def _positive(self, key: str, default: Any):
        value = self.config.get(key, default)
        if value <= 0:
            raise ValueError('%s must be positive, got %s' % (key, value))
        return value

    @property
    def sampler_type(self) -> str:
        return self.config.get('sampler', {}).get('type') or SAMPLER_TYPE_REMOTE

    @property
    def sampler(self) -> Optional[Sampler]:
        """
        :return: the local sampler selected by the config, or None when the
        sampler should be remotely controlled.
        """
        sampler_config = self.config.get('sampler', {})
        if isinstance(sampler_config, Sampler):
            return sampler_config
        sampler_type = self.sampler_type
        sampler_param = sampler_config.get('param', None)
        if sampler_type == SAMPLER_TYPE_REMOTE:
            return None
        elif sampler_type == SAMPLER_TYPE_CONST:
            return ConstSampler(decision=get_boolean(sampler_param, False))
        elif sampler_type == SAMPLER_TYPE_PROBABILISTIC:
            return ProbabilisticSampler(rate=float(sampler_param))

        raise ValueError('Unknown sampler type %s' % sampler_type)

    def new_sampler(self, io_loop: Optional[Any] = None) -> Sampler:
        """
        Create the configured sampler. A disabled config yields a sampler
        that drops everything.
        """
        if not self.enabled:
            logger.info('Sampling disabled, using ConstSampler(False)')
            return ConstSampler(False)

        sampler = self.sampler
        if sampler is None:
            # validate everything before the client starts its IOLoop thread
            options = dict(
                service_name=self.service_name,
                cloud_platform=self.cloud_platform,
                init_sampling_rate=self.initial_sampling_rate,
                sampling_refresh_interval=self.sampling_refresh_interval,
                targets_polling_interval=self.targets_polling_interval,
                manifest_ttl=self.manifest_ttl,
                request_timeout=self.request_timeout,
                logger=logger,
                metrics_factory=self._metrics_factory,
                error_reporter=self.error_reporter,
            )
            sampler = RemoteControlledSampler(
                channel=self._create_client(io_loop), **options)
        logger.info('Using sampler %s', sampler)
        return sampler

    def _create_client(self, io_loop):
        logger.info('Initializing sampling client for %s', self.endpoint)
        return SamplingClient.from_endpoint(
            self.endpoint,
            io_loop=io_loop,
            request_timeout=self.request_timeout,
            logger=logger,
        )
