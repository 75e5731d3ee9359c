#!/usr/bin/env python
# -*- coding: utf-8 -*-
import re

from setuptools import setup, find_packages

version = None
with open('centralized_sampling/__init__.py', 'r') as f:
    for line in f:
        m = re.match(r'^__version__\s*=\s*(["\'])([^"\']+)\1', line)
        if m:
            version = m.group(2)
            break

assert version is not None, \
    'Could not determine version number from centralized_sampling/__init__.py'

setup(
    name='centralized-sampling-client',
    version=version,
    description='Remotely configured, reservoir based trace sampler',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    license='Apache License 2.0',
    zip_safe=False,
    keywords='tracing, sampling, opentracing',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3',
    ],
    python_requires='>=3.7',
    install_requires=[
        'threadloop>=1,<2',
        'tornado>=4.3',
        'opentracing>=2.1,<3.0',
    ],
    test_suite='tests',
    extras_require={
        'prometheus': [
            'prometheus_client',
        ],
        'tests': [
            'mock',
            'pytest',
            'pytest-cov',
            'coverage',
            'pytest-timeout',
            'flake8',
            'flake8-quotes',
            'prometheus_client',
            'mypy',
        ]
    },
)
