#!/usr/bin/python

from setuptools import setup, find_packages
from docker_layer_digest.version import version

import codecs

with open('requirements.txt') as f:
    requirements = f.read().splitlines()

setup(
    name = "docker-layer-digest",
    version = version,
    packages = find_packages(exclude=["tests"]),
    description = 'Computes registry digests of local Docker image layers',
    license='MIT',
    keywords = 'docker registry digest',
    long_description = codecs.open('README.rst', encoding="utf8").read(),
    entry_points = {
        'console_scripts': ['docker-layer-digest=docker_layer_digest.cli:run'],
    },
    tests_require = ['mock', 'parameterized', 'pytest'],
    extras_require = {
        'test': ['mock', 'parameterized', 'pytest'],
    },
    install_requires=requirements
)
