#!/usr/bin/env python3

import setuptools

setuptools.setup(
    name='bestest',
    version='0.3.0',
    description='Automated judge for batches of programming assignment submissions',
    packages=setuptools.find_packages(include=['bestest', 'bestest.*']),
    package_data={'bestest': ['config/*.yaml']},
    python_requires='>=3.11',
    install_requires=[
        'PyYAML',
        'colorlog',
        'pydantic>=2',
    ],
    extras_require={
        'tests': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'bestest=bestest.cli:main',
        ],
    },
)
