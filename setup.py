#!/usr/bin/env python3

from setuptools import setup

with open("README.md" , "r")as fh:
    long_description = fh.read()

setup(
    name='pvnpv-identification',
    version='v0.1.0',
    description='Identify PV and non-PV consumers from smart meter readings',
    long_description=long_description,
    long_description_content_type = 'text/markdown',
    packages=['pv_identification'],
    python_requires='>=3.8',
    install_requires=[
        'python-dateutil',
        'more_itertools',
        'multiprocess',
        'numpy',
        'pandas',
        'scikit-learn',
        'scipy',
        'statsmodels>=0.14',
        'threadpoolctl',
        'tqdm'
    ],
    extras_require={
        'test': ['pytest']
    },
    scripts=[
    ]
)
