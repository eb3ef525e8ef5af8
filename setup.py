#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os
from setuptools import setup, find_packages


def load_req(fn):
    return [r.strip() for r in open(fn).read().splitlines() if r.strip() and not r.strip().startswith('#')]


if __name__ == '__main__':
    # just in case setup.py is launched from elsewhere than the containing directory
    original_dir = os.getcwd()
    os.chdir(os.path.dirname(os.path.abspath(__file__)))

    try:
        setup(
            name='obagent-monitor',
            version=__import__('obagent_monitor').__version__,
            description='Monitoring agent plugin backbone',
            license='Apache License 2.0',
            packages=find_packages(exclude=['tests', 'tests.*']),
            python_requires='>=3.8',
            install_requires=load_req('requirements.txt'),
            extras_require={'test': load_req('test_requirements.txt')},
            test_suite='tests',

            entry_points={
                'console_scripts': [
                    'obagent-monitor = obagent_monitor.main:main',
                ]
            },

            keywords='monitoring agent metrics plugins exporter mysql oceanbase prometheus',
            long_description=open('README.rst').read(),
            classifiers=[
                'Development Status :: 4 - Beta',
                'Intended Audience :: Developers',
                'License :: OSI Approved :: Apache Software License',
                'Operating System :: OS Independent',
                'Programming Language :: Python',
                'Programming Language :: Python :: 3',
                'Topic :: System :: Monitoring'],

            platforms='All',
        )

    finally:
        os.chdir(original_dir)
