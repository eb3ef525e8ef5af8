#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
MySQL compatible metrics collector built on prometheus_client.

The collector units live in ``mysqld_collector.scrapers``, ``SCRAPERS`` tells which are enabled by default.
``MysqldCollector`` runs the units given to it and is meant to be registered with a prometheus
``CollectorRegistry``. Call ``flags.parse()`` once before collecting.
"""

from mysqld_collector.exporter import MysqldCollector, server_version
from mysqld_collector.scrapers import SCRAPERS, Scraper


__version__ = '0.13.0'

__all__ = [
    'MysqldCollector',
    'SCRAPERS',
    'Scraper',
    'server_version',
]
