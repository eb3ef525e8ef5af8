#!/usr/bin/env python
# -*- coding: utf-8 -*-

import logging
import re
import threading
import time
from collections import defaultdict

import pymysql
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from mysqld_collector import flags
from mysqld_collector.scrapers import metric_name

logger = logging.getLogger(__name__)


_VERSION_RE = re.compile(r'^\d+\.\d+')

# assumed when the server reports something unparseable, every unit is then considered too old
UNKNOWN_VERSION = 999.0


def server_version(cursor):
    cursor.execute('SELECT @@version')
    row = cursor.fetchone()
    match = _VERSION_RE.match(str(row[0])) if row else None
    if not match:
        return UNKNOWN_VERSION
    return float(match.group(0))


class MysqldCollector(object):
    """
    Custom prometheus_client collector running the given collector units on every collect.

    Register it with a ``CollectorRegistry`` and gather with ``registry.collect()``.
    """

    def __init__(self, connect_kwargs, scrapers, connect=None):
        self.connect_kwargs = dict(connect_kwargs)
        self.scrapers = list(scrapers)
        self._connect = connect or pymysql.connect
        self._lock = threading.Lock()
        self._scrapes_total = 0
        self._scrape_errors = defaultdict(int)

    def describe(self):
        # nothing is known before the first scrape
        return []

    def collect(self):
        families = []
        durations = GaugeMetricFamily(metric_name('exporter', 'collector_duration_seconds'),
                                      'Collector time duration.', labels=['collector'])

        start = time.time()
        up, last_error = 1, 0
        try:
            connection = self._connect(**self.connect_kwargs)
        except pymysql.MySQLError as e:
            logger.error('Error opening connection to database: %s', e)
            up, last_error = 0, 1
        else:
            try:
                with connection.cursor() as cursor:
                    self._prepare_session(cursor)
                    version = server_version(cursor)
                    durations.add_metric(['connection'], time.time() - start)

                    for scraper in self.scrapers:
                        if scraper.version > version:
                            logger.debug('Skipping %s, server version %s is older than %s', scraper.name, version,
                                         scraper.version)
                            continue
                        scrape_start = time.time()
                        try:
                            families.extend(scraper.scrape(cursor))
                        except pymysql.MySQLError as e:
                            logger.error('Error from scraper %s: %s', scraper.name, e)
                            last_error = 1
                            with self._lock:
                                self._scrape_errors[scraper.name] += 1
                        durations.add_metric(['collect.' + scraper.name], time.time() - scrape_start)
            finally:
                connection.close()

        with self._lock:
            self._scrapes_total += 1
            scrapes_total = self._scrapes_total
            scrape_errors = dict(self._scrape_errors)

        errors_total = CounterMetricFamily(metric_name('exporter', 'scrape_errors_total'),
                                           'Total number of times an error occurred scraping a MySQL.',
                                           labels=['collector'])
        for name, count in sorted(scrape_errors.items()):
            errors_total.add_metric(['collect.' + name], count)

        families.extend([
            GaugeMetricFamily(metric_name('up'), 'Whether the MySQL server is up.', value=up),
            durations,
            GaugeMetricFamily(metric_name('exporter', 'last_scrape_error'),
                              'Whether the last scrape of metrics from MySQL resulted in an error (1 for error, 0 '
                              'for success).', value=last_error),
            CounterMetricFamily(metric_name('exporter', 'scrapes_total'),
                                'Total number of times MySQL was scraped for metrics.', value=scrapes_total),
            errors_total,
        ])
        return families

    def _prepare_session(self, cursor):
        settings = flags.FLAGS
        if settings.lock_wait_timeout > 0:
            cursor.execute('SET lock_wait_timeout=%s', (settings.lock_wait_timeout,))
        if settings.log_slow_filter:
            cursor.execute("SET log_slow_filter='tmp_table_on_disk,filesort_on_disk'")
