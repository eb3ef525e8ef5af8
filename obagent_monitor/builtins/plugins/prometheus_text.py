#!/usr/bin/env python
# -*- coding: utf-8 -*-

import logging
import os
import sys
from collections import OrderedDict

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import Metric as MetricFamily

from obagent_monitor.adapters import IOutputPlugin
from obagent_monitor.metric import MetricType

logger = logging.getLogger(__name__)

COUNTER_SUFFIX = '_total'


def _family(m):
    # Flattened histogram and summary samples cannot be regrouped, so only counters keep their type.
    if m.type == MetricType.GAUGE:
        return MetricFamily(m.name, '', 'gauge')
    if m.type == MetricType.COUNTER and m.name.endswith(COUNTER_SUFFIX) and m.name != COUNTER_SUFFIX:
        return MetricFamily(m.name[:-len(COUNTER_SUFFIX)], '', 'counter')
    return MetricFamily(m.name, '', 'unknown')


class RecordsCollector(object):
    """
    Exposes already collected records as metric families, one family per metric name
    """

    def __init__(self, metrics, with_timestamp=False):
        self.metrics = metrics
        self.with_timestamp = with_timestamp

    def collect(self):
        families = OrderedDict()
        for m in self.metrics:
            family = families.get(m.name)
            if family is None:
                family = _family(m)
                families[m.name] = family
            family.add_sample(m.name, dict(m.labels), m.value, m.timestamp if self.with_timestamp else None)
        return list(families.values())


def render(metrics, with_timestamp=False):
    registry = CollectorRegistry(auto_describe=False)
    registry.register(RecordsCollector(metrics, with_timestamp))
    return generate_latest(registry)


class PrometheusTextOutput(IOutputPlugin):

    description = 'Writes metrics in the prometheus text exposition format to a file or to stdout.'

    sample_config = '''
path: /tmp/obagent/metrics.prom
withTimestamp: false
'''

    def __init__(self):
        super(PrometheusTextOutput, self).__init__()
        self.path = None
        self.with_timestamp = False

    def configure(self, conf):
        self.path = conf.get('path') or None
        self.with_timestamp = bool(conf.get('withTimestamp', False))

    def _write(self, metrics):
        payload = render(metrics, self.with_timestamp)

        if self.path is None:
            sys.stdout.write(payload.decode('utf-8'))
            sys.stdout.flush()
            return

        tmp_path = '{}.tmp'.format(self.path)
        with open(tmp_path, 'wb') as fd:
            fd.write(payload)
        os.replace(tmp_path, self.path)
        logger.debug('Wrote %d metrics to %s', len(metrics), self.path)
