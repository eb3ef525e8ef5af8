#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
The Metric record: the flat unit of data flowing between input, processor, output and exporter plugins.
"""

import time
from enum import Enum
from types import MappingProxyType


class MetricType(Enum):
    COUNTER = 'counter'
    GAUGE = 'gauge'
    HISTOGRAM = 'histogram'
    SUMMARY = 'summary'
    UNTYPED = 'untyped'


# prometheus_client family types without a direct counterpart
_FAMILY_TYPES = {
    'counter': MetricType.COUNTER,
    'gauge': MetricType.GAUGE,
    'histogram': MetricType.HISTOGRAM,
    'gaugehistogram': MetricType.HISTOGRAM,
    'summary': MetricType.SUMMARY,
    'info': MetricType.GAUGE,
    'stateset': MetricType.GAUGE,
}


class Metric(object):
    """
    Immutable metric record. Processors never change a record, they produce a new one.
    """

    __slots__ = ('_name', '_labels', '_value', '_timestamp', '_type')

    def __init__(self, name, labels=None, value=0.0, timestamp=None, type=MetricType.UNTYPED):
        if not name:
            raise ValueError('metric name is required')
        self._name = str(name)
        self._labels = MappingProxyType({str(k): str(v) for k, v in (labels or {}).items()})
        self._value = float(value)
        self._timestamp = time.time() if timestamp is None else float(timestamp)
        self._type = MetricType(type)

    @property
    def name(self):
        return self._name

    @property
    def labels(self):
        return self._labels

    @property
    def value(self):
        return self._value

    @property
    def timestamp(self):
        return self._timestamp

    @property
    def type(self):
        return self._type

    def with_labels(self, labels, overwrite=True):
        merged = dict(self._labels)
        for k, v in labels.items():
            if overwrite or k not in merged:
                merged[k] = v
        return Metric(self._name, merged, self._value, self._timestamp, self._type)

    def rename(self, name):
        return Metric(name, self._labels, self._value, self._timestamp, self._type)

    def to_dict(self):
        return {
            'name': self._name,
            'labels': dict(self._labels),
            'value': self._value,
            'timestamp': self._timestamp,
            'type': self._type.value,
        }

    def _key(self):
        return self._name, tuple(sorted(self._labels.items())), self._value, self._timestamp, self._type

    def __eq__(self, other):
        if not isinstance(other, Metric):
            return NotImplemented
        return self._key() == other._key()

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    def __hash__(self):
        return hash(self._key())

    def __repr__(self):
        return 'Metric(name={!r}, labels={!r}, value={!r}, type={})'.format(
            self._name, dict(self._labels), self._value, self._type.value)


def metric_type_of(family_type):
    return _FAMILY_TYPES.get(family_type, MetricType.UNTYPED)


def parse_from_metric_family(family, timestamp=None):
    """
    Flatten a prometheus_client metric family into one Metric per sample.

    :param family: ``prometheus_client.Metric`` as yielded by ``CollectorRegistry.collect()``
    :param timestamp: default timestamp for samples that do not carry their own
    :return: list of Metric
    """
    timestamp = time.time() if timestamp is None else timestamp
    metric_type = metric_type_of(family.type)

    metrics = []
    for sample in family.samples:
        ts = sample.timestamp if sample.timestamp is not None else timestamp
        metrics.append(Metric(sample.name, sample.labels, sample.value, float(ts), metric_type))
    return metrics
