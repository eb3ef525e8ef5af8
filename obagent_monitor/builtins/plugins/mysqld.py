#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Exporter plugin adapting the mysqld collector library to the agent.

The library is used as is: its configuration is built from ours, its collector units are selected from our
scraper flags and its collector is gathered through a private prometheus registry.
"""

import logging
import re
import threading
import time
from collections.abc import Mapping
from urllib.parse import parse_qsl, unquote

from prometheus_client import CollectorRegistry

from mysqld_collector import MysqldCollector, SCRAPERS, flags

from obagent_monitor.adapters import IExporterPlugin
from obagent_monitor.errors import ConfigTranslationError, ExternalGatherError
from obagent_monitor.metric import parse_from_metric_family

logger = logging.getLogger(__name__)


DEFAULT_HOST = '127.0.0.1'

DEFAULT_PORT = 3306

# version reported by wrapped units, no server version is lower
IGNORED_VERSION = 0.0

_NET_RE = re.compile(r'^(?P<net>\w+)(?:\((?P<addr>.*)\))?$')

_DURATION_RE = re.compile(r'^(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)$')

_DURATION_UNITS = {'ms': 0.001, 's': 1, 'm': 60, 'h': 3600}

_DSN_PARAMS = {
    'timeout': ('connect_timeout', 'duration'),
    'readTimeout': ('read_timeout', 'duration'),
    'writeTimeout': ('write_timeout', 'duration'),
    'charset': ('charset', 'charset'),
}


class MysqldConfig(object):

    def __init__(self, dsn, scraper_flags=None):
        self.dsn = dsn
        self.scraper_flags = dict(scraper_flags or {})

    @classmethod
    def from_dict(cls, conf):
        if not isinstance(conf, Mapping):
            raise ConfigTranslationError('mysqld exporter config must be a mapping, got {}'.format(
                type(conf).__name__))

        dsn = conf.get('dsn')
        if not isinstance(dsn, str) or not dsn.strip():
            raise ConfigTranslationError('mysqld exporter requires a non empty dsn')

        scraper_flags = conf.get('scraperFlags')
        if scraper_flags is None:
            scraper_flags = {}
        if not isinstance(scraper_flags, Mapping):
            raise ConfigTranslationError('scraperFlags must be a mapping of scraper name to boolean')
        for name, enabled in scraper_flags.items():
            if not isinstance(name, str) or not isinstance(enabled, bool):
                raise ConfigTranslationError('scraperFlags entry {!r} must map a name to true or false'.format(name))

        return cls(dsn.strip(), scraper_flags)


def _parse_duration(name, value):
    match = _DURATION_RE.match(value)
    if not match:
        raise ConfigTranslationError('dsn parameter {} has an invalid duration: {!r}'.format(name, value))
    return float(match.group('value')) * _DURATION_UNITS[match.group('unit')]


def _parse_address(address):
    if not address:
        return DEFAULT_HOST, DEFAULT_PORT

    if address.startswith('['):
        host, sep, port = address[1:].partition(']')
        port = port[1:] if port.startswith(':') else port
    elif address.count(':') == 1:
        host, _, port = address.partition(':')
    else:
        host, port = address, ''

    if not port:
        return host or DEFAULT_HOST, DEFAULT_PORT
    if not port.isdecimal():
        raise ConfigTranslationError('dsn address has an invalid port: {!r}'.format(port))
    return host or DEFAULT_HOST, int(port)


def parse_dsn(dsn):
    """
    Translate a ``[user[:password]@][net[(addr)]]/dbname[?param=value&...]`` dsn into PyMySQL connection arguments.
    The password never shows up in error messages.
    """
    at = dsn.rfind('@')
    question = dsn.find('?', at + 1)
    base, params = (dsn[:question], dsn[question + 1:]) if question >= 0 else (dsn, '')

    head, slash, database = base.rpartition('/')
    if not slash:
        raise ConfigTranslationError('dsn is missing the slash before the database name')

    credentials, at_sign, address_part = head.rpartition('@')
    user, _, password = credentials.partition(':')

    kwargs = {}
    if user:
        kwargs['user'] = user
    if password:
        kwargs['password'] = password
    if database:
        kwargs['database'] = unquote(database)

    if address_part:
        match = _NET_RE.match(address_part)
        if not match:
            raise ConfigTranslationError('dsn has an invalid network address: {!r}'.format(address_part))
        net, addr = match.group('net'), match.group('addr')
    else:
        net, addr = 'tcp', None

    if net == 'tcp':
        kwargs['host'], kwargs['port'] = _parse_address(addr)
    elif net == 'unix':
        if not addr:
            raise ConfigTranslationError('dsn unix network requires a socket path')
        kwargs['unix_socket'] = addr
    else:
        raise ConfigTranslationError('dsn network {!r} is not supported'.format(net))

    for name, value in parse_qsl(params, keep_blank_values=True):
        if name not in _DSN_PARAMS:
            logger.debug('Ignoring dsn parameter %s', name)
            continue
        key, kind = _DSN_PARAMS[name]
        if kind == 'duration':
            kwargs[key] = _parse_duration(name, value)
        else:
            kwargs[key] = value.split(',')[0]

    return kwargs


_prepared = False
_prepare_lock = threading.Lock()


def prepare_collector_library():
    """
    Parse the collector library flags once per process.

    The library parses the process arguments by default, which belong to the agent. An empty argument list is
    handed over instead so that only the library defaults apply.
    :return: True if this call did the preparation
    """
    global _prepared

    with _prepare_lock:
        if _prepared:
            return False
        flags.parse([])
        _prepared = True
        logger.debug('mysqld collector library flags initialized')
        return True


class IgnoredVersionScraper(object):
    """
    Wrapper over a collector unit which pseudo-downgrades its version, so it runs whatever version the server
    reports. Everything else is the wrapped unit's.
    """

    version = IGNORED_VERSION

    def __init__(self, scraper):
        self.scraper = scraper

    def __getattr__(self, item):
        return getattr(self.scraper, item)

    def __repr__(self):
        return 'IgnoredVersionScraper({!r})'.format(self.scraper)


def ignore_version(scraper):
    return IgnoredVersionScraper(scraper)


def select_scrapers(scrapers, scraper_flags):
    """
    Units enabled by the flags, units absent from the flags follow their default
    :param scrapers: mapping of collector unit to enabled by default
    :param scraper_flags: mapping of unit name to enabled
    """
    selected = []
    for scraper, enabled_by_default in scrapers.items():
        if scraper_flags.get(scraper.name, enabled_by_default):
            selected.append(ignore_version(scraper))

    unknown = set(scraper_flags) - set(s.name for s in scrapers)
    if unknown:
        logger.warning('Unknown scrapers in scraperFlags: %s', ', '.join(sorted(unknown)))

    return selected


class MysqldExporter(IExporterPlugin):

    description = 'Collects MySQL compatible server metrics through the mysqld collector units.'

    sample_config = '''
dsn: monitor:******@tcp(127.0.0.1:2881)/oceanbase?timeout=5s
scraperFlags:
  info_schema.processlist: true
  slave_status: false
'''

    def __init__(self, scrapers=None, collector_factory=None):
        super(MysqldExporter, self).__init__()
        self.scrapers = SCRAPERS if scrapers is None else scrapers
        self.collector_factory = collector_factory or MysqldCollector
        self.config = None
        self.enabled_scrapers = ()
        self.collector = None
        self.registry = None

    def configure(self, conf):
        self.config = MysqldConfig.from_dict(conf)
        connect_kwargs = parse_dsn(self.config.dsn)

        prepare_collector_library()

        self.enabled_scrapers = tuple(select_scrapers(self.scrapers, self.config.scraper_flags))

        self.collector = self.collector_factory(connect_kwargs, self.enabled_scrapers)
        registry = CollectorRegistry(auto_describe=False)
        try:
            registry.register(self.collector)
        except ValueError as e:
            raise ConfigTranslationError('mysqld exporter register collector: {}'.format(e)) from e
        self.registry = registry

        logger.info('mysqld exporter init for %s with scrapers: %s',
                    connect_kwargs.get('unix_socket') or '{}:{}'.format(connect_kwargs['host'], connect_kwargs['port']),
                    ', '.join(s.name for s in self.enabled_scrapers))

    def _collect(self):
        try:
            families = list(self.registry.collect())
        except Exception as e:
            logger.error('mysqld exporter registry gather failed: %s', e)
            raise ExternalGatherError(e) from e

        timestamp = time.time()
        metrics = []
        for family in families:
            metrics.extend(parse_from_metric_family(family, timestamp))
        return metrics

    def release(self):
        if self.registry is not None and self.collector is not None:
            try:
                self.registry.unregister(self.collector)
            except KeyError:
                logger.debug('mysqld collector was not registered')
        self.registry = None
        self.collector = None
