#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Collector units. Every unit runs a few statements on an open cursor and yields prometheus metric families.

A unit declares the lowest server version it supports in ``version``, the exporter skips units newer than the
server it talks to.
"""

import re

import pymysql
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, HistogramMetricFamily, \
    UnknownMetricFamily
from prometheus_client.utils import floatToGoString

from mysqld_collector import flags


NAMESPACE = 'mysql'

_NAME_RE = re.compile(r'[^a-zA-Z0-9_]')

_BINLOG_NUMBER_RE = re.compile(r'\.(\d+)$')

_STATUS_VALUES = {
    'yes': 1.0,
    'on': 1.0,
    'connected': 1.0,
    'primary': 1.0,
    'no': 0.0,
    'off': 0.0,
    'disconnected': 0.0,
    'secondary': 0.0,
}


def valid_metric_name(name):
    return _NAME_RE.sub('_', name).lower()


def parse_status(value):
    """
    Numeric value of a status or variable, None if it has none
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, bytes):
        value = value.decode('utf-8', 'replace')
    value = str(value).strip()
    if value.lower() in _STATUS_VALUES:
        return _STATUS_VALUES[value.lower()]
    try:
        return float(value)
    except ValueError:
        return None


def metric_name(*parts):
    return '_'.join([NAMESPACE] + [p for p in parts if p])


class Scraper(object):
    """
    Base class of the collector units
    """

    name = ''

    help = ''

    version = 5.1

    def scrape(self, cursor):
        raise NotImplementedError

    def __repr__(self):
        return '{}(name={!r})'.format(type(self).__name__, self.name)


class ScrapeGlobalStatus(Scraper):
    name = 'global_status'
    help = 'Collect from SHOW GLOBAL STATUS'
    version = 5.1

    prefixes = {
        'com_': ('commands_total', 'command', 'Total number of executed MySQL commands.'),
        'handler_': ('handlers_total', 'handler', 'Total number of executed MySQL handlers.'),
        'connection_errors_': ('connection_errors_total', 'error', 'Total number of MySQL connection errors.'),
        'innodb_buffer_pool_pages_': ('buffer_pool_pages', 'state', 'Innodb buffer pool pages by state.'),
    }

    def scrape(self, cursor):
        cursor.execute('SHOW GLOBAL STATUS')

        grouped = {}
        untyped = []
        for key, value in cursor.fetchall():
            key = valid_metric_name(key)
            number = parse_status(value)
            if number is None:
                continue

            for prefix, (suffix, label, doc) in self.prefixes.items():
                if key.startswith(prefix):
                    family = grouped.get(prefix)
                    if family is None:
                        family_class = GaugeMetricFamily if suffix == 'buffer_pool_pages' else CounterMetricFamily
                        family = family_class(metric_name('global_status', suffix), doc, labels=[label])
                        grouped[prefix] = family
                    family.add_metric([key[len(prefix):]], number)
                    break
            else:
                untyped.append(UnknownMetricFamily(metric_name('global_status', key), 'Generic metric from SHOW '
                                                   'GLOBAL STATUS.', value=number))

        for family in grouped.values():
            yield family
        for family in untyped:
            yield family


class ScrapeGlobalVariables(Scraper):
    name = 'global_variables'
    help = 'Collect from SHOW GLOBAL VARIABLES'
    version = 5.1

    info_keys = ('version', 'innodb_version', 'version_comment')

    def scrape(self, cursor):
        cursor.execute('SHOW GLOBAL VARIABLES')

        info = dict((k, '') for k in self.info_keys)
        for key, value in cursor.fetchall():
            key = key.lower()
            if key in info:
                info[key] = value if isinstance(value, str) else str(value)
                continue
            number = parse_status(value)
            if number is None:
                continue
            yield GaugeMetricFamily(metric_name('global_variables', valid_metric_name(key)),
                                    'Generic gauge metric from SHOW GLOBAL VARIABLES.', value=number)

        version_info = GaugeMetricFamily(metric_name('version_info'), 'MySQL version and distribution.',
                                         labels=list(self.info_keys))
        version_info.add_metric([info[k] for k in self.info_keys], 1)
        yield version_info


class ScrapeSlaveStatus(Scraper):
    name = 'slave_status'
    help = 'Collect from SHOW SLAVE STATUS'
    version = 5.1

    queries = ('SHOW ALL SLAVES STATUS', 'SHOW SLAVE STATUS', 'SHOW REPLICA STATUS')

    def scrape(self, cursor):
        for query in self.queries:
            try:
                cursor.execute(query)
            except pymysql.MySQLError:
                continue
            break
        else:
            return

        columns = [d[0].lower() for d in cursor.description or []]
        families = {}
        for row in cursor.fetchall():
            values = dict(zip(columns, row))
            labels = [
                str(values.get('master_host') or values.get('source_host') or ''),
                str(values.get('master_uuid') or values.get('source_uuid') or ''),
                str(values.get('channel_name') or values.get('connection_name') or ''),
            ]
            for column, value in values.items():
                number = parse_status(value)
                if number is None:
                    continue
                family = families.get(column)
                if family is None:
                    family = UnknownMetricFamily(metric_name('slave_status', valid_metric_name(column)),
                                                 'Generic metric from SHOW SLAVE STATUS.',
                                                 labels=['master_host', 'master_uuid', 'channel_name'])
                    families[column] = family
                family.add_metric(labels, number)

        for family in families.values():
            yield family


class ScrapeProcesslist(Scraper):
    name = 'info_schema.processlist'
    help = 'Collect current thread state counts from the information_schema.processlist'
    version = 5.1

    query = '''
        SELECT COALESCE(command, ''), COALESCE(state, ''), COUNT(*), SUM(time)
        FROM information_schema.processlist
        WHERE ID != connection_id() AND TIME >= %s
        GROUP BY command, state
    '''

    def scrape(self, cursor):
        cursor.execute(self.query, (flags.FLAGS.processlist_min_time,))

        threads = GaugeMetricFamily(metric_name('info_schema', 'threads'),
                                    'The number of threads split by current state.', labels=['command', 'state'])
        seconds = GaugeMetricFamily(metric_name('info_schema', 'threads_seconds'),
                                    'The number of seconds threads have used split by current state.',
                                    labels=['command', 'state'])
        for command, state, count, time_sum in cursor.fetchall():
            labels = [command.lower(), state.lower().replace(' ', '_')]
            threads.add_metric(labels, float(count))
            seconds.add_metric(labels, float(time_sum or 0))

        yield threads
        yield seconds


class ScrapeTableSchema(Scraper):
    name = 'info_schema.tables'
    help = 'Collect metrics from information_schema.tables'
    version = 5.1

    system_schemas = ('mysql', 'performance_schema', 'information_schema', 'sys', 'oceanbase')

    query = '''
        SELECT table_schema, table_name, COALESCE(version, 0), COALESCE(table_rows, 0),
               COALESCE(data_length, 0), COALESCE(index_length, 0), COALESCE(data_free, 0)
        FROM information_schema.tables
        WHERE table_schema = %s
    '''

    def scrape(self, cursor):
        databases = flags.FLAGS.tables_databases
        if databases == '*':
            cursor.execute('SELECT SCHEMA_NAME FROM information_schema.schemata')
            schemas = [r[0] for r in cursor.fetchall() if r[0].lower() not in self.system_schemas]
        else:
            schemas = [d.strip() for d in databases.split(',') if d.strip()]

        version = GaugeMetricFamily(metric_name('info_schema', 'table_version'), 'The version number of the '
                                    'table\'s .frm file', labels=['schema', 'table'])
        rows = GaugeMetricFamily(metric_name('info_schema', 'table_rows'), 'The estimated number of rows in the '
                                 'table from information_schema.tables', labels=['schema', 'table'])
        size = GaugeMetricFamily(metric_name('info_schema', 'table_size'), 'The size of the table components from '
                                 'information_schema.tables', labels=['schema', 'table', 'component'])

        for schema in schemas:
            cursor.execute(self.query, (schema,))
            for table_schema, table_name, table_version, table_rows, data_len, index_len, data_free in \
                    cursor.fetchall():
                labels = [table_schema, table_name]
                version.add_metric(labels, float(table_version))
                rows.add_metric(labels, float(table_rows))
                size.add_metric(labels + ['data_length'], float(data_len))
                size.add_metric(labels + ['index_length'], float(index_len))
                size.add_metric(labels + ['data_free'], float(data_free))

        yield version
        yield rows
        yield size


class ScrapeInnodbMetrics(Scraper):
    name = 'info_schema.innodb_metrics'
    help = 'Collect metrics from information_schema.innodb_metrics'
    version = 5.6

    query = '''
        SELECT name, subsystem, type, comment, count
        FROM information_schema.innodb_metrics
        WHERE status = 'enabled'
    '''

    def scrape(self, cursor):
        cursor.execute(self.query)

        for name, subsystem, metric_type, comment, count in cursor.fetchall():
            prefix = valid_metric_name(subsystem) + '_'
            name = valid_metric_name(name)
            if name.startswith(prefix):
                name = name[len(prefix):]
            full_name = metric_name('info_schema', 'innodb_metrics', valid_metric_name(subsystem), name)
            if metric_type == 'counter':
                yield CounterMetricFamily(full_name + '_total', comment or '', value=float(count))
            else:
                yield GaugeMetricFamily(full_name, comment or '', value=float(count))


class ScrapeInnodbCmp(Scraper):
    name = 'info_schema.innodb_cmp'
    help = 'Collect metrics from information_schema.innodb_cmp'
    version = 5.5

    query = '''
        SELECT page_size, compress_ops, compress_ops_ok, compress_time, uncompress_ops, uncompress_time
        FROM information_schema.innodb_cmp
    '''

    def scrape(self, cursor):
        cursor.execute(self.query)

        families = [
            CounterMetricFamily(metric_name('info_schema', 'innodb_cmp_compress_ops_total'),
                                'Number of times a B-tree page of the size PAGE_SIZE has been compressed.',
                                labels=['page_size']),
            CounterMetricFamily(metric_name('info_schema', 'innodb_cmp_compress_ops_ok_total'),
                                'Number of times a B-tree page of the size PAGE_SIZE has been successfully '
                                'compressed.', labels=['page_size']),
            CounterMetricFamily(metric_name('info_schema', 'innodb_cmp_compress_time_seconds_total'),
                                'Total time in seconds spent in attempts to compress B-tree pages.',
                                labels=['page_size']),
            CounterMetricFamily(metric_name('info_schema', 'innodb_cmp_uncompress_ops_total'),
                                'Number of times a B-tree page of the size PAGE_SIZE has been uncompressed.',
                                labels=['page_size']),
            CounterMetricFamily(metric_name('info_schema', 'innodb_cmp_uncompress_time_seconds_total'),
                                'Total time in seconds spent in uncompressing B-tree pages.',
                                labels=['page_size']),
        ]
        for row in cursor.fetchall():
            page_size = str(row[0])
            for family, value in zip(families, row[1:]):
                family.add_metric([page_size], float(value))

        for family in families:
            yield family


class ScrapeInnodbCmpMem(Scraper):
    name = 'info_schema.innodb_cmpmem'
    help = 'Collect metrics from information_schema.innodb_cmpmem'
    version = 5.5

    query = '''
        SELECT page_size, buffer_pool_instance, pages_used, pages_free, relocation_ops, relocation_time
        FROM information_schema.innodb_cmpmem
    '''

    def scrape(self, cursor):
        cursor.execute(self.query)

        labels = ['page_size', 'buffer_pool']
        pages_used = CounterMetricFamily(metric_name('info_schema', 'innodb_cmpmem_pages_used_total'),
                                         'Number of blocks of the size PAGE_SIZE that are currently in use.',
                                         labels=labels)
        pages_free = CounterMetricFamily(metric_name('info_schema', 'innodb_cmpmem_pages_free_total'),
                                         'Number of blocks of the size PAGE_SIZE that are currently available '
                                         'for allocation.', labels=labels)
        relocation_ops = CounterMetricFamily(metric_name('info_schema', 'innodb_cmpmem_relocation_ops_total'),
                                             'Number of times a block of the size PAGE_SIZE has been relocated.',
                                             labels=labels)
        relocation_time = CounterMetricFamily(metric_name('info_schema',
                                                          'innodb_cmpmem_relocation_time_seconds_total'),
                                              'Total time in seconds spent in relocating blocks.', labels=labels)

        for page_size, buffer_pool, used, free, ops, reloc_time in cursor.fetchall():
            values = [str(page_size), str(buffer_pool)]
            pages_used.add_metric(values, float(used))
            pages_free.add_metric(values, float(free))
            relocation_ops.add_metric(values, float(ops))
            # relocation_time is reported in microseconds
            relocation_time.add_metric(values, float(reloc_time) / 1000000)

        yield pages_used
        yield pages_free
        yield relocation_ops
        yield relocation_time


class ScrapeQueryResponseTime(Scraper):
    name = 'info_schema.query_response_time'
    help = 'Collect query response time distribution if query_response_time_stats is ON.'
    version = 5.5

    query = 'SELECT TIME, COUNT, TOTAL FROM INFORMATION_SCHEMA.QUERY_RESPONSE_TIME'

    def scrape(self, cursor):
        try:
            cursor.execute('SELECT @@query_response_time_stats')
            row = cursor.fetchone()
        except pymysql.MySQLError:
            return
        if not row or not parse_status(row[0]):
            return

        cursor.execute(self.query)

        buckets = []
        cumulative = 0.0
        total = 0.0
        for le, count, time_total in cursor.fetchall():
            cumulative += float(count)
            le = le.strip() if isinstance(le, str) else le
            total_seconds = parse_status(time_total)
            if total_seconds is not None:
                total += total_seconds
            if isinstance(le, str) and le.upper() == 'TOO LONG':
                continue
            buckets.append((floatToGoString(float(le)), cumulative))
        buckets.append(('+Inf', cumulative))

        yield HistogramMetricFamily(metric_name('info_schema', 'query_response_time_seconds'),
                                    'The number of all queries by duration they took to execute.',
                                    buckets=buckets, sum_value=total)


class ScrapeBinlogSize(Scraper):
    name = 'binlog_size'
    help = 'Collect the current size of all registered binlog files'
    version = 5.1

    def scrape(self, cursor):
        cursor.execute('SELECT @@log_bin')
        row = cursor.fetchone()
        if not row or not parse_status(row[0]):
            return

        cursor.execute('SHOW BINARY LOGS')
        files = cursor.fetchall()

        size = 0.0
        last_name = ''
        for row in files:
            last_name = row[0]
            size += float(row[1])

        file_number = 0.0
        match = _BINLOG_NUMBER_RE.search(last_name)
        if match:
            file_number = float(match.group(1))

        yield GaugeMetricFamily(metric_name('binlog', 'size_bytes'), 'Combined size of all registered binlog '
                                'files.', value=size)
        yield GaugeMetricFamily(metric_name('binlog', 'files'), 'Number of registered binlog files.',
                                value=float(len(files)))
        yield GaugeMetricFamily(metric_name('binlog', 'file_number'), 'The last binlog file number.',
                                value=file_number)


# scrapers lists all possible collection units and if they should be enabled by default.
SCRAPERS = {
    ScrapeGlobalStatus(): True,
    ScrapeGlobalVariables(): True,
    ScrapeSlaveStatus(): True,
    ScrapeProcesslist(): False,
    ScrapeTableSchema(): False,
    ScrapeInnodbMetrics(): False,
    ScrapeInnodbCmp(): True,
    ScrapeInnodbCmpMem(): True,
    ScrapeQueryResponseTime(): True,
    ScrapeBinlogSize(): False,
}
