#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Process wide settings of the collector units, parsed from command line style arguments.

``FLAGS`` holds the defaults until ``parse()`` runs. Note that ``parse()`` without arguments reads the
arguments of the whole process.
"""

import argparse
import sys


parser = argparse.ArgumentParser(prog='mysqld_collector', add_help=False)

parser.add_argument('--exporter.lock_wait_timeout', dest='lock_wait_timeout', type=int, default=2,
                    help='Set a lock_wait_timeout (in seconds) on the connection to avoid long metadata locking.')
parser.add_argument('--exporter.log_slow_filter', dest='log_slow_filter', action='store_true',
                    help='Add a log_slow_filter to avoid slow query logging of scrapes.')
parser.add_argument('--collect.info_schema.processlist.min_time', dest='processlist_min_time', type=int, default=0,
                    help='Minimum time a thread must be in each state to be counted.')
parser.add_argument('--collect.info_schema.tables.databases', dest='tables_databases', default='*',
                    help='The list of databases to collect table stats for, or "*" for all.')

FLAGS = parser.parse_args([])


def parse(argv=None):
    """
    Parse the collector flags and make them the current ``FLAGS``
    :param argv: argument list, defaults to the process arguments
    """
    global FLAGS
    FLAGS = parser.parse_args(sys.argv[1:] if argv is None else argv)
    return FLAGS
