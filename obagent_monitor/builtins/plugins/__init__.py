#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Plugins shipped with the agent.
"""

from obagent_monitor.builtins.plugins.exclude import ExcludeProcessor
from obagent_monitor.builtins.plugins.label import LabelProcessor
from obagent_monitor.builtins.plugins.mysqld import MysqldExporter
from obagent_monitor.builtins.plugins.prometheus_text import PrometheusTextOutput


BUILTIN_PROCESSORS = {
    'label': LabelProcessor,
    'exclude': ExcludeProcessor,
}

BUILTIN_OUTPUTS = {
    'prometheus_text': PrometheusTextOutput,
}

BUILTIN_EXPORTERS = {
    'mysqld': MysqldExporter,
}


def register_builtins(managers):
    """
    Register the factories of the builtin plugins.
    :raises DuplicateRegistrationError: if a name is already taken
    """
    for name, factory in BUILTIN_PROCESSORS.items():
        managers.processor.register(name, factory)
    for name, factory in BUILTIN_OUTPUTS.items():
        managers.output.register(name, factory)
    for name, factory in BUILTIN_EXPORTERS.items():
        managers.exporter.register(name, factory)
