#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
We provide a plugin system to plug collection, transformation and delivery of metrics into the agent.

The plugin system is separated in *adapters* and *implementations*.

Adapters are base classes that specify the behaviour of plugin kinds, they live in the subpackage
``obagent_monitor.adapters``. All adapters inherit from ``obagent_monitor.adapters.IBasePlugin``.
One adapter may have many implementations. There are four kinds:

* ``IInputPlugin``: collects metrics natively, ``collect() -> [Metric]``
* ``IProcessorPlugin``: turns a list of metrics into a new list, ``process([Metric]) -> [Metric]``
* ``IOutputPlugin``: delivers metrics somewhere, ``write([Metric])``
* ``IExporterPlugin``: collects metrics by wrapping an external exporter library, ``collect() -> [Metric]``

Every implementation is created by a zero-argument factory registered under a unique name with the manager of
its kind (see ``obagent_monitor.plugin_manager``) and then driven by its owner through the same lifecycle::

    plugin = managers.exporter.get_plugin('mysqld')   # created
    plugin.init({'dsn': 'monitor:secret@tcp(127.0.0.1:2881)/'})   # ready
    metrics = plugin.collect()
    plugin.close()   # closed, close() may be called again safely

Calling a data operation before ``init`` or after ``close`` raises ``LifecycleViolationError``.


Out-of-tree implementations need 2 files:

1. a python source file containing a class that extends an adapter.
2. a plugin info file with the same name and extension ``.agent_plugin``, for example::

    [Core]
    Name = cpu
    Module = cpu

Place both files in a *plugin folder* of your choice and add that folder's absolute path to the environment
variable ``OBAGENT_PLUGINS`` (or to ``plugins.dirs`` in the configuration file).
"""

from obagent_monitor.adapters.ibase_plugin import IBasePlugin, CREATED, READY, CLOSED
from obagent_monitor.adapters.icollector_plugin import IInputPlugin, IExporterPlugin
from obagent_monitor.adapters.iprocessor_plugin import IProcessorPlugin
from obagent_monitor.adapters.ioutput_plugin import IOutputPlugin


__all__ = [
    'IBasePlugin',
    'IInputPlugin',
    'IExporterPlugin',
    'IProcessorPlugin',
    'IOutputPlugin',
    'CREATED',
    'READY',
    'CLOSED',
]
