#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Registries of plugin factories, one per plugin kind, and the managers wrapping them.

Startup code builds the managers once (``PluginManagers.create()``), registers factories and hands the bundle to
every component that needs to look plugins up. Each lookup returns a fresh instance owned by the caller.
"""

import logging
import threading
from enum import Enum

from obagent_monitor.adapters import IInputPlugin, IProcessorPlugin, IOutputPlugin, IExporterPlugin
from obagent_monitor.errors import DuplicateRegistrationError, PluginNotFoundError

logger = logging.getLogger(__name__)


class PluginKind(Enum):
    INPUT = 'input'
    PROCESSOR = 'processor'
    OUTPUT = 'output'
    EXPORTER = 'exporter'

    def __str__(self):
        return self.value


class PluginRegistry(object):
    """
    Mapping from plugin name to a zero-argument factory, for a single plugin kind.

    The lock guards the mapping only, factories are invoked outside of it.
    """

    def __init__(self, kind):
        self.kind = PluginKind(kind)
        self._factories = {}
        self._lock = threading.Lock()

    def register(self, name, factory):
        if not callable(factory):
            raise TypeError('factory of {} plugin {} is not callable'.format(self.kind, name))

        with self._lock:
            if name in self._factories:
                raise DuplicateRegistrationError(self.kind, name)
            self._factories[name] = factory

        logger.debug('Registered %s plugin %s', self.kind, name)

    def get_plugin(self, name):
        with self._lock:
            factory = self._factories.get(name)

        if factory is None:
            raise PluginNotFoundError(self.kind, name)

        return factory()

    def names(self):
        with self._lock:
            return sorted(self._factories)

    def __contains__(self, name):
        with self._lock:
            return name in self._factories

    def __len__(self):
        with self._lock:
            return len(self._factories)


class PluginManager(object):
    """
    Typed facade over a PluginRegistry: only factories producing ``plugin_class`` instances are accepted.
    """

    kind = None

    plugin_class = None

    def __init__(self):
        self.registry = PluginRegistry(self.kind)

    def register(self, name, factory):
        """
        Add a factory under a unique name
        :param name: plugin name, unique within the kind
        :param factory: zero-argument callable returning a new plugin instance
        :raises DuplicateRegistrationError: if the name is already taken
        """
        self.registry.register(name, factory)

    def get_plugin(self, name):
        """
        Create a fresh plugin instance, the manager keeps no reference to it
        :raises PluginNotFoundError: if nothing is registered under the name
        """
        plugin = self.registry.get_plugin(name)
        if not isinstance(plugin, self.plugin_class):
            raise TypeError('{} plugin {} factory produced {}, expected a {}'.format(
                self.kind, name, type(plugin).__name__, self.plugin_class.__name__))
        return plugin

    def names(self):
        return self.registry.names()

    def __contains__(self, name):
        return name in self.registry

    def __len__(self):
        return len(self.registry)


class InputManager(PluginManager):
    kind = PluginKind.INPUT
    plugin_class = IInputPlugin


class ProcessorManager(PluginManager):
    kind = PluginKind.PROCESSOR
    plugin_class = IProcessorPlugin


class OutputManager(PluginManager):
    kind = PluginKind.OUTPUT
    plugin_class = IOutputPlugin


class ExporterManager(PluginManager):
    kind = PluginKind.EXPORTER
    plugin_class = IExporterPlugin


MANAGER_CLASSES = {
    PluginKind.INPUT: InputManager,
    PluginKind.PROCESSOR: ProcessorManager,
    PluginKind.OUTPUT: OutputManager,
    PluginKind.EXPORTER: ExporterManager,
}


_managers = {}
_managers_lock = threading.Lock()


def _get_manager(kind):
    manager = _managers.get(kind)
    if manager is None:
        with _managers_lock:
            manager = _managers.get(kind)
            if manager is None:
                manager = MANAGER_CLASSES[kind]()
                _managers[kind] = manager
    return manager


def get_input_manager():
    """
    Get the input manager (process singleton)
    """
    return _get_manager(PluginKind.INPUT)


def get_processor_manager():
    """
    Get the processor manager (process singleton)
    """
    return _get_manager(PluginKind.PROCESSOR)


def get_output_manager():
    """
    Get the output manager (process singleton)
    """
    return _get_manager(PluginKind.OUTPUT)


def get_exporter_manager():
    """
    Get the exporter manager (process singleton)
    """
    return _get_manager(PluginKind.EXPORTER)


class PluginManagers(object):
    """
    The four managers, wired explicitly into the components that register or look up plugins.
    """

    def __init__(self, input, processor, output, exporter):
        self.input = input
        self.processor = processor
        self.output = output
        self.exporter = exporter

    @classmethod
    def create(cls):
        """
        Bundle of the process-wide managers
        """
        return cls(get_input_manager(), get_processor_manager(), get_output_manager(), get_exporter_manager())

    def for_kind(self, kind):
        return getattr(self, PluginKind(kind).value)

    def describe(self):
        return {kind.value: self.for_kind(kind).names() for kind in PluginKind}
