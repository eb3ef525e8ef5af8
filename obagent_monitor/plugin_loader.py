#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Loading of out-of-tree plugins.
Folders to be explored are taken from the environment variable OBAGENT_PLUGINS and from the configuration.

Each plugin is described by an info file (extension ``.agent_plugin``) next to its python module::

    [Core]
    Name = cpu
    Module = cpu

The class extending one of the adapters is registered as the factory of the plugin with the manager of that
adapter's kind, see ``obagent_monitor.adapters``.
"""

import configparser
import importlib.util
import inspect
import logging
import os
import re
import sys
from importlib import metadata

from obagent_monitor.adapters import IInputPlugin, IProcessorPlugin, IOutputPlugin, IExporterPlugin
from obagent_monitor.errors import DuplicateRegistrationError
from obagent_monitor.plugin_manager import PluginKind

logger = logging.getLogger(__name__)


PLUGIN_INFO_EXT = 'agent_plugin'

PLUGIN_ENV_VAR = 'OBAGENT_PLUGINS'

PLUGIN_MODULE_PREFIX = 'obagent_plugin_'

PLUGIN_CATEGORIES_FILTER = {
    PluginKind.INPUT: IInputPlugin,
    PluginKind.PROCESSOR: IProcessorPlugin,
    PluginKind.OUTPUT: IOutputPlugin,
    PluginKind.EXPORTER: IExporterPlugin,
}

_REQUIREMENT_NAME_RE = re.compile(r'^\s*([A-Za-z0-9][A-Za-z0-9._-]*)')

_MODULE_NAME_RE = re.compile(r'\W')


class PluginFatalError(Exception):
    pass


class PluginCandidate(object):

    def __init__(self, info_path, module_path, name):
        self.info_path = info_path
        self.module_path = module_path
        self.name = name

    def __repr__(self):
        return 'PluginCandidate(name={!r}, info_path={!r})'.format(self.name, self.info_path)


def _env_dirs(env_var, raise_errors=True):
    env_value = os.environ.get(env_var)
    if not env_value:
        return []

    folders = []
    for d in env_value.split(os.pathsep):
        if not os.path.isdir(d):
            logger.warning('Wrong path %s in env variable %s', d, env_var)
            if raise_errors:
                raise PluginFatalError('Env plugins error in path: {}, from env_var: {}'.format(d, env_var))
            continue
        folders.append(d)
    return folders


def _filter_additional_dirs(path_list, raise_errors=True):
    if not path_list:
        return []
    folders = []
    for path in path_list:
        if os.path.isdir(path):
            folders.append(path)
        elif raise_errors:
            raise PluginFatalError('Additional dirs contains erroneous path: {}'.format(path))
        else:
            logger.warning('Skipping erroneous plugin path: %s', path)
    return folders


def locate_plugins(path_list):
    """
    Explore the folders (recursively) and return the plugin candidates described by info files
    """
    candidates = []
    for path in path_list:
        for root, dirs, files in os.walk(path):
            dirs.sort()
            for fn in sorted(files):
                if not fn.endswith('.' + PLUGIN_INFO_EXT):
                    continue
                info_path = os.path.join(root, fn)
                candidate = _read_info_file(info_path)
                if candidate is not None:
                    candidates.append(candidate)
    return candidates


def _read_info_file(info_path):
    parser = configparser.ConfigParser()
    try:
        parser.read(info_path)
        name = parser.get('Core', 'Name').strip()
        module = parser.get('Core', 'Module').strip()
    except configparser.Error:
        logger.exception('Erroneous plugin info file %s: ', info_path)
        return PluginCandidate(info_path, None, None)

    return PluginCandidate(info_path, os.path.join(os.path.dirname(info_path), module), name)


def _import_module(candidate):
    module_name = '{}{}'.format(PLUGIN_MODULE_PREFIX, _MODULE_NAME_RE.sub('_', candidate.name))

    if os.path.isdir(candidate.module_path):
        spec = importlib.util.spec_from_file_location(module_name, os.path.join(candidate.module_path, '__init__.py'),
                                                      submodule_search_locations=[candidate.module_path])
    else:
        spec = importlib.util.spec_from_file_location(module_name, candidate.module_path + '.py')

    if spec is None or spec.loader is None:
        raise ImportError('cannot load plugin module from {}'.format(candidate.module_path))

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def _find_plugin_class(module):
    """
    First concrete class defined in the module that extends one of the adapters
    """
    for _, element in inspect.getmembers(module, inspect.isclass):
        if element.__module__ != module.__name__ or inspect.isabstract(element):
            continue
        for kind, interface in PLUGIN_CATEGORIES_FILTER.items():
            if issubclass(element, interface):
                return kind, element
    return None, None


def load_plugins(candidates):
    """
    Import the candidates' modules
    :return: (list of (kind, name, class) loaded, list of candidates with errors)
    """
    loaded = []
    dropped = []
    for candidate in candidates:
        if not candidate.name or not candidate.module_path:
            dropped.append(candidate)
            continue
        try:
            module = _import_module(candidate)
        except Exception:
            logger.exception('Unable to import plugin %s from %s: ', candidate.name, candidate.module_path)
            dropped.append(candidate)
            continue

        kind, plugin_class = _find_plugin_class(module)
        if plugin_class is None:
            logger.error('Plugin %s in %s has no class extending an adapter', candidate.name, candidate.module_path)
            dropped.append(candidate)
            continue

        loaded.append((kind, candidate.name, plugin_class))
    return loaded, dropped


def collect_plugins(managers, additional_dirs=None, load_env=True, env_var=PLUGIN_ENV_VAR, raise_errors=True):
    """
    Locate out-of-tree plugins and register their classes as factories.

    :param managers: PluginManagers receiving the factories
    :param additional_dirs: additional locations to search plugins in
    :param load_env: also explore the folders listed in ``env_var`` (shell $PATH style)
    :param raise_errors: raise PluginFatalError on erroneous paths or broken plugins instead of skipping them
    :return: list of (kind, name) registered
    """
    paths_env = _env_dirs(env_var, raise_errors) if load_env else []
    path_list = paths_env + _filter_additional_dirs(additional_dirs, raise_errors)

    if not path_list:
        return []

    # check plugin dependencies declared in {plugin_dir}/requirements.txt are installed
    for path in list(path_list):
        miss_deps = _check_dependencies(path)
        if miss_deps:
            logger.error('Dependencies missing for plugin %s: %s', path, ','.join(miss_deps))
            if raise_errors:
                raise PluginFatalError('Dependencies missing for plugin {}: {}'.format(path, ','.join(miss_deps)))
            path_list.remove(path)

    candidates = locate_plugins(path_list)
    logger.debug('Recognized plugin candidates: %s', candidates)

    loaded, dropped = load_plugins(candidates)
    if dropped:
        logger.error('These plugin candidates have errors: %s', dropped)
        if raise_errors:
            raise PluginFatalError('Plugin candidates have errors: {}'.format(dropped))

    registered = []
    for kind, name, plugin_class in loaded:
        try:
            managers.for_kind(kind).register(name, plugin_class)
        except DuplicateRegistrationError:
            logger.critical('Plugin %s from %s clashes with a registered %s plugin', name,
                            plugin_class.__module__, kind)
            raise
        registered.append((kind, name))
        logger.info('Loaded %s plugin %s', kind, name)

    return registered


def _check_dependencies(path):
    req_path = os.path.join(path, 'requirements.txt')
    if not os.path.isfile(req_path):
        logger.debug('%s has no requirements.txt file', path)
        return None

    missing_pkg = []
    with open(req_path) as f:
        for line in f:
            stripped = line.strip()
            if not stripped or stripped.startswith('#'):
                continue
            match = _REQUIREMENT_NAME_RE.match(stripped)
            try:
                metadata.distribution(match.group(1) if match else stripped)
            except metadata.PackageNotFoundError:
                missing_pkg.append(stripped)
    return missing_pkg
