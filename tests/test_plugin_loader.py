#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os

import pytest

from obagent_monitor.builtins.plugins import register_builtins
from obagent_monitor.errors import DuplicateRegistrationError
from obagent_monitor.plugin_loader import PluginFatalError, collect_plugins, locate_plugins, load_plugins
from obagent_monitor.plugin_manager import PluginKind, PluginManagers, InputManager, ProcessorManager, \
    OutputManager, ExporterManager


PLUGINS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'plugins')

SIMPLE_DIR = os.path.join(PLUGINS_DIR, 'simple_plugins')

BROKEN_DIR = os.path.join(PLUGINS_DIR, 'broken_plugins')


def simple_dir():
    return SIMPLE_DIR


def broken_dir(name=''):
    return os.path.join(BROKEN_DIR, name) if name else BROKEN_DIR


@pytest.fixture
def managers():
    return PluginManagers(InputManager(), ProcessorManager(), OutputManager(), ExporterManager())


@pytest.fixture(autouse=True)
def fx_no_env_plugins(monkeypatch):
    monkeypatch.delenv('OBAGENT_PLUGINS', raising=False)


def test_load_simple_plugins(managers):
    registered = collect_plugins(managers, additional_dirs=[simple_dir()], load_env=False)

    assert sorted(registered, key=lambda r: r[1]) == [
        (PluginKind.INPUT, 'cpu'),
        (PluginKind.OUTPUT, 'memory_sink'),
        (PluginKind.PROCESSOR, 'upper'),
    ]

    cpu = managers.input.get_plugin('cpu')
    cpu.init({'cores': 2})
    metrics = cpu.collect()
    assert [dict(m.labels) for m in metrics] == [{'cpu': '0'}, {'cpu': '1'}]

    upper = managers.processor.get_plugin('upper')
    upper.init()
    assert [m.name for m in upper.process(metrics)] == ['NODE_CPU_USAGE', 'NODE_CPU_USAGE']

    assert managers.output.names() == ['memory_sink']
    assert managers.exporter.names() == []


def test_every_get_creates_a_new_instance(managers):
    collect_plugins(managers, additional_dirs=[simple_dir()], load_env=False)

    first = managers.input.get_plugin('cpu')
    second = managers.input.get_plugin('cpu')

    assert first is not second
    assert type(first) is type(second)


def test_load_plugins_from_env(managers, monkeypatch):
    monkeypatch.setenv('OBAGENT_PLUGINS', simple_dir())

    registered = collect_plugins(managers)

    assert (PluginKind.INPUT, 'cpu') in registered


def test_wrong_env_path(managers, monkeypatch):
    monkeypatch.setenv('OBAGENT_PLUGINS', os.pathsep.join([simple_dir(), '/non/existent/path']))

    with pytest.raises(PluginFatalError):
        collect_plugins(managers)

    assert collect_plugins(managers, raise_errors=False) == [
        (PluginKind.INPUT, 'cpu'),
        (PluginKind.OUTPUT, 'memory_sink'),
        (PluginKind.PROCESSOR, 'upper'),
    ]


def test_wrong_additional_dir(managers):
    with pytest.raises(PluginFatalError):
        collect_plugins(managers, additional_dirs=['/non/existent/path'], load_env=False)

    assert collect_plugins(managers, additional_dirs=['/non/existent/path'], load_env=False,
                           raise_errors=False) == []


def test_no_dirs(managers):
    assert collect_plugins(managers, load_env=False) == []
    assert len(managers.input) == 0


def test_broken_plugins(managers):
    with pytest.raises(PluginFatalError):
        collect_plugins(managers, additional_dirs=[broken_dir()], load_env=False)

    assert len(managers.input) == 0
    assert len(managers.processor) == 0


def test_broken_plugins_are_dropped():
    loaded, dropped = load_plugins(locate_plugins([broken_dir()]))

    assert loaded == []
    assert sorted(os.path.basename(c.info_path) for c in dropped) == [
        'bad_import.agent_plugin', 'bad_info.agent_plugin', 'no_adapter.agent_plugin', 'wont_be_loaded.agent_plugin',
    ]


def test_skip_broken_plugins(managers):
    registered = collect_plugins(managers, additional_dirs=[broken_dir(), simple_dir()], load_env=False,
                                 raise_errors=False)

    assert sorted(name for _, name in registered) == ['cpu', 'memory_sink', 'upper']


def test_missing_dependencies(managers):
    with pytest.raises(PluginFatalError) as ex:
        collect_plugins(managers, additional_dirs=[broken_dir('plugin_dir_with_requirements')], load_env=False)

    assert 'obagent-missing-dependency' in str(ex.value)
    assert 'PyYAML' not in str(ex.value)

    assert collect_plugins(managers, additional_dirs=[broken_dir('plugin_dir_with_requirements')], load_env=False,
                           raise_errors=False) == []


def test_plugin_clashing_with_builtin(managers):
    register_builtins(managers)

    with pytest.raises(DuplicateRegistrationError) as ex:
        collect_plugins(managers, additional_dirs=[os.path.join(PLUGINS_DIR, 'duplicate_plugins')], load_env=False)

    assert ex.value.kind == PluginKind.PROCESSOR
    assert ex.value.name == 'label'
    assert type(managers.processor.get_plugin('label')).__name__ == 'LabelProcessor'


def test_plugins_loaded_twice_clash(managers):
    collect_plugins(managers, additional_dirs=[simple_dir()], load_env=False)

    with pytest.raises(DuplicateRegistrationError):
        collect_plugins(managers, additional_dirs=[simple_dir()], load_env=False)
