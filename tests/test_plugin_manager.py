#!/usr/bin/env python
# -*- coding: utf-8 -*-

import threading

import pytest
from mock import MagicMock

from obagent_monitor import plugin_manager
from obagent_monitor.adapters import IInputPlugin, IProcessorPlugin, IOutputPlugin, IExporterPlugin
from obagent_monitor.errors import DuplicateRegistrationError, PluginNotFoundError, PLUGIN_NOT_FOUND
from obagent_monitor.plugin_manager import (
    PluginKind, PluginRegistry, PluginManagers, InputManager, ProcessorManager, OutputManager, ExporterManager
)


class CpuInput(IInputPlugin):
    def configure(self, conf):
        pass

    def _collect(self):
        return []


class OtherCpuInput(CpuInput):
    pass


class NoopProcessor(IProcessorPlugin):
    def configure(self, conf):
        pass

    def _process(self, metrics):
        return metrics


class NoopOutput(IOutputPlugin):
    def configure(self, conf):
        pass

    def _write(self, metrics):
        pass


class NoopExporter(IExporterPlugin):
    def configure(self, conf):
        pass

    def _collect(self):
        return []


KIND_FACTORIES = [
    (InputManager, CpuInput),
    (ProcessorManager, NoopProcessor),
    (OutputManager, NoopOutput),
    (ExporterManager, NoopExporter),
]


@pytest.fixture
def managers():
    return PluginManagers(InputManager(), ProcessorManager(), OutputManager(), ExporterManager())


@pytest.mark.parametrize('manager_class,factory', KIND_FACTORIES)
def test_register_twice_keeps_first_factory(manager_class, factory):
    manager = manager_class()
    manager.register('dup', factory)

    second = MagicMock()
    with pytest.raises(DuplicateRegistrationError) as ex:
        manager.register('dup', second)

    assert ex.value.kind == manager_class.kind
    assert ex.value.name == 'dup'
    assert isinstance(manager.get_plugin('dup'), factory)
    second.assert_not_called()


@pytest.mark.parametrize('manager_class,factory', KIND_FACTORIES)
def test_get_unknown_plugin(manager_class, factory):
    manager = manager_class()
    manager.register('known', factory)

    with pytest.raises(PluginNotFoundError):
        manager.get_plugin('unknown')

    assert manager.names() == ['known']


def test_register_cpu_twice_scenario(managers):
    managers.input.register('cpu', CpuInput)

    with pytest.raises(DuplicateRegistrationError):
        managers.input.register('cpu', OtherCpuInput)

    plugin = managers.input.get_plugin('cpu')
    assert type(plugin) is CpuInput


def test_processor_not_found_scenario(managers):
    with pytest.raises(PluginNotFoundError) as ex:
        managers.processor.get_plugin('nope')

    err = ex.value
    assert err.kind == PluginKind.PROCESSOR
    assert err.name == 'nope'
    assert 'processor' in err.message
    assert 'nope' in err.message
    assert err.code == PLUGIN_NOT_FOUND.code
    assert err.status == 404


def test_get_plugin_returns_fresh_instances(managers):
    managers.exporter.register('noop', NoopExporter)

    first = managers.exporter.get_plugin('noop')
    second = managers.exporter.get_plugin('noop')

    assert first is not second
    assert first.state == second.state == 'created'


def test_same_name_in_different_kinds(managers):
    managers.input.register('shared', CpuInput)
    managers.exporter.register('shared', NoopExporter)

    assert isinstance(managers.input.get_plugin('shared'), CpuInput)
    assert isinstance(managers.exporter.get_plugin('shared'), NoopExporter)


def test_factory_of_wrong_kind(managers):
    managers.output.register('wrong', CpuInput)

    with pytest.raises(TypeError):
        managers.output.get_plugin('wrong')


def test_register_not_callable():
    registry = PluginRegistry('input')

    with pytest.raises(TypeError):
        registry.register('x', object())

    assert len(registry) == 0


def test_factory_error_propagates():
    registry = PluginRegistry(PluginKind.INPUT)
    registry.register('broken', MagicMock(side_effect=RuntimeError('boom')))

    with pytest.raises(RuntimeError):
        registry.get_plugin('broken')

    assert 'broken' in registry


def test_factory_runs_outside_the_lock():
    registry = PluginRegistry(PluginKind.INPUT)
    entered = threading.Event()
    release = threading.Event()

    def slow_factory():
        entered.set()
        release.wait(5)
        return CpuInput()

    registry.register('slow', slow_factory)
    registry.register('fast', CpuInput)

    t = threading.Thread(target=registry.get_plugin, args=('slow',))
    t.start()
    try:
        assert entered.wait(5)
        # the slow factory is running, unrelated calls must not block
        assert isinstance(registry.get_plugin('fast'), CpuInput)
        registry.register('late', CpuInput)
    finally:
        release.set()
        t.join(5)

    assert registry.names() == ['fast', 'late', 'slow']


def test_concurrent_registration_loses_nothing():
    registry = PluginRegistry(PluginKind.OUTPUT)
    names = ['plugin-{}'.format(i) for i in range(200)]
    barrier = threading.Barrier(8)

    def register(chunk):
        barrier.wait()
        for name in chunk:
            registry.register(name, NoopOutput)

    threads = [threading.Thread(target=register, args=(names[i::8],)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert registry.names() == sorted(names)


def test_concurrent_duplicate_registration_only_one_wins():
    registry = PluginRegistry(PluginKind.INPUT)
    barrier = threading.Barrier(10)
    errors = []
    lock = threading.Lock()

    def register():
        barrier.wait()
        try:
            registry.register('cpu', CpuInput)
        except DuplicateRegistrationError as e:
            with lock:
                errors.append(e)

    threads = [threading.Thread(target=register) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(errors) == 9
    assert len(registry) == 1


@pytest.mark.parametrize('getter,manager_class', [
    (plugin_manager.get_input_manager, InputManager),
    (plugin_manager.get_processor_manager, ProcessorManager),
    (plugin_manager.get_output_manager, OutputManager),
    (plugin_manager.get_exporter_manager, ExporterManager),
])
def test_manager_singleton(monkeypatch, getter, manager_class):
    monkeypatch.setattr(plugin_manager, '_managers', {})

    created = []
    original_init = manager_class.__init__

    def counting_init(self):
        created.append(self)
        original_init(self)

    monkeypatch.setattr(manager_class, '__init__', counting_init)

    barrier = threading.Barrier(16)
    results = []
    lock = threading.Lock()

    def get():
        barrier.wait()
        m = getter()
        with lock:
            results.append(m)

    threads = [threading.Thread(target=get) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 1
    assert all(m is results[0] for m in results)
    assert isinstance(results[0], manager_class)
    assert getter() is results[0]


def test_plugin_managers_bundle(monkeypatch, managers):
    monkeypatch.setattr(plugin_manager, '_managers', {})

    bundle = PluginManagers.create()
    assert bundle.input is plugin_manager.get_input_manager()
    assert bundle.exporter is plugin_manager.get_exporter_manager()
    assert PluginManagers.create().processor is bundle.processor

    managers.input.register('cpu', CpuInput)
    managers.exporter.register('noop', NoopExporter)

    assert managers.for_kind('input') is managers.input
    assert managers.for_kind(PluginKind.OUTPUT) is managers.output
    assert managers.describe() == {'input': ['cpu'], 'processor': [], 'output': [], 'exporter': ['noop']}
