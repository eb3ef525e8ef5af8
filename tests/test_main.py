#!/usr/bin/env python
# -*- coding: utf-8 -*-

import json
import os

import pytest
import yaml
from mock import patch

from obagent_monitor import main
from obagent_monitor.errors import ExternalGatherError
from obagent_monitor.plugin_manager import PluginManagers, InputManager, ProcessorManager, OutputManager, \
    ExporterManager


SIMPLE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'plugins', 'simple_plugins')

DUPLICATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'plugins', 'duplicate_plugins')


@pytest.fixture
def managers():
    return PluginManagers(InputManager(), ProcessorManager(), OutputManager(), ExporterManager())


@pytest.fixture(autouse=True)
def fx_env(monkeypatch, managers):
    monkeypatch.delenv('OBAGENT_PLUGINS', raising=False)
    monkeypatch.setattr(main.PluginManagers, 'create', classmethod(lambda cls: managers))
    monkeypatch.setattr(main.logging.config, 'dictConfig', lambda conf: None)


def _write_config(tmpdir, config):
    path = tmpdir.join('config.yaml')
    path.write(yaml.safe_dump(config))
    return str(path)


def test_process_env():
    config = main.process_env({'loglevel': 'INFO'}, {
        'OBAGENT_LOGLEVEL': 'DEBUG',
        'OBAGENT_PLUGINS_DIRS': '/opt/plugins',
        'OBAGENT_PLUGINS': '/ignored',
        'PATH': '/usr/bin',
    })

    assert config == {'loglevel': 'DEBUG', 'plugins.dirs': '/opt/plugins'}


def test_load_config(tmpdir):
    path = _write_config(tmpdir, {'loglevel': 'WARNING', 'pipeline': {'exporter': 'mysqld'}})

    config = main.load_config(path, environ={'OBAGENT_LOGLEVEL': 'ERROR'})

    assert config == {'loglevel': 'ERROR', 'pipeline': {'exporter': 'mysqld'}}


def test_load_config_missing_file(tmpdir, monkeypatch):
    monkeypatch.chdir(str(tmpdir))
    assert main.load_config(str(tmpdir.join('nope.yaml')), environ={}) == {}


def test_plugin_dirs():
    assert main.plugin_dirs({}) == []
    assert main.plugin_dirs({'plugins.dirs': ['/a', '/b']}) == ['/a', '/b']
    assert main.plugin_dirs({'plugins.dirs': os.pathsep.join(['/a', '', '/b'])}) == ['/a', '/b']


def test_setup_plugins(managers):
    main.setup_plugins({'plugins.dirs': [SIMPLE_DIR]}, managers)

    assert managers.describe() == {
        'input': ['cpu'],
        'processor': ['exclude', 'label', 'upper'],
        'output': ['memory_sink', 'prometheus_text'],
        'exporter': ['mysqld'],
    }


def test_main_list_plugins(tmpdir, capsys):
    path = _write_config(tmpdir, {'plugins.dirs': [SIMPLE_DIR]})

    main.main(['-c', path, '--list-plugins'])

    listed = yaml.safe_load(capsys.readouterr().out)
    assert listed['input'] == ['cpu']
    assert listed['exporter'] == ['mysqld']


def test_main_duplicate_plugin_exits(tmpdir):
    path = _write_config(tmpdir, {'plugins.dirs': [DUPLICATE_DIR]})

    with pytest.raises(SystemExit) as ex:
        main.main(['-c', path])

    assert ex.value.code == 1


def test_main_wrong_plugin_dir_exits(tmpdir):
    path = _write_config(tmpdir, {'plugins.dirs': [str(tmpdir.join('missing'))]})

    with pytest.raises(SystemExit) as ex:
        main.main(['-c', path])

    assert ex.value.code == 1


def test_main_once(tmpdir, capsys):
    path = _write_config(tmpdir, {
        'plugins.dirs': [SIMPLE_DIR],
        'pipeline': {
            'input': {'name': 'cpu', 'config': {'cores': 2}},
            'processors': [{'name': 'label', 'config': {'labels': {'cluster': 'obcluster'}}}],
        },
    })

    main.main(['-c', path, '--once'])

    doc = json.loads(capsys.readouterr().out)
    assert doc['successful'] is True
    assert doc['status'] == 200
    contents = doc['data']['contents']
    assert [m['labels'] for m in contents] == [{'cpu': '0', 'cluster': 'obcluster'},
                                               {'cpu': '1', 'cluster': 'obcluster'}]


def test_main_once_error(tmpdir, capsys):
    path = _write_config(tmpdir, {'pipeline': {'exporter': 'nope'}})

    with pytest.raises(SystemExit) as ex:
        main.main(['-c', path, '--once'])

    assert ex.value.code == 2
    doc = json.loads(capsys.readouterr().out)
    assert doc['successful'] is False
    assert doc['status'] == 404
    assert doc['error']['code'] == 1002


def test_run_once_gather_error(managers):
    with patch.object(main.Pipeline, 'run_once', side_effect=ExternalGatherError(IOError('reset'))):
        response = main.run_once(managers, {'pipeline': {'exporter': 'mysqld'}})

    assert response.successful is False
    assert response.status == 502
    assert response.error.code == 1005


def test_run_once_without_pipeline(managers):
    response = main.run_once(managers, {})

    assert response.successful is False
    assert response.status == 400
