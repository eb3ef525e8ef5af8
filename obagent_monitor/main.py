#!/usr/bin/env python
# -*- coding: utf-8 -*-

import argparse
import logging
import logging.config
import os
import sys
import time

import yaml

from obagent_monitor import settings
from obagent_monitor.builtins.plugins import register_builtins
from obagent_monitor.errors import DuplicateRegistrationError
from obagent_monitor.pipeline import Pipeline
from obagent_monitor.plugin_loader import PLUGIN_ENV_VAR, PluginFatalError, collect_plugins
from obagent_monitor.plugin_manager import PluginManagers
from obagent_monitor.response import Sequence, build_response


ENV_PREFIX = 'OBAGENT_'


def parse_args(args):
    parser = argparse.ArgumentParser(prog='obagent-monitor')
    parser.add_argument('-c', '--config-file', help='path to config file')
    parser.add_argument('--list-plugins', action='store_true', help='Print the registered plugins and exit')
    parser.add_argument('--once', action='store_true',
                        help='Run the configured pipeline once and print the response as json')
    return parser.parse_args(args)


def read_config(path):
    with open(path) as fd:
        config = yaml.safe_load(fd)
    return config or {}


def process_env(config, environ):
    # allow overwritting any flat configuration setting via env vars
    for k, v in environ.items():
        if k.startswith(ENV_PREFIX) and k != PLUGIN_ENV_VAR:
            config[k[len(ENV_PREFIX):].replace('_', '.').lower()] = v
    return config


def load_config(path=None, environ=None):
    config = {}

    # load default configuration from file
    for p in (path, 'config.yaml'):
        if p and os.path.exists(p):
            config = read_config(p)
            break

    return process_env(config, os.environ if environ is None else environ)


def plugin_dirs(config):
    dirs = config.get('plugins.dirs') or []
    if isinstance(dirs, str):
        dirs = [d for d in dirs.split(os.pathsep) if d]
    return dirs


def setup_plugins(config, managers=None):
    """
    Register builtin and out-of-tree plugins
    :raises DuplicateRegistrationError: two plugins share a name within a kind
    """
    managers = PluginManagers.create() if managers is None else managers

    register_builtins(managers)

    # load external plugins (should be run only once)
    collect_plugins(managers, additional_dirs=plugin_dirs(config), load_env=True)

    return managers


def run_once(managers, config):
    started = time.time()
    try:
        metrics = Pipeline.from_config(managers, config.get('pipeline')).run_once()
    except Exception as e:
        return build_response(err=e, started=started)
    return build_response(Sequence(metrics), started=started)


def main(args=None):

    args = parse_args(args)

    config = load_config(args.config_file)

    logging.config.dictConfig(settings.logging_config(config.get('loglevel', 'INFO')))

    logger = logging.getLogger(__name__)

    try:
        managers = setup_plugins(config)
    except (DuplicateRegistrationError, PluginFatalError) as e:
        logger.critical('Plugin registration failed, the agent can not start: %s', e)
        sys.exit(1)

    logger.info('Registered plugins: %s', managers.describe())

    if args.list_plugins:
        sys.stdout.write(yaml.safe_dump(managers.describe(), default_flow_style=False))
        return managers

    if args.once:
        response = run_once(managers, config)
        sys.stdout.write(response.to_json(indent=2) + '\n')
        if not response.successful:
            sys.exit(2)

    return managers


if __name__ == '__main__':
    main()
