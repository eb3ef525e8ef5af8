#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
One pass of collection: a source (exporter or input), processors in order and an optional output.

Deciding when to run a pass is left to the caller. Every instance is created for the pass and closed at its end.
"""

import logging
from collections.abc import Mapping

from obagent_monitor.errors import AgentError, ConfigTranslationError, UnexpectedError

logger = logging.getLogger(__name__)


class PluginRef(object):

    def __init__(self, name, config=None):
        self.name = name
        self.config = dict(config or {})

    @classmethod
    def from_config(cls, conf, what):
        if isinstance(conf, str):
            return cls(conf)
        if not isinstance(conf, Mapping) or not conf.get('name'):
            raise ConfigTranslationError('pipeline {} must be a name or a mapping with a name'.format(what))
        config = conf.get('config') or {}
        if not isinstance(config, Mapping):
            raise ConfigTranslationError('pipeline {} {} config must be a mapping'.format(what, conf['name']))
        return cls(conf['name'], config)

    def __repr__(self):
        return 'PluginRef({!r})'.format(self.name)


class Pipeline(object):

    def __init__(self, managers, source, source_kind='exporter', processors=None, output=None):
        if source_kind not in ('exporter', 'input'):
            raise ConfigTranslationError('pipeline source must be an exporter or an input')
        self.managers = managers
        self.source = source
        self.source_kind = source_kind
        self.processors = list(processors or [])
        self.output = output

    @classmethod
    def from_config(cls, managers, conf):
        """
        :param conf: mapping with ``exporter`` or ``input``, ``processors`` (list) and ``output``, every plugin being
            a name or a mapping ``{name: ..., config: {...}}``
        """
        if not isinstance(conf, Mapping):
            raise ConfigTranslationError('pipeline must be a mapping')
        if ('exporter' in conf) == ('input' in conf):
            raise ConfigTranslationError('pipeline needs exactly one of exporter or input')

        source_kind = 'exporter' if 'exporter' in conf else 'input'
        processors = conf.get('processors') or []
        if not isinstance(processors, list):
            raise ConfigTranslationError('pipeline processors must be a list')

        return cls(
            managers,
            PluginRef.from_config(conf[source_kind], source_kind),
            source_kind=source_kind,
            processors=[PluginRef.from_config(p, 'processor') for p in processors],
            output=PluginRef.from_config(conf['output'], 'output') if conf.get('output') else None,
        )

    def run_once(self):
        """
        :return: list of Metric after the processors
        :raises AgentError: on any failure, instances created so far are closed
        """
        created = []
        try:
            source = self._create(self.managers.for_kind(self.source_kind), self.source, created)
            metrics = source.collect()
            logger.debug('%s %s collected %d metrics', self.source_kind, self.source.name, len(metrics))

            for ref in self.processors:
                processor = self._create(self.managers.processor, ref, created)
                metrics = processor.process(metrics)

            if self.output is not None:
                output = self._create(self.managers.output, self.output, created)
                output.write(metrics)

            return metrics
        except AgentError:
            raise
        except Exception as e:
            logger.exception('Unexpected error in pipeline of %s %s: ', self.source_kind, self.source.name)
            raise UnexpectedError(e) from e
        finally:
            for plugin in reversed(created):
                try:
                    plugin.close()
                except Exception:
                    logger.exception('Failed to close plugin %s: ', type(plugin).__name__)

    @staticmethod
    def _create(manager, ref, created):
        plugin = manager.get_plugin(ref.name)
        created.append(plugin)
        plugin.init(ref.config)
        return plugin
