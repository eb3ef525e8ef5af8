#!/usr/bin/env python
# -*- coding: utf-8 -*-

from collections.abc import Mapping

from obagent_monitor.adapters import IProcessorPlugin
from obagent_monitor.errors import ConfigTranslationError


class LabelProcessor(IProcessorPlugin):

    description = 'Adds constant labels to every metric.'

    sample_config = '''
labels:
  cluster: obcluster
  tenant: sys
overwrite: false
'''

    def __init__(self):
        super(LabelProcessor, self).__init__()
        self.labels = {}
        self.overwrite = True

    def configure(self, conf):
        labels = conf.get('labels') or {}
        if not isinstance(labels, Mapping):
            raise ConfigTranslationError('labels must be a mapping of label name to value')
        self.labels = {str(k): str(v) for k, v in labels.items()}
        self.overwrite = bool(conf.get('overwrite', True))

    def _process(self, metrics):
        if not self.labels:
            return metrics
        return [m.with_labels(self.labels, overwrite=self.overwrite) for m in metrics]
