#!/usr/bin/env python
# -*- coding: utf-8 -*-

import fnmatch

from obagent_monitor.adapters import IProcessorPlugin
from obagent_monitor.errors import ConfigTranslationError


class ExcludeProcessor(IProcessorPlugin):

    description = 'Drops metrics whose name matches one of the shell-style patterns.'

    sample_config = '''
names:
  - mysql_global_variables_*
  - mysql_exporter_*
'''

    def __init__(self):
        super(ExcludeProcessor, self).__init__()
        self.patterns = ()

    def configure(self, conf):
        names = conf.get('names') or []
        if not isinstance(names, (list, tuple)) or not all(isinstance(n, str) for n in names):
            raise ConfigTranslationError('names must be a list of patterns')
        self.patterns = tuple(names)

    def _process(self, metrics):
        return [m for m in metrics if not any(fnmatch.fnmatchcase(m.name, p) for p in self.patterns)]
