#!/usr/bin/env python
# -*- coding: utf-8 -*-

from obagent_monitor.adapters import IProcessorPlugin

from .names import upper_name


class UpperProcessor(IProcessorPlugin):

    """
    Example of a processor plugin shipped as a package
    """

    def configure(self, conf):
        pass

    def _process(self, metrics):
        return [m.rename(upper_name(m.name)) for m in metrics]
