#!/usr/bin/env python
# -*- coding: utf-8 -*-

from abc import ABCMeta, abstractmethod

from obagent_monitor.adapters.ibase_plugin import IBasePlugin


class IProcessorPlugin(IBasePlugin, metaclass=ABCMeta):
    """
    Base class for all plugins of kind Processor. A processor returns new records, it never changes its input.
    """

    def process(self, metrics):
        """
        :param metrics: list of Metric
        :return: list of Metric
        """
        self.ensure_ready('process')
        return list(self._process(list(metrics)))

    @abstractmethod
    def _process(self, metrics):
        raise NotImplementedError
