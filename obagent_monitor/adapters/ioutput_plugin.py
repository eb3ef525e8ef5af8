#!/usr/bin/env python
# -*- coding: utf-8 -*-

from abc import ABCMeta, abstractmethod

from obagent_monitor.adapters.ibase_plugin import IBasePlugin


class IOutputPlugin(IBasePlugin, metaclass=ABCMeta):
    """
    Base class for all plugins of kind Output.
    """

    def write(self, metrics):
        """
        :param metrics: list of Metric
        """
        self.ensure_ready('write')
        self._write(list(metrics))

    @abstractmethod
    def _write(self, metrics):
        raise NotImplementedError
