#!/usr/bin/env python
# -*- coding: utf-8 -*-

from abc import ABCMeta, abstractmethod

from obagent_monitor.adapters.ibase_plugin import IBasePlugin


class ICollectorPlugin(IBasePlugin, metaclass=ABCMeta):
    """
    Shared behaviour of the plugin kinds producing metrics. Extend IInputPlugin or IExporterPlugin instead.
    """

    def collect(self):
        """
        Collect metrics once.
        :return: list of Metric, never a partial result
        """
        self.ensure_ready('collect')
        return list(self._collect())

    @abstractmethod
    def _collect(self):
        raise NotImplementedError


class IInputPlugin(ICollectorPlugin, metaclass=ABCMeta):
    """
    Base class for all plugins of kind Input: native collectors of the agent.
    """


class IExporterPlugin(ICollectorPlugin, metaclass=ABCMeta):
    """
    Base class for all plugins of kind Exporter: collectors built on top of an external exporter library.
    """
