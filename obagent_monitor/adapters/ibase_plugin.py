#!/usr/bin/env python
# -*- coding: utf-8 -*-

from abc import ABCMeta, abstractmethod

from obagent_monitor.errors import LifecycleViolationError


CREATED = 'created'
READY = 'ready'
CLOSED = 'closed'


class IBasePlugin(object, metaclass=ABCMeta):
    """
    Base class for all adapters (plugin kinds). Users should not extend this class directly.

    Every instance goes through the same states: ``created`` after construction, ``ready`` after a successful
    ``init(conf)`` and ``closed`` after ``close()``. Data operations of the adapters are only valid while ready.
    """

    description = ''

    sample_config = ''

    def __init__(self):
        """
        Set the basic variables.
        """
        self._state = CREATED
        self._init_failed = False
        self._released = False

    @property
    def state(self):
        return self._state

    @property
    def is_ready(self):
        return self._state == READY

    def init(self, conf=None):
        """
        Configure the instance once. A failed init leaves the instance unusable, the caller must discard it.
        :param conf: configuration dictionary
        """
        if self._state != CREATED or self._init_failed:
            raise LifecycleViolationError(self._describe_state(), 'init')

        try:
            self.configure({} if conf is None else conf)
        except Exception:
            self._init_failed = True
            raise

        self._state = READY

    def close(self):
        """
        Release held resources. Calling it again on a closed instance is a no-op.
        """
        if self._state == CLOSED:
            return

        self._state = CLOSED
        if not self._released:
            self._released = True
            self.release()

    def ensure_ready(self, operation):
        if self._state != READY:
            raise LifecycleViolationError(self._describe_state(), operation)

    def _describe_state(self):
        return '{} (init failed)'.format(self._state) if self._init_failed else self._state

    @abstractmethod
    def configure(self, conf):
        """
        Called by init() with the plugin configuration
        :param conf: configuration dictionary
        """
        raise NotImplementedError

    def release(self):
        """
        Called once by close(). Implementations must cope with partially acquired resources.
        """
        return

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
