#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Error model of the agent.

Every runtime failure travels as an ``AgentError`` carrying a stable ``ErrorCode``, so the API layer
can render it without inspecting the exception. Registration defects (``DuplicateRegistrationError``)
use the same hierarchy but startup code treats them as fatal.
"""

import logging


class ErrorCode(object):
    """
    Stable identifier of an error class: numeric code, HTTP-like status and a message template.
    """

    def __init__(self, code, status, key, template):
        self.code = code
        self.status = status
        self.key = key
        self.template = template

    def format(self, **kwargs):
        return self.template.format(**kwargs)

    def __repr__(self):
        return 'ErrorCode(code={}, status={}, key={})'.format(self.code, self.status, self.key)


UNEXPECTED = ErrorCode(1000, 500, 'err.unexpected', 'unexpected error: {reason}')

DUPLICATE_REGISTRATION = ErrorCode(1001, 500, 'err.plugin.duplicate', '{kind} plugin {name} already registered')

PLUGIN_NOT_FOUND = ErrorCode(1002, 404, 'err.plugin.not.found', '{kind} plugin {name} not exist')

LIFECYCLE_VIOLATION = ErrorCode(1003, 409, 'err.plugin.lifecycle',
                                'operation {operation} is not allowed in state {state}')

CONFIG_TRANSLATION = ErrorCode(1004, 400, 'err.plugin.config', 'invalid plugin configuration: {reason}')

EXTERNAL_GATHER = ErrorCode(1005, 502, 'err.plugin.gather', 'collector gather failed: {reason}')


class AgentError(Exception):
    """
    Base class for our handled errors
    """
    error_code = UNEXPECTED

    def __init__(self, message='', error_code=None, log='ERROR'):
        super(AgentError, self).__init__(message)
        if error_code is not None:
            self.error_code = error_code
        self.message = message
        self.log_level = log if isinstance(log, int) else (getattr(logging, log) if log else logging.NOTSET)

    @property
    def code(self):
        return self.error_code.code

    @property
    def status(self):
        return self.error_code.status

    def __str__(self):
        return self.message


class DuplicateRegistrationError(AgentError):
    error_code = DUPLICATE_REGISTRATION

    def __init__(self, kind, name):
        self.kind = kind
        self.name = name
        super(DuplicateRegistrationError, self).__init__(DUPLICATE_REGISTRATION.format(kind=kind, name=name),
                                                         log='CRITICAL')


class PluginNotFoundError(AgentError):
    error_code = PLUGIN_NOT_FOUND

    def __init__(self, kind, name):
        self.kind = kind
        self.name = name
        super(PluginNotFoundError, self).__init__(PLUGIN_NOT_FOUND.format(kind=kind, name=name), log='INFO')


class LifecycleViolationError(AgentError):
    error_code = LIFECYCLE_VIOLATION

    def __init__(self, state, operation):
        self.state = state
        self.operation = operation
        super(LifecycleViolationError, self).__init__(
            LIFECYCLE_VIOLATION.format(state=state, operation=operation), log='WARNING')


class ConfigTranslationError(AgentError):
    error_code = CONFIG_TRANSLATION

    def __init__(self, reason):
        self.reason = reason
        super(ConfigTranslationError, self).__init__(CONFIG_TRANSLATION.format(reason=reason))


class ExternalGatherError(AgentError):
    error_code = EXTERNAL_GATHER

    def __init__(self, cause):
        self.cause = cause
        super(ExternalGatherError, self).__init__(EXTERNAL_GATHER.format(reason=cause))


class UnexpectedError(AgentError):
    error_code = UNEXPECTED

    def __init__(self, cause):
        self.cause = cause
        super(UnexpectedError, self).__init__(str(cause) or cause.__class__.__name__)


def occur(exc):
    """
    Normalize any exception into an AgentError, wrapping unknown ones into UnexpectedError.
    """
    if isinstance(exc, AgentError):
        return exc
    return UnexpectedError(exc)
