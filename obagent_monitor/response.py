#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Response envelope returned by the agent API for every call.

The caller states the shape of the payload with ``Empty``, ``Scalar`` or ``Sequence``; sequences are wrapped as
``{"contents": [...]}`` so that clients can tell them apart from scalars.
"""

import datetime
import json
import logging
import socket
import time
import uuid
from abc import ABCMeta, abstractmethod

from obagent_monitor.encoder import JsonDataEncoder
from obagent_monitor.errors import occur

logger = logging.getLogger(__name__)


HTTP_OK = 200


class Payload(object, metaclass=ABCMeta):

    @abstractmethod
    def to_data(self):
        pass


class Empty(Payload):

    def to_data(self):
        return None

    def __repr__(self):
        return 'Empty()'


class Scalar(Payload):

    def __init__(self, value):
        self.value = value

    def to_data(self):
        return self.value

    def __repr__(self):
        return 'Scalar({!r})'.format(self.value)


class Sequence(Payload):

    def __init__(self, items):
        self.items = list(items)

    def to_data(self):
        return {'contents': self.items}

    def __repr__(self):
        return 'Sequence({!r})'.format(self.items)


EMPTY = Empty()


class ApiError(object):

    def __init__(self, code, message, sub_errors=None):
        self.code = code
        self.message = message
        self.sub_errors = list(sub_errors or [])

    def to_dict(self):
        return {'code': self.code, 'message': self.message, 'subErrors': self.sub_errors}

    def __str__(self):
        if not self.sub_errors:
            return '{{Code:{}, Message:{}}}'.format(self.code, self.message)
        return '{{Code:{}, Message:{}, SubErrors:{}}}'.format(self.code, self.message, self.sub_errors)


class AgentResponse(object):

    def __init__(self, successful, status, data=None, error=None, timestamp=None, duration=0, trace_id='',
                 server=''):
        self.successful = successful
        self.timestamp = timestamp or datetime.datetime.now(datetime.timezone.utc)
        self.duration = duration
        self.status = status
        self.trace_id = trace_id
        self.server = server
        self.data = data
        self.error = error

    def to_dict(self):
        d = {
            'successful': self.successful,
            'timestamp': self.timestamp,
            'durationMs': self.duration,
            'status': self.status,
            'traceId': self.trace_id,
            'server': self.server,
        }
        if self.data is not None:
            d['data'] = self.data
        if self.error is not None:
            d['error'] = self.error.to_dict()
        return d

    def to_json(self, **kwargs):
        return json.dumps(self.to_dict(), cls=JsonDataEncoder, **kwargs)


_server_address = None


def server_address():
    global _server_address

    if _server_address is None:
        try:
            _server_address = socket.gethostbyname(socket.gethostname())
        except socket.error:
            logger.warning('Unable to resolve the local address, using loopback')
            _server_address = '127.0.0.1'
    return _server_address


def _duration_ms(started):
    return 0 if started is None else max(0, int(round((time.time() - started) * 1000)))


def new_success_response(payload=EMPTY, started=None, trace_id=None):
    return AgentResponse(
        successful=True,
        status=HTTP_OK,
        data=payload.to_data(),
        duration=_duration_ms(started),
        trace_id=trace_id or uuid.uuid4().hex,
        server=server_address(),
    )


def new_error_response(err, started=None, trace_id=None):
    return AgentResponse(
        successful=False,
        status=err.status,
        error=ApiError(err.code, err.message),
        duration=_duration_ms(started),
        trace_id=trace_id or uuid.uuid4().hex,
        server=server_address(),
    )


def build_response(payload=None, err=None, started=None, trace_id=None):
    """
    Build the envelope of a (payload, error) pair.

    :param payload: Empty, Scalar or Sequence, None means Empty
    :param err: exception of the call, not an AgentError ones are reported as unexpected errors
    :param started: time.time() when handling started, for the duration
    :param trace_id: trace id of the request, generated if missing
    """
    if err is not None:
        agent_err = occur(err)
        if agent_err.log_level:
            logger.log(agent_err.log_level, 'Request failed: %s', agent_err)
        return new_error_response(agent_err, started, trace_id)

    if payload is None:
        payload = EMPTY
    if not isinstance(payload, Payload):
        raise TypeError('payload must be Empty, Scalar or Sequence, got {}'.format(type(payload).__name__))
    return new_success_response(payload, started, trace_id)
