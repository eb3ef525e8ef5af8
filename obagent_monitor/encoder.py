#!/usr/bin/env python
# -*- coding: utf-8 -*-

import datetime
import json
from collections.abc import Set
from decimal import Decimal
from enum import Enum

from obagent_monitor.metric import Metric


class JsonDataEncoder(json.JSONEncoder):
    def default(self, o):
        '''
        >>> JsonDataEncoder().encode(datetime.date(2021, 5, 1))
        '"2021-05-01"'
        >>> JsonDataEncoder().encode(Decimal('3.14'))
        '3.14'
        >>> JsonDataEncoder().encode(set([1, 2]))
        '[1, 2]'
        >>> JsonDataEncoder().encode(float('nan'))
        'null'
        >>> JsonDataEncoder().encode(float('inf'))
        '"Infinity"'
        '''
        if isinstance(o, (datetime.datetime, datetime.date, datetime.time)):
            return o.isoformat()
        elif isinstance(o, Decimal):
            return float(o)
        elif isinstance(o, Set):
            return sorted(o) if all(isinstance(i, (int, float, str)) for i in o) else list(o)
        elif isinstance(o, Metric):
            return o.to_dict()
        elif isinstance(o, Enum):
            return o.value
        else:
            return super(JsonDataEncoder, self).default(o)

    def iterencode(self, o, _one_shot=False):
        # the C encoder returns a single chunk, nothing to substitute in it
        for chunk in super(JsonDataEncoder, self).iterencode(o, _one_shot=False):
            yield {'NaN': 'null', 'Infinity': '"Infinity"', '-Infinity': '"-Infinity"'}.get(chunk, chunk)
