# -*- coding: utf-8 -*-
"""
Project settings: logging configuration applied at startup through logging.config.dictConfig
"""

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'custom': {
            'format': '%(asctime)s %(levelname)s [agent-%(process)d] %(name)s/%(funcName)s: %(message)s'
        },
    },

    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'custom',
            'stream': 'ext://sys.stderr',
        },
    },

    'loggers': {
        '': {
            'handlers': ['console'],
            'propagate': True,
            'level': 'INFO',
        },
    }
}


def logging_config(level='INFO'):
    """
    Copy of LOGGING with the root logger set to ``level``
    """
    conf = dict(LOGGING)
    conf['loggers'] = {'': dict(LOGGING['loggers'][''], level=str(level).upper())}
    return conf
