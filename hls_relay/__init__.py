#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
from logging.config import dictConfig
from importlib import import_module

from quart import Quart

from hls_relay.config import load_config

dictConfig({
    'version':    1,
    'formatters': {
        'default': {
            'format': '%(asctime)s:%(levelname)s:%(name)s: %(message)s',
        }
    },
    'handlers':   {
        'wsgi': {
            'class':     'logging.StreamHandler',
            'stream':    'ext://sys.stderr',
            'formatter': 'default'
        }
    },
    'root':       {
        'level':    'INFO',
        'handlers': ['wsgi']
    }
})


def create_app(config=None):
    if config is None:
        config = load_config()

    # Create app
    app = Quart(__name__, instance_relative_config=True)
    app.config['RELAY_CONFIG'] = config

    # Target URLs are carried in the path and contain '//'
    app.url_map.merge_slashes = False

    # Register the route blueprints
    module = import_module('hls_relay.api.routes_proxy')
    app.register_blueprint(module.blueprint)

    level = logging.DEBUG if config.debug else logging.INFO
    app.logger.setLevel(level)
    for name in ('proxy', 'manifest'):
        logging.getLogger(name).setLevel(level)

    return app
