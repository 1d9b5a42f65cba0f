#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import asyncio
import os

from hls_relay import create_app

# Create app
app = create_app()
relay_config = app.config['RELAY_CONFIG']
if relay_config.debug:
    app.logger.info(' DEBUGGING   = ' + str(relay_config.debug))
app.logger.info(' MAX RECURSION = %s, CACHE TTL = %ss, USER AGENTS = %s',
                relay_config.max_recursion, relay_config.cache_ttl, len(relay_config.user_agents))

if __name__ == "__main__":
    # Create a custom loop
    loop = asyncio.new_event_loop()

    # Start Quart server
    app.logger.info("Starting Quart server...")
    app.run(loop=loop, debug=relay_config.debug, host='0.0.0.0', port=int(os.environ.get('HLS_RELAY_PORT', 9987)))
    app.logger.info("Quart server completed.")
