#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import json
import logging
import os
from dataclasses import dataclass

proxy_logger = logging.getLogger("proxy")

DEFAULT_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.0 Safari/605.1.15",
)
DEFAULT_CACHE_TTL = 86400
DEFAULT_MAX_RECURSION = 5
DEFAULT_REQUEST_TIMEOUT = 30.0


@dataclass(frozen=True)
class RelayConfig:
    debug: bool = False
    cache_ttl: int = DEFAULT_CACHE_TTL
    max_recursion: int = DEFAULT_MAX_RECURSION
    user_agents: tuple = DEFAULT_USER_AGENTS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


def _parse_number(environ, name, default, cast=int):
    raw_value = environ.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = cast(raw_value.strip())
    except (TypeError, ValueError):
        proxy_logger.warning("Invalid value %r for %s, using default %s", raw_value, name, default)
        return default
    if value < 0:
        proxy_logger.warning("Negative value %r for %s, using default %s", raw_value, name, default)
        return default
    return value


def parse_user_agents(agents_json):
    """
    Parse a JSON array of User-Agent strings.

    Returns the default pool when the value is unset, is not valid JSON, or is not a
    non-empty array of non-empty strings.
    """
    if not agents_json:
        proxy_logger.debug("No User-Agent override configured, using %s defaults", len(DEFAULT_USER_AGENTS))
        return DEFAULT_USER_AGENTS
    try:
        parsed_agents = json.loads(agents_json)
    except ValueError as e:
        proxy_logger.error("Failed to parse User-Agent override: %s. Using defaults.", e)
        return DEFAULT_USER_AGENTS
    if not isinstance(parsed_agents, list) or not parsed_agents:
        proxy_logger.warning("User-Agent override is not a non-empty JSON array. Using defaults.")
        return DEFAULT_USER_AGENTS
    if not all(isinstance(agent, str) and agent.strip() for agent in parsed_agents):
        proxy_logger.warning("User-Agent override contains non-string or empty entries. Using defaults.")
        return DEFAULT_USER_AGENTS
    proxy_logger.info("Loaded %s User-Agents from the environment", len(parsed_agents))
    return tuple(agent.strip() for agent in parsed_agents)


def load_config(environ=None):
    if environ is None:
        environ = os.environ
    return RelayConfig(
        debug=environ.get("ENABLE_DEBUGGING", "false").lower() == "true",
        cache_ttl=_parse_number(environ, "HLS_RELAY_CACHE_TTL", DEFAULT_CACHE_TTL),
        max_recursion=_parse_number(environ, "HLS_RELAY_MAX_RECURSION", DEFAULT_MAX_RECURSION),
        user_agents=parse_user_agents(environ.get("HLS_RELAY_USER_AGENTS_JSON")),
        request_timeout=_parse_number(environ, "HLS_RELAY_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT, cast=float),
    )
