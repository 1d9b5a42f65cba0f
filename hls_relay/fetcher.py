#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import asyncio
import logging
import random
from collections import namedtuple

import aiohttp

from hls_relay.config import DEFAULT_USER_AGENTS
from hls_relay.exceptions import FetchError, NetworkError
from hls_relay.urls import get_origin

proxy_logger = logging.getLogger("proxy")


class FetchResult(namedtuple("FetchResult", ["body", "content_type", "headers", "url"])):
    """
    A fetched upstream resource.

    ``body`` is the raw response payload, ``headers`` the upstream response headers as an
    ordered list of (name, value) pairs and ``url`` the final URL after redirects.
    """
    __slots__ = ()

    @property
    def content(self):
        return self.body.decode("utf-8", errors="replace")


def get_random_user_agent(user_agents=DEFAULT_USER_AGENTS):
    return random.choice(user_agents)


def build_upstream_headers(target_url, request_headers=None, user_agents=DEFAULT_USER_AGENTS):
    request_headers = request_headers or {}
    try:
        default_referer = get_origin(target_url)
    except ValueError:
        default_referer = None
    headers = {
        "User-Agent":      get_random_user_agent(user_agents),
        "Accept":          request_headers.get("Accept") or "*/*",
        "Accept-Language": request_headers.get("Accept-Language"),
        "Referer":         request_headers.get("Referer") or default_referer,
    }
    # Drop headers without a value
    return {name: value for name, value in headers.items() if value}


async def fetch_content_with_type(target_url, request_headers=None, user_agents=DEFAULT_USER_AGENTS, timeout=None):
    headers = build_upstream_headers(target_url, request_headers, user_agents=user_agents)
    proxy_logger.debug("Requesting '%s' with headers %s", target_url, headers)

    session_kwargs = {"timeout": aiohttp.ClientTimeout(total=timeout)} if timeout else {}
    try:
        async with aiohttp.ClientSession(**session_kwargs) as session:
            async with session.get(target_url, headers=headers, allow_redirects=True) as resp:
                if not 200 <= resp.status < 300:
                    error_body = await resp.text(errors="replace")
                    proxy_logger.debug("Request failed: %s %s - %s", resp.status, resp.reason, target_url)
                    raise FetchError(target_url, resp.status, resp.reason or "", error_body)

                body = await resp.read()
                content_type = resp.headers.get("Content-Type", "")
                proxy_logger.debug("Request succeeded: '%s', Content-Type: %s, length: %s",
                                   target_url, content_type, len(body))
                return FetchResult(body, content_type, list(resp.headers.items()), str(resp.url))
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        proxy_logger.debug("Request error for '%s': %s", target_url, e)
        raise NetworkError(target_url, str(e) or type(e).__name__) from e
