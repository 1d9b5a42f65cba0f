#!/usr/bin/env python3
# -*- coding:utf-8 -*-


class RelayError(Exception):
    status = 500


class InvalidTargetUrl(RelayError):
    status = 400

    def __init__(self, path):
        self.path = path
        super().__init__(f"Invalid target URL: {path}")


class FetchError(RelayError):
    """Upstream answered with a non-success HTTP status."""

    def __init__(self, url, status, reason="", body=""):
        self.url = url
        self.status = status
        self.reason = reason
        message = f"HTTP error {status}: {reason}. URL: {url}"
        if body:
            message = f"{message}. Body: {body[:200]}"
        super().__init__(message)


class NetworkError(RelayError):
    def __init__(self, url, cause):
        self.url = url
        super().__init__(f"Failed to fetch target URL {url}: {cause}")


class RecursionLimitError(RelayError):
    def __init__(self, url, max_recursion):
        self.url = url
        self.max_recursion = max_recursion
        super().__init__(f"Exceeded maximum recursion depth ({max_recursion}) processing master playlist: {url}")
