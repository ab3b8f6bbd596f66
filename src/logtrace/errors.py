"""Exceptions raised by LogTrace"""


class LogTraceError(Exception):
    """Base class for LogTrace errors"""


class IndexUnavailableError(LogTraceError):
    """Elasticsearch did not answer the bootstrap ping"""
