"""FastAPI dependencies resolving the objects created in create_app()"""

from fastapi import Request

from ..log_index import LogIndex
from ..retention import RetentionManager
from ..simulator import LogSimulator


def get_log_index(request: Request) -> LogIndex:
    return request.app.state.log_index


def get_simulator(request: Request) -> LogSimulator:
    return request.app.state.simulator


def get_retention(request: Request) -> RetentionManager:
    return request.app.state.retention
