"""Workflow nodes for LangGraph"""
from . import (
    schema_loader,
    planner,
    executor,
    responder
)

__all__ = [
    "schema_loader",
    "planner",
    "executor",
    "responder"
]
