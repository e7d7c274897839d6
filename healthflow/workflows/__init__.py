"""
Workflows package - graphs built on the engine.
"""

from healthflow.workflows.health_assistant import (
    HEALTH_ASSISTANT_GRAPH_ID,
    create_health_assistant_workflow,
    register_health_assistant_workflow,
    route_logic,
    supervisor_node,
)

__all__ = [
    "HEALTH_ASSISTANT_GRAPH_ID",
    "create_health_assistant_workflow",
    "register_health_assistant_workflow",
    "route_logic",
    "supervisor_node",
]
