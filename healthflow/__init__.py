"""
HealthFlow - A small async graph runtime driving a health-assistant agent.

Nodes share channel-based state, conditional edges route at run time,
and every run is observed as a stream of full-state snapshots.
"""

__version__ = "1.0.0"
