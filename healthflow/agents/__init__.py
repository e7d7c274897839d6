"""
Agents package - units that graph nodes delegate to.
"""

from healthflow.agents.health_agent import Agent, HealthAgent

__all__ = ["Agent", "HealthAgent"]
