"""
Broker lifecycle pipeline: startup stages, readiness detection and the orchestrator.

Main exports:
- EmbeddedRabbitMq: start()/stop() orchestrator for one broker node
- BrokerState: lifecycle states of the orchestrator
- ReadinessDetector: polls a launched node until it is running
"""

from embedded_rabbitmq.pipeline.processor import EmbeddedRabbitMq, BrokerState
from embedded_rabbitmq.pipeline.readiness import ReadinessDetector, ReadinessState

__all__ = [
    "EmbeddedRabbitMq",
    "BrokerState",
    "ReadinessDetector",
    "ReadinessState",
]
