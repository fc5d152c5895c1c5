"""TopicRouter module."""

from .topic_router import (
    HEALING_TOPIC,
    PIPELINE_TOPIC,
    SECURITY_TOPIC,
    TOPICS,
    ITopicRouter,
    Listener,
    ResourceStream,
    TopicRouter,
    Unsubscribe,
)

__all__ = [
    "HEALING_TOPIC",
    "PIPELINE_TOPIC",
    "SECURITY_TOPIC",
    "TOPICS",
    "ITopicRouter",
    "Listener",
    "ResourceStream",
    "TopicRouter",
    "Unsubscribe",
]
