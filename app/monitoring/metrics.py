"""Metric definitions for the realtime engine."""

from __future__ import annotations

from .registry import registry


realtime_connections = registry.gauge(
    "realtime_active_connections",
    "Number of active websocket connections handled locally.",
    label_names=("scope",),
)

realtime_events_total = registry.counter(
    "realtime_events_total",
    "Count of realtime events processed, by event name and direction.",
    label_names=("event", "direction"),
)

matchmaking_queue_depth = registry.gauge(
    "matchmaking_queue_depth",
    "Connections currently waiting for a stranger partner.",
)

active_rooms = registry.gauge(
    "stranger_rooms_active",
    "Stranger rooms currently open.",
)

relay_dropped_total = registry.counter(
    "realtime_dropped_total",
    "Events dropped because their destination could not be resolved.",
    label_names=("reason",),
)

friend_graph_mutations_total = registry.counter(
    "friend_graph_mutations_total",
    "Friend relation edges added or removed.",
    label_names=("operation",),
)
