"""
Prometheus metrics: orders created (API), delivery webhook outcomes, rejected status transitions, simulated deliveries.
"""
from prometheus_client import Counter, generate_latest

orders_created_total = Counter(
    "orders_created_total",
    "Total orders created",
)

# Webhook: processing outcomes (updated, already_set, invalid_transition, not_found)
webhook_events_total = Counter(
    "webhook_events_total",
    "Total delivery webhook events by outcome",
    ["outcome"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order status changes rejected by the transition table",
    ["current_status", "attempted_status"],
)

# Simulator: scheduled, sent, rejected, failed
delivery_simulations_total = Counter(
    "delivery_simulations_total",
    "Total simulated courier callbacks by outcome",
    ["outcome"],
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
