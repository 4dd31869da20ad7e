"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

# Response time metrics
api_request_duration = Histogram(
    "api_request_duration_seconds", "API request duration in seconds", ["method", "endpoint", "status"]
)

# Report metrics
reports_total = Counter("content_reports_total", "Total number of content reports created or updated", ["reason", "created"])

reports_latency_seconds = Histogram(
    "content_reports_latency_seconds", "Time to process report creation from request to response"
)

# Moderation metrics
moderation_actions_total = Counter(
    "moderation_actions_total", "Total number of moderation actions applied", ["kind", "action", "changed"]
)

bulk_moderation_runs_total = Counter(
    "bulk_moderation_runs_total", "Total number of bulk moderation and rollback requests", ["operation", "outcome"]
)

bulk_moderation_item_failures_total = Counter(
    "bulk_moderation_item_failures_total", "Total number of bulk moderation items that failed", ["status_code"]
)

policy_evaluations_total = Counter(
    "moderation_policy_evaluations_total", "Total number of policy evaluations", ["eligible", "blocked_reason"]
)

moderation_rollbacks_total = Counter(
    "moderation_rollbacks_total", "Total number of moderation events rolled back", ["kind", "false_positive"]
)

queue_listing_duration = Histogram(
    "moderation_queue_listing_duration_seconds", "Time to build one moderation queue page"
)

creator_trust_scored_total = Counter(
    "creator_trust_scored_total", "Total number of creator trust scores computed", ["risk_level"]
)

creator_controls_total = Counter("creator_controls_total", "Total number of creator control actions", ["action"])
