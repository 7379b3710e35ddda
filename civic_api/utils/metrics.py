"""Prometheus metrics."""

from prometheus_client import Counter

# Workflow metrics
workflow_transitions = Counter(
    "civic_workflow_transitions_total",
    "Application workflow actions by outcome",
    ["action", "outcome"],
)

# Identifier metrics
identifier_allocations = Counter(
    "civic_identifier_allocations_total",
    "Sequence values issued",
    ["entity_tag"],
)

# Audit metrics
audit_entries = Counter(
    "civic_audit_entries_total",
    "Audit recording attempts by outcome",
    ["outcome"],
)
