"""
bench_services -- Cross-module coordination.

Responsibility:
    Workflow transition evaluation, notification dispatch, payment provider
    adapters, caller identity resolution and the operation boundary
    (``bench_services.engagement_api.EngagementOperations``) that owns the
    transaction of every lifecycle operation.

Architecture position:
    bench_services/ -> bench_modules/, bench_engines/, bench_kernel/ (allowed)
    bench_kernel/   -> bench_services/ (FORBIDDEN)
    bench_engines/  -> bench_services/ (FORBIDDEN)

    Lifecycle modules import ``bench_services.workflow_executor`` directly;
    this package init imports nothing so that doing so never pulls in the
    operation boundary.
"""
