"""Job transport: job types, queue, broker, middleware and scheduling.

The broker is imported from ``task_service.infra.tasks.broker`` explicitly;
importing this package has no side effects.
"""
