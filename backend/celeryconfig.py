"""
Celery configuration for the membersync workers.

Loaded by `celery_app.config_from_object("celeryconfig")` in membersync/tasks/__init__.py.
Broker/result-backend URLs and the scheduler poll interval come from
Settings (environment / .env).
"""

from membersync.core.config import settings

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = settings.CELERY_BROKER_URL
result_backend = settings.CELERY_RESULT_BACKEND

# ═══════════════════════════════════════════════════════════
#  Serialization: JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

# ═══════════════════════════════════════════════════════════
#  Timezone
# ═══════════════════════════════════════════════════════════

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

# Acknowledge after completion so a crashed worker's sync is redelivered
task_acks_late = True
task_reject_on_worker_lost = True

# One sync at a time per worker process
worker_prefetch_multiplier = 1

# Large custom imports are batched but can still take a while
task_soft_time_limit = 900    # 15 min: raises SoftTimeLimitExceeded
task_time_limit = 960         # 16 min: hard kill

# ═══════════════════════════════════════════════════════════
#  Result Expiry
# ═══════════════════════════════════════════════════════════

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Worker Settings
# ═══════════════════════════════════════════════════════════

worker_max_tasks_per_child = 200

worker_send_task_events = False
task_send_sent_event = False

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
# Run dedicated workers per queue:
#   celery -A membersync.tasks worker -Q syncs       (fetch + import)
#   celery -A membersync.tasks worker -Q default     (beat dispatch)

task_routes = {
    "membersync.tasks.sync_tasks.run_data_source_sync": {"queue": "syncs"},
    "membersync.tasks.sync_tasks.dispatch_due_syncs": {"queue": "default"},
}

task_default_queue = "default"

# ═══════════════════════════════════════════════════════════
#  Beat Schedule (periodic tasks)
# ═══════════════════════════════════════════════════════════
#   celery -A membersync.tasks beat

beat_schedule = {
    "dispatch-due-syncs": {
        "task": "membersync.tasks.sync_tasks.dispatch_due_syncs",
        "schedule": float(settings.SCHEDULER_POLL_SECONDS),
    },
}
