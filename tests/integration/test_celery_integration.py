"""Integration tests for end-to-end audit task execution.

Prerequisites:
- Redis must be running (docker-compose up redis)
- Celery worker must be running (celery -A fundbook.core.celery_app worker --loglevel=info)

Run with: pytest tests/integration/test_celery_integration.py -v
Skip if infrastructure not available: pytest tests/integration/ -v -m "not integration"
"""

import os
import uuid

import pytest
import redis
from kombu.exceptions import OperationalError

REDIS_AVAILABLE = False
CELERY_AVAILABLE = False

try:
    redis.Redis(
        host=os.environ.get("REDIS_HOST", "localhost"),
        port=int(os.environ.get("REDIS_PORT", 6379)),
        socket_connect_timeout=2,
    ).ping()
    REDIS_AVAILABLE = True
except redis.exceptions.RedisError:
    pass

from fundbook.core.celery_app import celery_app  # noqa: E402
from fundbook.worker import audit_log_event  # noqa: E402

if REDIS_AVAILABLE:
    try:
        CELERY_AVAILABLE = bool(celery_app.control.inspect(timeout=2).ping())
    except (redis.exceptions.RedisError, OperationalError, OSError):
        pass


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not REDIS_AVAILABLE,
        reason="Redis is not available. Start Redis with: docker-compose up redis",
    ),
    pytest.mark.skipif(
        not CELERY_AVAILABLE,
        reason="Celery worker is not available. Start worker with: celery -A fundbook.core.celery_app worker --loglevel=info",
    ),
]


class TestAuditTaskPipeline:
    def test_audit_task_queued_and_executed(self) -> None:
        event_id = str(uuid.uuid4())

        result = audit_log_event.delay(
            event_id=event_id,
            action="created",
            data={"user_id": str(uuid.uuid4()), "type": "income", "amount": "250.00"},
        )

        assert isinstance(result.id, str)
        task_result = result.get(timeout=10)
        assert task_result["success"] is True
        assert task_result["event_id"] == event_id
        assert task_result["task_id"] == result.id

    def test_task_result_stored_in_redis_backend(self) -> None:
        from celery.result import AsyncResult

        result = audit_log_event.delay(event_id=None, action="cleared_pending", data={"cleared": 2})
        task_result = result.get(timeout=10)

        stored = AsyncResult(result.id, app=celery_app)
        assert stored.state == "SUCCESS"
        assert stored.result == task_result

    def test_nested_payload_survives_serialization(self) -> None:
        data = {
            "user_id": str(uuid.uuid4()),
            "patch": {"description": "Rent", "lines": [{"amount": "-12.50"}]},
        }

        result = audit_log_event.delay(event_id=str(uuid.uuid4()), action="edited", data=data)

        assert result.get(timeout=10)["action"] == "edited"


class TestCeleryWorkerHealth:
    def test_worker_has_registered_tasks(self) -> None:
        registered = celery_app.control.inspect().registered()

        assert registered is not None
        all_tasks = set()
        for worker_tasks in registered.values():
            all_tasks.update(worker_tasks)
        assert "audit_log_event" in all_tasks
