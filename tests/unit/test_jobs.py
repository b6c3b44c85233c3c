"""
Unit tests for the background job wiring.

Tests cover:
- Scheduler registers every ledger job
- Health endpoints without a running scheduler
"""

import json

import pytest

from jobs.health import health_handler, liveness_handler
from jobs.scheduler import create_scheduler


class TestScheduler:
    """Test scheduler configuration."""

    def test_all_jobs_registered(self):
        scheduler = create_scheduler()

        job_ids = {job.id for job in scheduler.get_jobs()}

        assert job_ids == {
            "maturity_sweep",
            "commission_retry",
            "matrix_completion_retry",
            "reconciliation_audit",
        }


class TestHealth:
    """Test health endpoints."""

    @pytest.mark.asyncio
    async def test_liveness(self):
        response = await liveness_handler(None)

        assert response.status == 200
        assert json.loads(response.text)["alive"] is True

    @pytest.mark.asyncio
    async def test_health_without_scheduler(self):
        response = await health_handler(None)

        assert response.status == 503
