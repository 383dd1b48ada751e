"""Tests for the job queue's retry/dead-letter handling and the Mars dispatcher."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy import select

from astrolabe.jobs.base import Ingested, JobSummary
from astrolabe.jobs.dispatcher import MarsPhotoDispatcher
from astrolabe.jobs.mars_photos import MarsPhotosIngestionJob
from astrolabe.jobs.queue import JobQueue
from astrolabe.models.ops import FailedJob


def _job(name: str = "apod", side_effect=None, return_value=None):
    job = MagicMock()
    job.name = name
    job.run = AsyncMock(side_effect=side_effect, return_value=return_value)
    return job


class TestJobQueue:
    @pytest.mark.asyncio
    async def test_runs_jobs_in_order(self, session_factory):
        done = Ingested(JobSummary(inserted=1))
        first = _job("apod", return_value=done)
        second = _job("neows", return_value=done)
        queue = JobQueue(session_factory, sleep=AsyncMock())
        queue.enqueue(first)
        queue.enqueue(second, start_date="2024-06-01")
        assert len(queue) == 2

        outcomes = await queue.drain()

        assert [outcome.job for outcome in outcomes] == ["apod", "neows"]
        assert all(outcome.attempts == 1 for outcome in outcomes)
        second.run.assert_awaited_once_with(start_date="2024-06-01")
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, session_factory):
        done = Ingested(JobSummary(updated=1))
        job = _job(side_effect=[RuntimeError("flaky"), done])
        sleep = AsyncMock()
        queue = JobQueue(session_factory, max_attempts=3, retry_delay=7, sleep=sleep)
        queue.enqueue(job)

        [outcome] = await queue.drain()

        assert outcome.result == done
        assert outcome.attempts == 2
        sleep.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_dead_letters_after_max_attempts(self, session_factory, db_session):
        job = _job("mars_photos", side_effect=RuntimeError("database is on fire"))
        queue = JobQueue(
            session_factory, max_attempts=3, retry_delay=0, sleep=AsyncMock()
        )
        queue.enqueue(job, rover="curiosity", sol=4100)

        [outcome] = await queue.drain()

        assert outcome.result is None
        assert outcome.attempts == 3
        assert job.run.await_count == 3
        failed = db_session.scalars(select(FailedJob)).all()
        assert len(failed) == 1
        assert failed[0].job == "mars_photos"
        assert failed[0].attempts == 3
        assert json.loads(failed[0].params) == {"rover": "curiosity", "sol": 4100}
        assert "database is on fire" in failed[0].exception

    @pytest.mark.asyncio
    async def test_single_attempt_dead_letters_without_sleeping(
        self, session_factory, db_session
    ):
        job = _job(side_effect=RuntimeError("boom"))
        sleep = AsyncMock()
        queue = JobQueue(session_factory, max_attempts=1, sleep=sleep)
        queue.enqueue(job)

        [outcome] = await queue.drain()

        assert (outcome.attempts, outcome.result) == (1, None)
        sleep.assert_not_awaited()
        assert db_session.query(FailedJob).count() == 1


class TestMarsPhotoDispatcher:
    def _manifests(self, payloads: dict[str, object]):
        def handler(request: httpx.Request) -> httpx.Response:
            rover = request.url.path.rsplit("/", 1)[-1]
            payload = payloads[rover]
            if isinstance(payload, int):
                return httpx.Response(payload)
            return httpx.Response(200, json=payload)

        return handler

    @pytest.mark.asyncio
    async def test_enqueues_latest_sol_per_rover(self, nasa_client, session_factory):
        client = nasa_client(
            self._manifests(
                {
                    "curiosity": {
                        "photo_manifest": {"name": "Curiosity", "max_sol": 4100}
                    },
                    "perseverance": {"photo_manifest": {"max_sol": 1200}},
                }
            )
        )
        queue = JobQueue(session_factory, sleep=AsyncMock())
        job = MarsPhotosIngestionJob(client, session_factory)

        dispatched = await MarsPhotoDispatcher(
            client, queue, job, rovers=["curiosity", "perseverance"]
        ).dispatch_all()

        assert dispatched == {"curiosity": 4100, "perseverance": 1200}
        assert len(queue) == 2

    @pytest.mark.asyncio
    async def test_skips_rovers_without_usable_manifest(
        self, nasa_client, session_factory
    ):
        client = nasa_client(
            self._manifests(
                {
                    "spirit": {"photo_manifest": {"name": "Spirit"}},
                    "opportunity": 404,
                    "curiosity": {"photo_manifest": {"max_sol": 4100}},
                }
            ),
            max_attempts=1,
        )
        queue = JobQueue(session_factory, sleep=AsyncMock())
        job = MarsPhotosIngestionJob(client, session_factory)

        dispatched = await MarsPhotoDispatcher(
            client, queue, job, rovers=["spirit", "opportunity", "curiosity"]
        ).dispatch_all()

        assert dispatched == {"curiosity": 4100}
        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_other_rovers(self, session_factory):
        client = MagicMock()
        client.fetch_rover_manifest = AsyncMock(
            side_effect=[
                RuntimeError("boom"),
                MagicMock(payload={"photo_manifest": {"max_sol": 7}}),
            ]
        )
        queue = JobQueue(session_factory, sleep=AsyncMock())
        job = _job("mars_photos")

        dispatched = await MarsPhotoDispatcher(
            client, queue, job, rovers=["curiosity", "perseverance"]
        ).dispatch_all()

        assert dispatched == {"perseverance": 7}
