"""Tests for JobService."""

import logging

import pytest

from lak.jobs import (
    AuthorizationError,
    ConflictError,
    JobsConfig,
    JobService,
    NotFoundError,
    StateError,
    ValidationError,
)
from lak.jobs.errors import RepositoryUnavailable
from lak.jobs.storage import InMemoryJobStorage, JobQuery

OWNER = "owner-1"
DRIVER_1 = "driver-1"
DRIVER_2 = "driver-2"
STRANGER = "someone-else"
MISSING_ID = "00000000-0000-4000-8000-000000000000"


@pytest.fixture
def job(service, make_payload):
    """A freshly posted job owned by OWNER."""
    return service.create_job(OWNER, make_payload())


@pytest.fixture
def applied_job(service, job):
    service.add_job_applicant(job.id, DRIVER_1)
    return service.add_job_applicant(job.id, DRIVER_2)


@pytest.fixture
def assigned_job(service, applied_job):
    return service.assign_driver(applied_job.id, OWNER, DRIVER_1)


class TestCreateJob:
    """Tests for job creation."""

    def test_create_job(self, service, storage, make_payload):
        job = service.create_job(OWNER, make_payload(pay="55"))

        assert job.owner_id == OWNER
        assert job.status == "posted"
        assert job.applicants == []
        assert job.assigned_driver_id is None
        assert job.finished_at is None
        assert job.pay == 55.0
        assert job.created_at is not None
        assert storage.get_job(job.id) == job

    def test_create_with_images(self, service, media, make_payload, make_image):
        job = service.create_job(OWNER, make_payload(), [make_image("a.png"), make_image("b.png")])

        assert len(job.images) == 2
        assert all(ref.startswith(f"jobs/{OWNER}/") for ref in job.images)
        assert media.get(job.images[0]).content_type == "image/png"

    def test_missing_field(self, service, make_payload):
        payload = make_payload()
        del payload["location"]
        with pytest.raises(ValidationError, match="location"):
            service.create_job(OWNER, payload)

    def test_lifecycle_fields_rejected(self, service, make_payload):
        with pytest.raises(ValidationError, match="lifecycle"):
            service.create_job(OWNER, make_payload(status="completed"))

    def test_non_image_upload_rejected(self, service, make_payload, make_image):
        with pytest.raises(ValidationError, match="Unsupported image type"):
            service.create_job(OWNER, make_payload(), [make_image("a.txt", content_type="text/plain")])

    def test_oversized_image_rejected(self, storage, media, make_payload, make_image):
        service = JobService(storage, media, JobsConfig(max_image_bytes=16, retry_backoff_seconds=0))
        with pytest.raises(ValidationError, match="too large"):
            service.create_job(OWNER, make_payload(), [make_image()])

    def test_creation_recorded_in_history(self, service, job):
        history = service.get_job_history(job.id, OWNER)

        assert [t.event for t in history] == ["created"]
        assert history[0].from_status is None
        assert history[0].to_status == "posted"


class TestUpdateJob:
    def test_partial_update(self, service, job):
        updated = service.update_job(OWNER, job.id, {"title": "Move two couches", "pay": None})

        assert updated.title == "Move two couches"
        assert updated.pay == job.pay
        assert updated.version == job.version + 1

    def test_images_are_appended(self, service, make_payload, make_image):
        job = service.create_job(OWNER, make_payload(), [make_image()])
        updated = service.update_job(OWNER, job.id, {}, [make_image("second.png")])

        assert len(updated.images) == 2
        assert updated.images[0] == job.images[0]

    def test_image_limit_counts_existing(self, storage, media, make_payload, make_image):
        service = JobService(storage, media, JobsConfig(max_images_per_job=1, retry_backoff_seconds=0))
        job = service.create_job(OWNER, make_payload(), [make_image()])
        with pytest.raises(ValidationError, match="Too many images"):
            service.update_job(OWNER, job.id, {}, [make_image()])

    def test_non_owner_cannot_update(self, service, media, job, make_image):
        with pytest.raises(AuthorizationError):
            service.update_job(DRIVER_1, job.id, {"title": "Mine now"}, [make_image()])
        # Nothing is uploaded for a rejected caller
        assert media._images == {}

    def test_update_cannot_touch_lifecycle(self, service, applied_job):
        with pytest.raises(ValidationError):
            service.update_job(OWNER, applied_job.id, {"applicants": []})

    def test_update_keeps_status(self, service, assigned_job):
        updated = service.update_job(OWNER, assigned_job.id, {"pay": 99})
        assert updated.status == "assigned"
        assert updated.assigned_driver_id == DRIVER_1


class TestApply:
    def test_apply_moves_to_applied(self, service, job):
        updated = service.add_job_applicant(job.id, DRIVER_1)

        assert updated.status == "applied"
        assert updated.applicants == [DRIVER_1]

    def test_apply_twice_is_conflict(self, service, job):
        service.add_job_applicant(job.id, DRIVER_1)
        with pytest.raises(ConflictError, match="already applied"):
            service.add_job_applicant(job.id, DRIVER_1)

    def test_owner_cannot_apply(self, service, job):
        with pytest.raises(AuthorizationError):
            service.add_job_applicant(job.id, OWNER)

    def test_apply_to_assigned_job(self, service, assigned_job):
        with pytest.raises(StateError):
            service.add_job_applicant(assigned_job.id, STRANGER)

    def test_apply_to_missing_job(self, service):
        with pytest.raises(NotFoundError, match="Job not found"):
            service.add_job_applicant(MISSING_ID, DRIVER_1)

    def test_malformed_job_id(self, service):
        with pytest.raises(ValidationError, match="Invalid job ID"):
            service.add_job_applicant("not-a-uuid", DRIVER_1)


class TestAssignDriver:
    def test_assign_freezes_applicants(self, service, assigned_job):
        assert assigned_job.status == "assigned"
        assert assigned_job.assigned_driver_id == DRIVER_1
        assert assigned_job.applicants == [DRIVER_1, DRIVER_2]

    def test_non_owner_cannot_assign(self, service, applied_job):
        with pytest.raises(AuthorizationError):
            service.assign_driver(applied_job.id, DRIVER_2, DRIVER_2)

    def test_second_assignment_rejected(self, service, assigned_job):
        with pytest.raises(StateError):
            service.assign_driver(assigned_job.id, OWNER, DRIVER_2)

    def test_assign_non_applicant(self, service, applied_job):
        with pytest.raises(NotFoundError):
            service.assign_driver(applied_job.id, OWNER, STRANGER)

    def test_assign_on_posted_job_without_applicant_policy(self, storage, media, make_payload):
        config = JobsConfig(require_applicant_for_assignment=False, retry_backoff_seconds=0)
        service = JobService(storage, media, config)
        job = service.create_job(OWNER, make_payload())

        updated = service.assign_driver(job.id, OWNER, DRIVER_1)

        assert updated.status == "assigned"
        assert updated.applicants == [DRIVER_1]

    def test_missing_driver_id(self, service, applied_job):
        with pytest.raises(ValidationError, match="driver ID"):
            service.assign_driver(applied_job.id, OWNER, "")


class TestDenyDriver:
    def test_deny_removes_one_applicant(self, service, applied_job):
        updated = service.deny_driver(applied_job.id, OWNER, DRIVER_2)

        assert updated.applicants == [DRIVER_1]
        assert updated.denied_driver_ids == [DRIVER_2]
        assert updated.status == "applied"

    def test_denied_driver_cannot_reapply(self, service, applied_job):
        service.deny_driver(applied_job.id, OWNER, DRIVER_2)
        with pytest.raises(ConflictError, match="denied"):
            service.add_job_applicant(applied_job.id, DRIVER_2)

    def test_deny_non_applicant(self, service, applied_job):
        with pytest.raises(NotFoundError):
            service.deny_driver(applied_job.id, OWNER, STRANGER)

    def test_non_owner_cannot_deny(self, service, applied_job):
        with pytest.raises(AuthorizationError):
            service.deny_driver(applied_job.id, DRIVER_1, DRIVER_2)


class TestCompleteJob:
    @pytest.mark.parametrize("caller", [OWNER, DRIVER_1])
    def test_complete(self, service, assigned_job, caller):
        completed = service.complete_job(assigned_job.id, caller)

        assert completed.status == "completed"
        assert completed.finished_at is not None

    def test_unassigned_job_cannot_complete(self, service, applied_job):
        with pytest.raises(StateError):
            service.complete_job(applied_job.id, OWNER)

    def test_non_assignee_cannot_complete(self, service, assigned_job):
        with pytest.raises(AuthorizationError):
            service.complete_job(assigned_job.id, DRIVER_2)

    def test_completed_job_is_terminal(self, service, assigned_job):
        service.complete_job(assigned_job.id, OWNER)

        with pytest.raises(StateError):
            service.complete_job(assigned_job.id, DRIVER_1)
        with pytest.raises(StateError):
            service.add_job_applicant(assigned_job.id, STRANGER)
        with pytest.raises(StateError):
            service.deny_driver(assigned_job.id, OWNER, DRIVER_2)


class TestDeleteJob:
    def test_delete(self, service, storage, media, make_payload, make_image):
        job = service.create_job(OWNER, make_payload(), [make_image()])
        service.delete_job(OWNER, job.id)

        assert storage.get_job(job.id) is None
        assert media._images == {}
        with pytest.raises(NotFoundError):
            service.add_job_applicant(job.id, DRIVER_1)

    def test_non_owner_cannot_delete(self, service, job):
        with pytest.raises(AuthorizationError):
            service.delete_job(DRIVER_1, job.id)

    def test_completed_job_cannot_be_deleted(self, service, assigned_job):
        service.complete_job(assigned_job.id, OWNER)
        with pytest.raises(StateError):
            service.delete_job(OWNER, assigned_job.id)

    def test_delete_missing(self, service):
        with pytest.raises(NotFoundError):
            service.delete_job(OWNER, MISSING_ID)


class TestHistory:
    def test_full_lifecycle_is_recorded(self, service, assigned_job):
        service.deny_driver(assigned_job.id, OWNER, DRIVER_2)
        service.complete_job(assigned_job.id, DRIVER_1)

        history = service.get_job_history(assigned_job.id, OWNER)

        assert [t.event for t in history] == [
            "created",
            "applied",
            "applied",
            "assigned",
            "denied",
            "completed",
        ]
        assert history[3].subject_id == DRIVER_1
        assert history[4].subject_id == DRIVER_2
        assert history[-1].from_status == "assigned"
        assert history[-1].actor_id == DRIVER_1

    def test_only_owner_sees_history(self, service, job):
        with pytest.raises(AuthorizationError):
            service.get_job_history(job.id, DRIVER_1)

    def test_transitions_are_logged(self, service, job, caplog):
        with caplog.at_level(logging.INFO, logger="lak.transitions"):
            service.add_job_applicant(job.id, DRIVER_1)

        assert f"job={job.id} | event=applied | posted -> applied" in caplog.text
        assert f"driver={DRIVER_1}" in caplog.text


class TestStorageFailures:
    def test_upload_failure_leaves_no_job(self, storage, make_payload, make_image):
        class FailingMedia:
            def __init__(self):
                self.deleted = []
                self.calls = 0

            def put(self, owner_id, image):
                self.calls += 1
                if self.calls == 2:
                    raise RepositoryUnavailable("Media store unavailable")
                return f"jobs/{owner_id}/{self.calls}.png"

            def delete(self, references):
                self.deleted.extend(references)

        media = FailingMedia()
        service = JobService(storage, media, JobsConfig(retry_backoff_seconds=0))

        with pytest.raises(RepositoryUnavailable):
            service.create_job(OWNER, make_payload(), [make_image(), make_image()])

        assert media.deleted == [f"jobs/{OWNER}/1.png"]
        assert storage.find_job_ids(JobQuery(user_id=OWNER, limit=100)) == []

    def test_history_failure_keeps_committed_change(self, storage, media, job, caplog):
        class HistoryDownStorage(InMemoryJobStorage):
            def save_transition(self, transition):
                raise RepositoryUnavailable("Transition log unavailable")

        failing = HistoryDownStorage(retry_backoff=0)
        failing.create_job(storage.get_job(job.id))
        service = JobService(failing, media, JobsConfig(retry_backoff_seconds=0))

        with caplog.at_level(logging.WARNING, logger="lak.jobs.service"):
            applied = service.add_job_applicant(job.id, DRIVER_1)

        assert applied.applicants == [DRIVER_1]
        assert failing.get_job(job.id).applicants == [DRIVER_1]
        assert failing.get_transitions(job.id) == []
        assert f"Failed to record applied transition for job {job.id}" in caplog.text

    def test_history_failure_on_create(self, media, make_payload):
        class HistoryDownStorage(InMemoryJobStorage):
            def save_transition(self, transition):
                raise RepositoryUnavailable("Transition log unavailable")

        failing = HistoryDownStorage(retry_backoff=0)
        service = JobService(failing, media, JobsConfig(retry_backoff_seconds=0))

        created = service.create_job(OWNER, make_payload())

        assert failing.get_job(created.id) == created
