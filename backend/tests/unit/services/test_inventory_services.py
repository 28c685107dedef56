"""
Unit Tests for inventory services: alerts, recommendations, pagination,
users and trials
"""

from datetime import datetime, timedelta

import pytest

from cloudguard.schemas.auth_schemas import UserCreate
from cloudguard.schemas.base import Severity
from cloudguard.schemas.resource_schemas import (
    AlertCreate,
    AlertStatus,
    AlertType,
    AlertUpdate,
    OptimizationStatus,
    RecommendationCreate,
    RecommendationUpdate,
    ResourceUpdate,
)
from cloudguard.services.alert_service import AlertService
from cloudguard.services.errors import InvalidStateTransition, NotFoundError
from cloudguard.services.pagination import envelope, page_from_offset
from cloudguard.services.recommendation_service import RecommendationService
from cloudguard.services.resource_service import ResourceService
from cloudguard.services.trial_service import TrialService
from cloudguard.services.user_service import UserService


@pytest.mark.unit
class TestPagination:
    """Test pagination helpers"""

    def test_envelope_total_pages(self) -> None:
        """totalPages rounds up and is 0 for an empty list"""
        assert envelope([], 0, 1, 20)["total_pages"] == 0
        assert envelope([1], 41, 3, 20)["total_pages"] == 3

    def test_page_from_offset(self) -> None:
        """Offsets map to 1-based pages"""
        assert page_from_offset(10, 0) == 1
        assert page_from_offset(10, 25) == 3
        with pytest.raises(ValueError):
            page_from_offset(0, 0)

    def test_resource_listing(self, db_session, make_resource) -> None:
        """Resource lists are filtered and paginated with the unpaginated total"""
        for index in range(5):
            make_resource(name=f"vm-{index}")
        make_resource(name="bucket", type="S3", provider="GCP")

        items, total = ResourceService(db_session).list_resources(provider="aws", page=2, page_size=2)

        assert total == 5
        assert [r.name for r in items] == ["vm-2", "vm-3"]

    def test_page_size_limit(self, db_session) -> None:
        """Page sizes above 100 are rejected"""
        with pytest.raises(ValueError):
            ResourceService(db_session).list_resources(page_size=101)

    def test_update_clears_optional_fields(self, db_session, make_resource) -> None:
        """Explicit nulls clear tags and cost but not required columns"""
        resource = make_resource(tags={"env": "prod"}, cost=2500)
        service = ResourceService(db_session)

        updated = service.update_resource(resource.id, ResourceUpdate(tags=None, cost=None))

        assert updated.tags is None
        assert updated.cost is None
        assert updated.name == "web-server-1"
        with pytest.raises(ValueError, match="region cannot be null"):
            service.update_resource(resource.id, ResourceUpdate(region=None))


@pytest.mark.unit
class TestAlertService:
    """Test alert updates"""

    @pytest.fixture
    def alert(self, db_session):
        return AlertService(db_session).create_alert(
            AlertCreate(title="Open bucket", message="Bucket is public", type=AlertType.SECURITY, severity=Severity.HIGH)
        )

    def test_status_update(self, db_session, alert) -> None:
        """Status, title and message can change"""
        updated = AlertService(db_session).update_alert(alert.id, AlertUpdate(status=AlertStatus.ACKNOWLEDGED))

        assert updated.status == "acknowledged"

    def test_type_and_severity_immutable(self, db_session, alert) -> None:
        """Changing type or severity is refused"""
        service = AlertService(db_session)

        with pytest.raises(ValueError):
            service.update_alert(alert.id, AlertUpdate(severity=Severity.LOW))
        with pytest.raises(ValueError):
            service.update_alert(alert.id, AlertUpdate(type=AlertType.COST))

    def test_summary(self, db_session, alert) -> None:
        """Summary counts alerts by type and severity"""
        summary = AlertService(db_session).get_summary()

        assert summary == {"total": 1, "open": 1, "by_type": {"security": 1}, "by_severity": {"high": 1}}

    def test_delete(self, db_session, alert) -> None:
        """Deleted alerts are gone"""
        service = AlertService(db_session)
        service.delete_alert(alert.id)

        with pytest.raises(NotFoundError):
            service.get_alert(alert.id)


@pytest.mark.unit
class TestRecommendationService:
    """Test recommendation status changes and cleanup suggestions"""

    def test_open_savings_total(self, db_session) -> None:
        """Only open recommendations count towards savings"""
        service = RecommendationService(db_session)
        first = service.create_recommendation(
            RecommendationCreate(title="Rightsize", description="Downsize m5.xlarge", type="rightsizing", potential_savings=4000)
        )
        service.create_recommendation(
            RecommendationCreate(title="Delete", description="Remove snapshot", type="unused_resources", potential_savings=1500)
        )

        service.update_recommendation(first.id, RecommendationUpdate(status=OptimizationStatus.APPLIED))

        assert service.get_total_savings() == 1500

    def test_applied_cannot_be_dismissed(self, db_session) -> None:
        """Apply and dismiss only work on open recommendations"""
        service = RecommendationService(db_session)
        rec = service.create_recommendation(RecommendationCreate(title="T", description="D", type="cost"))
        service.update_recommendation(rec.id, RecommendationUpdate(status=OptimizationStatus.DISMISSED))

        with pytest.raises(InvalidStateTransition):
            service.update_recommendation(rec.id, RecommendationUpdate(status=OptimizationStatus.APPLIED))

    def test_cleanup_flags_idle_resources_once(self, db_session, make_resource) -> None:
        """Stopped resources that still cost money are flagged a single time"""
        stopped = make_resource(name="old-vm", status="stopped", cost=5000)
        make_resource(name="busy-vm")
        service = RecommendationService(db_session)

        first = service.recommend_resource_cleanup()
        second = service.recommend_resource_cleanup()

        assert first == {"resources_flagged": 1, "resource_ids": [stopped.id]}
        assert second["resources_flagged"] == 0


@pytest.mark.unit
class TestUsersAndTrials:
    """Test registration, authentication and trial lifecycle"""

    @pytest.fixture
    def user(self, db_session):
        return UserService(db_session).register(
            UserCreate(username="alice", email="Alice@Example.com", password="correct-horse-battery")
        )

    def test_register_hashes_password(self, user) -> None:
        """Passwords are stored hashed and emails lowercased"""
        assert user.password != "correct-horse-battery"
        assert user.email == "alice@example.com"
        assert user.trial_status == "inactive"

    def test_duplicate_username(self, db_session, user) -> None:
        """Usernames are unique"""
        with pytest.raises(ValueError, match="Username already exists"):
            UserService(db_session).register(
                UserCreate(username="alice", email="other@example.com", password="another-password")
            )

    def test_authenticate(self, db_session, user) -> None:
        """Correct credentials return the user, wrong ones None"""
        service = UserService(db_session)

        assert service.authenticate("alice", "correct-horse-battery").id == user.id
        assert service.authenticate("alice", "wrong-password") is None
        assert service.authenticate("nobody", "correct-horse-battery") is None

    def test_trial_lifecycle(self, db_session, user) -> None:
        """inactive -> active -> expired"""
        service = TrialService(db_session, trial_days=7)
        started = datetime(2024, 1, 1, 12, 0)

        assert service.get_status(user.id)["message"] == "Trial not started yet"

        status = service.start_trial(user.id, now=started)
        assert status["status"] == "active"
        assert status["days_remaining"] == 7

        later = service.get_status(user.id, now=started + timedelta(days=6, hours=1))
        assert later["days_remaining"] == 1
        assert later["message"] == "1 day remaining in your trial"

        expired = service.get_status(user.id, now=started + timedelta(days=8))
        assert expired["status"] == "expired"
        assert expired["days_remaining"] == 0

    def test_trial_cannot_restart(self, db_session, user) -> None:
        """A trial starts only once"""
        service = TrialService(db_session, trial_days=7)
        service.start_trial(user.id)

        with pytest.raises(ValueError, match="Trial already active"):
            service.start_trial(user.id)
