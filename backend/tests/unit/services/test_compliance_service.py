"""
Unit Tests for ComplianceService

Controls are evaluated against resource tags: passed, failed or
not_applicable when no resource carries the inspected tag. Compliance
percent excludes not-applicable controls.
"""

import pytest

from cloudguard.database import ComplianceControl, ComplianceFramework
from cloudguard.services.compliance_service import DEFAULT_CONTROLS, ComplianceService, seed_frameworks
from cloudguard.services.errors import NotFoundError


@pytest.fixture
def seeded(db_session):
    seed_frameworks(db_session)
    return ComplianceService(db_session)


@pytest.mark.unit
class TestSeedFrameworks:
    """Test reference data seeding"""

    def test_seed_inserts_all_controls(self, db_session) -> None:
        """Every built-in control is inserted once"""
        expected = sum(len(controls) for controls in DEFAULT_CONTROLS.values())

        assert seed_frameworks(db_session) == expected
        assert db_session.query(ComplianceFramework).count() == len(DEFAULT_CONTROLS)
        assert db_session.query(ComplianceControl).count() == expected

    def test_seed_is_idempotent(self, db_session) -> None:
        """A second run inserts nothing"""
        seed_frameworks(db_session)

        assert seed_frameworks(db_session) == 0


@pytest.mark.unit
class TestAssessments:
    """Test running and reading assessments"""

    def test_assessment_counts(self, seeded, make_resource) -> None:
        """Passed, failed and not-applicable controls are counted separately"""
        make_resource(name="data-bucket", type="S3", tags={"publicAccess": True, "encrypted": True})

        assessment = seeded.run_assessment("cis-aws")

        assert assessment.status == "completed"
        assert assessment.total_controls == 7
        assert assessment.passed_controls == 1
        assert assessment.failed_controls == 1
        assert assessment.not_applicable_controls == 5
        assert assessment.compliance_percent == 50.0
        failed = [f for f in assessment.findings if f["status"] == "failed"]
        assert failed[0]["controlId"] == "2.1.5"
        assert failed[0]["affectedResources"] == ["data-bucket"]

    def test_nothing_applicable_is_zero_percent(self, seeded) -> None:
        """Without applicable controls compliance is 0.0"""
        assessment = seeded.run_assessment("soc2")

        assert assessment.not_applicable_controls == assessment.total_controls
        assert assessment.compliance_percent == 0.0

    def test_provider_scoped_framework(self, seeded, make_resource) -> None:
        """Provider-specific frameworks ignore resources of other providers"""
        make_resource(provider="GCP", tags={"encrypted": False})

        assessment = seeded.run_assessment("cis-aws")

        assert assessment.failed_controls == 0

    def test_disabled_framework_rejected(self, seeded) -> None:
        """Disabled frameworks cannot be assessed"""
        seeded.set_framework_enabled("hipaa", False)

        with pytest.raises(ValueError):
            seeded.run_assessment("hipaa")

    def test_unknown_framework(self, seeded) -> None:
        """Unknown framework ids raise NotFoundError"""
        with pytest.raises(NotFoundError):
            seeded.run_assessment("iso-27001")

    def test_run_enabled_assessments(self, seeded) -> None:
        """Every enabled framework is assessed"""
        seeded.set_framework_enabled("pci-dss", False)

        assessments = seeded.run_enabled_assessments()

        assert sorted(a.framework_id for a in assessments) == ["cis-aws", "hipaa", "soc2"]

    @pytest.mark.parametrize("open_ports", [22, "22", [22, 443]])
    def test_open_port_shapes_are_assessed(self, seeded, make_resource, open_ports) -> None:
        """Single-port and list forms of openPorts fail the port controls without aborting"""
        make_resource(name="bastion-sg", type="SecurityGroup", tags={"openPorts": open_ports})

        assessments = {a.framework_id: a for a in seeded.run_enabled_assessments()}

        assert {a.status for a in assessments.values()} == {"completed"}
        failed = {f["controlId"] for f in assessments["cis-aws"].findings if f["status"] == "failed"}
        assert failed == {"5.2"}
        failed = {f["controlId"] for f in assessments["pci-dss"].findings if f["status"] == "failed"}
        assert failed == {"1.3.1"}


@pytest.mark.unit
class TestComplianceReporting:
    """Test overview, failing controls and trend"""

    def test_overview_uses_latest_assessment(self, seeded, make_resource) -> None:
        """The overview aggregates the latest completed assessment per framework"""
        make_resource(tags={"mfaEnabled": False, "loggingEnabled": True})
        seeded.run_enabled_assessments()

        overview = seeded.get_overview()

        soc2 = next(f for f in overview["by_framework"] if f["framework_id"] == "soc2")
        assert soc2["failed_controls"] == 1
        assert soc2["passed_controls"] == 1
        assert overview["by_severity"]["high"] >= 1
        assert 0.0 <= overview["compliance_percent"] <= 100.0

    def test_failing_controls_filter(self, seeded, make_resource) -> None:
        """Failing controls can be limited to one framework"""
        make_resource(tags={"publicAccess": True, "backupEnabled": False})
        seeded.run_enabled_assessments()

        failing = seeded.get_failing_controls(framework_id="pci-dss")

        assert [f["control_id"] for f in failing] == ["1.4.1"]
        assert failing[0]["severity"] == "critical"

    def test_trend_points(self, seeded) -> None:
        """Completed assessments within the window become trend points"""
        seeded.run_assessment("soc2")
        seeded.run_assessment("soc2")

        trend = seeded.get_trend("soc2", days=7)

        assert trend["framework_id"] == "soc2"
        assert len(trend["points"]) == 2

    def test_trend_rejects_bad_window(self, seeded) -> None:
        """days must be positive"""
        with pytest.raises(ValueError):
            seeded.get_trend(days=0)
