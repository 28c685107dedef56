"""
Database configuration and models
PostgreSQL (serial keys, JSON attribute columns) with SQLite support for development
"""

import logging
from datetime import datetime
from typing import Generator, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def create_db_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    PostgreSQL URLs get a pooled engine with pre-ping and connection recycling.
    SQLite URLs (local development and tests) share a single connection so an
    in-memory database survives across sessions.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    connect_args = {
        "connect_timeout": 10,
        "options": "-c application_name=cloudguard",
    }
    if settings.database_ssl_mode:
        connect_args["sslmode"] = settings.database_ssl_mode

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,  # Recycle connections every hour
        connect_args=connect_args,
    )


engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Database Models
class Organization(Base):  # type: ignore[valid-type, misc]
    """Tenant owning resources and users"""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    display_name = Column(Text, nullable=True)
    billing_email = Column(Text, nullable=False)
    billing_address = Column(Text, nullable=True)
    plan_type = Column(Text, default="free")  # free, basic, pro, enterprise
    resource_limit = Column(Integer, default=10)
    user_limit = Column(Integer, default=2)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class User(Base):  # type: ignore[valid-type, misc]
    """Dashboard user with trial tracking"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(Text, unique=True, nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password = Column(Text, nullable=False)  # Argon2id hash
    full_name = Column(Text, nullable=True)
    role = Column(Text, default="user")  # user, admin, support
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    plan_type = Column(Text, default="free")
    trial_started_at = Column(DateTime, nullable=True)
    trial_status = Column(Text, default="inactive", nullable=False)  # inactive, active, expired
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)


class Resource(Base):  # type: ignore[valid-type, misc]
    """Tracked cloud resource. Cost is stored in cents."""

    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # EC2, S3, RDS, etc.
    provider = Column(Text, nullable=False, index=True)  # AWS, AZURE, GCP
    region = Column(Text, nullable=False)
    status = Column(Text, nullable=False)  # running, stopped, etc.
    tags = Column(JSON, nullable=True)
    cost = Column(Integer, nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SecurityDrift(Base):  # type: ignore[valid-type, misc]
    """Deviation of a resource configuration from its secure baseline"""

    __tablename__ = "security_drifts"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    drift_type = Column(Text, nullable=False)  # IAM policy change, open port, etc.
    severity = Column(Text, nullable=False)  # critical, high, medium, low
    details = Column(JSON, nullable=True)
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(Text, nullable=False, default="open")  # open, acknowledged, remediated, approved, resolved


class CostAnomaly(Base):  # type: ignore[valid-type, misc]
    """Unusual cost pattern for a resource. Costs in cents."""

    __tablename__ = "cost_anomalies"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=False, index=True)
    anomaly_type = Column(Text, nullable=False)  # spike, trend, etc.
    severity = Column(Text, nullable=False)
    percentage = Column(Integer, nullable=False)  # Percentage increase
    previous_cost = Column(Integer, nullable=False)
    current_cost = Column(Integer, nullable=False)
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(Text, nullable=False, default="open")  # open, investigated, resolved


class Alert(Base):  # type: ignore[valid-type, misc]
    """Notification derived from drifts and anomalies. Type and severity are immutable."""

    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # security, cost, resource
    severity = Column(Text, nullable=False)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(Text, nullable=False, default="open")  # open, acknowledged, resolved


class Recommendation(Base):  # type: ignore[valid-type, misc]
    """Optimization recommendation. Savings in cents."""

    __tablename__ = "recommendations"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # rightsizing, unused resources, storage optimization
    potential_savings = Column(Integer, nullable=False, default=0)
    resources_affected = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(Text, nullable=False, default="open")  # open, applied, dismissed


class Vulnerability(Base):  # type: ignore[valid-type, misc]
    """Known vulnerability found on a resource"""

    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, index=True)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True, index=True)
    cve_id = Column(Text, nullable=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    severity = Column(Text, nullable=False)
    cvss_score = Column(Float, nullable=True)
    package_name = Column(Text, nullable=True)
    fixed_version = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="open")  # open, fixed, ignored
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CloudCredential(Base):  # type: ignore[valid-type, misc]
    """Encrypted provider credentials"""

    __tablename__ = "cloud_credentials"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    provider = Column(Text, nullable=False)
    name = Column(Text, nullable=True)
    encrypted_credentials = Column(Text, nullable=False)
    encryption_iv = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    last_synced = Column(DateTime, nullable=True)
    last_sync_status = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CostHistory(Base):  # type: ignore[valid-type, misc]
    """Daily cost point per provider and service category. Amount in cents."""

    __tablename__ = "cost_history"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    provider = Column(Text, nullable=False, index=True)
    service_category = Column(Text, nullable=True)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CostPrediction(Base):  # type: ignore[valid-type, misc]
    """Forecast output. Amounts in cents."""

    __tablename__ = "cost_predictions"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    provider = Column(Text, nullable=True)
    prediction_date = Column(Date, nullable=False)
    predicted_amount = Column(Integer, nullable=False)
    lower_bound = Column(Integer, nullable=False)
    upper_bound = Column(Integer, nullable=False)
    model = Column(Text, nullable=False, default="linear")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class CostOptimizationSuggestion(Base):  # type: ignore[valid-type, misc]
    """Heuristic cost optimization. Savings in cents."""

    __tablename__ = "cost_optimization_suggestions"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    provider = Column(Text, nullable=False)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True)
    resource_type = Column(Text, nullable=True)
    optimization_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    estimated_savings = Column(Integer, nullable=False, default=0)
    confidence = Column(Float, nullable=False, default=0.5)
    status = Column(Text, nullable=False, default="open")  # open, applied, dismissed
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ComplianceFramework(Base):  # type: ignore[valid-type, misc]
    """Compliance standard (reference data)"""

    __tablename__ = "compliance_frameworks"

    id = Column(String(50), primary_key=True)  # slug: cis-aws, soc2, ...
    name = Column(Text, nullable=False)
    version = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    provider = Column(Text, nullable=True)
    is_enabled = Column(Boolean, default=True, nullable=False)


class ComplianceControl(Base):  # type: ignore[valid-type, misc]
    """Individual checkable requirement of a framework"""

    __tablename__ = "compliance_controls"

    id = Column(Integer, primary_key=True, index=True)
    framework_id = Column(String(50), ForeignKey("compliance_frameworks.id"), nullable=False, index=True)
    control_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    remediation = Column(Text, nullable=True)
    check_key = Column(Text, nullable=False)  # key into the control check registry


class ComplianceAssessment(Base):  # type: ignore[valid-type, misc]
    """Result of evaluating a framework's controls against current resources"""

    __tablename__ = "compliance_assessments"

    id = Column(Integer, primary_key=True, index=True)
    framework_id = Column(String(50), ForeignKey("compliance_frameworks.id"), nullable=False, index=True)
    assessment_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    total_controls = Column(Integer, nullable=False, default=0)
    passed_controls = Column(Integer, nullable=False, default=0)
    failed_controls = Column(Integer, nullable=False, default=0)
    not_applicable_controls = Column(Integer, nullable=False, default=0)
    compliance_percent = Column(Float, nullable=False, default=0.0)
    status = Column(Text, nullable=False, default="running")  # running, completed, failed
    findings = Column(JSON, nullable=True)

    framework = relationship("ComplianceFramework")

    @property
    def framework_name(self) -> str:
        return self.framework.name if self.framework else self.framework_id


class ScheduledJob(Base):  # type: ignore[valid-type, misc]
    """User-authored automation job. The cron schedule is stored exactly as entered."""

    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # compliance_scan, cost_report, drift_detection, resource_cleanup
    schedule = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    status = Column(Text, default="idle", nullable=False)  # idle, running, failed
    last_run = Column(DateTime, nullable=True)
    next_run = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class JobExecution(Base):  # type: ignore[valid-type, misc]
    """Single run of a scheduled job"""

    __tablename__ = "job_executions"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("scheduled_jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Text, nullable=False, default="running")  # running, success, failure
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    result = Column(JSON, nullable=True)

    @property
    def duration(self) -> Optional[str]:
        if self.completed_at is None or self.started_at is None:
            return None
        return f"{(self.completed_at - self.started_at).total_seconds():.1f}s"


class RemediationAction(Base):  # type: ignore[valid-type, misc]
    """
    Proposed corrective operation awaiting approval.

    Status flow:
    - pending_approval -> approved -> executing -> executed | failed
    - pending_approval -> rejected
    """

    __tablename__ = "remediation_actions"

    id = Column(Integer, primary_key=True, index=True)
    action_type = Column(Text, nullable=False)
    resource_id = Column(Integer, ForeignKey("resources.id"), nullable=True)
    drift_id = Column(Integer, ForeignKey("security_drifts.id"), nullable=True)
    vulnerability_id = Column(Integer, ForeignKey("vulnerabilities.id"), nullable=True)
    severity = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending_approval")
    requested_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    executed_at = Column(DateTime, nullable=True)
    result = Column(JSON, nullable=True)


class UserSession(Base):  # type: ignore[valid-type, misc]
    """Server-side session store (connect-pg-simple layout)"""

    __tablename__ = "session"

    sid = Column(String(255), primary_key=True)
    sess = Column(JSON, nullable=False)
    expire = Column(DateTime, nullable=False, index=True)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Yields a session and guarantees it is closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    """Create all tables defined on the declarative base"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def check_database_health() -> bool:
    """Return True when a trivial query succeeds"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def init_database() -> None:
    """
    Initialize database connection.

    Performs connectivity test and creates tables if they don't exist.
    Raises an exception if initialization fails.
    """
    try:
        if not check_database_health():
            raise RuntimeError("Database connection failed")

        create_tables()
        logger.info("Database initialized successfully")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise
