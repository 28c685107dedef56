"""
Resource Configuration Checks

Registry of configuration rules evaluated against a resource's ``tags``.
Drift detection, compliance assessments and remediation execution share this
registry: a drift's ``drift_type`` and a control's ``check_key`` are rule keys,
and executing a remediation applies the rule's fix to the resource tags.

A rule is applicable to a resource only when the tag it inspects is present.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

MANAGEMENT_PORTS = (22, 3389)


def _open_ports(tags: Dict[str, Any]) -> List[int]:
    """Ports from ``openPorts``: a list, a single port, or a comma-separated string."""
    ports = tags.get("openPorts")
    if ports is None:
        return []
    if isinstance(ports, str):
        ports = ports.split(",")
    elif not isinstance(ports, (list, tuple, set)):
        ports = [ports]
    result = []
    for port in ports:
        try:
            result.append(int(port))
        except (TypeError, ValueError):
            continue
    return result


@dataclass(frozen=True)
class ResourceCheck:
    """
    One configuration rule.

    Attributes:
        key: Stable rule key stored as drift_type / check_key
        title: Human-readable finding title
        severity: critical, high, medium or low
        tag: Tag inspected by the rule
        violated: Predicate over the resource tags
        fix: Returns the tag updates that bring the resource back in line
        action_type: Remediation action proposed for a violation
        remediation: Operator guidance
    """

    key: str
    title: str
    severity: str
    tag: str
    violated: Callable[[Dict[str, Any]], bool]
    fix: Callable[[Dict[str, Any]], Dict[str, Any]]
    action_type: str
    remediation: str

    def applies_to(self, tags: Optional[Dict[str, Any]]) -> bool:
        return bool(tags) and self.tag in tags

    def is_violated(self, tags: Optional[Dict[str, Any]]) -> bool:
        return self.applies_to(tags) and bool(self.violated(tags))


RESOURCE_CHECKS: Dict[str, ResourceCheck] = {
    check.key: check
    for check in (
        ResourceCheck(
            key="public_access",
            title="Public access enabled",
            severity="critical",
            tag="publicAccess",
            violated=lambda tags: tags.get("publicAccess") is True,
            fix=lambda tags: {"publicAccess": False},
            action_type="block_public_access",
            remediation="Block public access on the resource and review its access policy.",
        ),
        ResourceCheck(
            key="encryption_disabled",
            title="Encryption at rest disabled",
            severity="high",
            tag="encrypted",
            violated=lambda tags: tags.get("encrypted") is False,
            fix=lambda tags: {"encrypted": True},
            action_type="enable_encryption",
            remediation="Enable encryption at rest using a managed key.",
        ),
        ResourceCheck(
            key="open_management_port",
            title="Management port open to the internet",
            severity="high",
            tag="openPorts",
            violated=lambda tags: any(port in MANAGEMENT_PORTS for port in _open_ports(tags)),
            fix=lambda tags: {"openPorts": [p for p in _open_ports(tags) if p not in MANAGEMENT_PORTS]},
            action_type="restrict_security_group",
            remediation="Remove ingress rules allowing 0.0.0.0/0 to ports 22 and 3389.",
        ),
        ResourceCheck(
            key="mfa_disabled",
            title="MFA not enforced",
            severity="high",
            tag="mfaEnabled",
            violated=lambda tags: tags.get("mfaEnabled") is False,
            fix=lambda tags: {"mfaEnabled": True},
            action_type="enforce_mfa",
            remediation="Require multi-factor authentication for all console users.",
        ),
        ResourceCheck(
            key="logging_disabled",
            title="Audit logging disabled",
            severity="medium",
            tag="loggingEnabled",
            violated=lambda tags: tags.get("loggingEnabled") is False,
            fix=lambda tags: {"loggingEnabled": True},
            action_type="enable_logging",
            remediation="Enable access and audit logging to a protected log bucket.",
        ),
        ResourceCheck(
            key="backup_disabled",
            title="Automated backups disabled",
            severity="medium",
            tag="backupEnabled",
            violated=lambda tags: tags.get("backupEnabled") is False,
            fix=lambda tags: {"backupEnabled": True},
            action_type="enable_backups",
            remediation="Enable automated backups with a retention period of at least 7 days.",
        ),
        ResourceCheck(
            key="versioning_disabled",
            title="Object versioning disabled",
            severity="low",
            tag="versioning",
            violated=lambda tags: tags.get("versioning") is False,
            fix=lambda tags: {"versioning": True},
            action_type="enable_versioning",
            remediation="Enable object versioning to protect against accidental deletion.",
        ),
    )
}


def get_check(key: str) -> Optional[ResourceCheck]:
    return RESOURCE_CHECKS.get(key)


def find_violations(tags: Optional[Dict[str, Any]]) -> List[ResourceCheck]:
    """All rules violated by a resource, most severe first."""
    order = {"critical": 0, "high": 1, "medium": 2, "low": 3}
    violations = [check for check in RESOURCE_CHECKS.values() if check.is_violated(tags)]
    return sorted(violations, key=lambda check: order.get(check.severity, 4))


def apply_fix(key: str, tags: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Return a new tags dict with the rule's fix applied.

    Raises:
        ValueError: Unknown rule key
    """
    check = get_check(key)
    if check is None:
        raise ValueError(f"No automated fix for '{key}'")
    updated = dict(tags or {})
    updated.update(check.fix(updated))
    return updated
