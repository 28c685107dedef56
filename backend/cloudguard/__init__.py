"""
CloudGuard - cloud governance backend
Resources, security drift, cost anomalies, compliance and remediation workflows
"""

__version__ = "1.0.0"
