"""
Project Module (``backoffice_modules.project``).

Project registry (codes, variation orders, billing type) and the status
deriver that owns ``Project.status``.
"""

from backoffice_modules.project.models import (
    BillingType,
    Project,
    ProjectCreationResult,
    ProjectStatus,
    StatusChangeResult,
    StatusTransition,
)
from backoffice_modules.project.workflows import PROJECT_STATUS_WORKFLOW

__all__ = [
    "BillingType",
    "PROJECT_STATUS_WORKFLOW",
    "Project",
    "ProjectCreationResult",
    "ProjectStatus",
    "StatusChangeResult",
    "StatusTransition",
]
