"""
Tests for the pure project status rule and the status workflow table.
"""

from decimal import Decimal

import pytest

from backoffice_kernel.exceptions import InvalidTransitionError
from backoffice_modules.project.models import ProjectStatus
from backoffice_modules.project.status import derive_project_status
from backoffice_modules.project.workflows import (
    ACTION_FOR_TARGET,
    PROJECT_STATUS_WORKFLOW,
)


class TestDeriveProjectStatus:

    @pytest.mark.parametrize(
        "current, has_po, pct, expected",
        [
            (ProjectStatus.PRE_LIM, False, Decimal("0"), ProjectStatus.PRE_LIM),
            (ProjectStatus.PRE_LIM, True, Decimal("0"), ProjectStatus.ONGOING),
            (ProjectStatus.ONGOING, True, Decimal("70"), ProjectStatus.ONGOING),
            (ProjectStatus.ONGOING, False, Decimal("70"), ProjectStatus.PRE_LIM),
            (ProjectStatus.ONGOING, True, Decimal("100"), ProjectStatus.COMPLETED),
            (ProjectStatus.PRE_LIM, False, Decimal("100"), ProjectStatus.COMPLETED),
            (ProjectStatus.ONGOING, True, Decimal("120"), ProjectStatus.COMPLETED),
        ],
    )
    def test_rules(self, current, has_po, pct, expected):
        assert derive_project_status(current, has_po, pct) is expected

    @pytest.mark.parametrize("has_po", [True, False])
    def test_completed_is_sticky(self, has_po):
        assert (
            derive_project_status(ProjectStatus.COMPLETED, has_po, Decimal("0"))
            is ProjectStatus.COMPLETED
        )

    def test_custom_threshold(self):
        assert (
            derive_project_status(ProjectStatus.ONGOING, True, Decimal("95"), Decimal("95"))
            is ProjectStatus.COMPLETED
        )


class TestProjectStatusWorkflow:

    def test_every_target_has_an_action(self):
        assert set(ACTION_FOR_TARGET) == set(ProjectStatus)

    def test_completed_is_terminal(self):
        assert PROJECT_STATUS_WORKFLOW.allowed_actions("completed") == ()

    @pytest.mark.parametrize("target", [ProjectStatus.ONGOING, ProjectStatus.PRE_LIM])
    def test_leaving_completed_rejected(self, target):
        with pytest.raises(InvalidTransitionError):
            PROJECT_STATUS_WORKFLOW.apply("completed", ACTION_FOR_TARGET[target])

    def test_po_recorded_moves_to_ongoing(self):
        assert PROJECT_STATUS_WORKFLOW.apply("pre-lim", "po_recorded") == "ongoing"
