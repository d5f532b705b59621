"""
Project Status Workflow (``backoffice_modules.project.workflows``).

Responsibility
--------------
Declares the derived project lifecycle.  Nothing user-facing drives these
transitions; ``ProjectStatusDeriver`` resolves its target status through
this workflow so that a transition outside the table (for example, out
of ``completed``) fails loudly instead of being written.

::

    pre-lim  --po_recorded------> ongoing
    ongoing  --pos_removed------> pre-lim
    ongoing  --fully_invoiced---> completed
    pre-lim  --fully_invoiced---> completed
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_modules.project.models import ProjectStatus

ACTIVE_PO_EXISTS = Guard(
    name="active_po_exists",
    description="At least one active purchase order is recorded for the project",
)

NO_ACTIVE_PO = Guard(
    name="no_active_po",
    description="Every purchase order for the project has been removed",
)

FULLY_INVOICED = Guard(
    name="fully_invoiced",
    description="Cumulative invoiced percentage reached the completion threshold",
)

PO_RECORDED = "po_recorded"
POS_REMOVED = "pos_removed"
FULLY_INVOICED_ACTION = "fully_invoiced"

_PRE_LIM = ProjectStatus.PRE_LIM.value
_ONGOING = ProjectStatus.ONGOING.value
_COMPLETED = ProjectStatus.COMPLETED.value

PROJECT_STATUS_WORKFLOW = Workflow(
    name="project_status",
    description="Project status derived from purchase orders and invoices",
    initial_state=_PRE_LIM,
    states=(_PRE_LIM, _ONGOING, _COMPLETED),
    transitions=(
        Transition(_PRE_LIM, _ONGOING, action=PO_RECORDED, guard=ACTIVE_PO_EXISTS),
        Transition(_ONGOING, _PRE_LIM, action=POS_REMOVED, guard=NO_ACTIVE_PO),
        Transition(_ONGOING, _COMPLETED, action=FULLY_INVOICED_ACTION, guard=FULLY_INVOICED),
        Transition(_PRE_LIM, _COMPLETED, action=FULLY_INVOICED_ACTION, guard=FULLY_INVOICED),
    ),
    terminal_states=(_COMPLETED,),
)

# Action that leads into each target status.
ACTION_FOR_TARGET: dict[ProjectStatus, str] = {
    ProjectStatus.ONGOING: PO_RECORDED,
    ProjectStatus.PRE_LIM: POS_REMOVED,
    ProjectStatus.COMPLETED: FULLY_INVOICED_ACTION,
}
