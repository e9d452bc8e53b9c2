"""
Job (estimate / work order / invoice) model.

One row per unit of work for a customer. Planned quantities live in
``materials``; crew-reported quantities land in ``actuals`` when the
completion transaction runs, which is also the only writer of
``completion_processed``.

materials / actuals JSON shape (camelCase, as produced by the estimator UI):
    {
        "openCellSets": 3.5,
        "closedCellSets": 1,
        "laborHours": 12,
        "inventory": [{"id": 7, "quantity": 2}],
        "equipment": [{"id": 4}]
    }
"""

from foamops.models import db
from foamops.models.base import TenantModel, as_float, utcnow

STATUS_DRAFT = "Draft"
STATUS_WORK_ORDER = "Work Order"
STATUS_INVOICED = "Invoiced"
STATUS_PAID = "Paid"
STATUS_ARCHIVED = "Archived"

EXEC_NOT_STARTED = "Not Started"
EXEC_IN_PROGRESS = "In Progress"
EXEC_COMPLETED = "Completed"


class Job(TenantModel):
    """A customer job.

    Lifecycle:
      status:            Draft → Work Order → Invoiced → Paid → Archived
      execution_status:  Not Started → In Progress → Completed
    """

    __tablename__ = "jobs"

    VALID_STATUSES = frozenset({
        STATUS_DRAFT, STATUS_WORK_ORDER, STATUS_INVOICED, STATUS_PAID, STATUS_ARCHIVED,
    })
    VALID_EXECUTION_STATUSES = frozenset({EXEC_NOT_STARTED, EXEC_IN_PROGRESS, EXEC_COMPLETED})

    id = db.Column(db.Integer, primary_key=True)
    estimate_number = db.Column(db.String(50))
    customer_name = db.Column(db.String(200))
    status = db.Column(
        db.String(20),
        nullable=False,
        default=STATUS_DRAFT,
        comment="Draft | Work Order | Invoiced | Paid | Archived",
    )
    execution_status = db.Column(
        db.String(20),
        nullable=False,
        default=EXEC_NOT_STARTED,
        comment="Not Started | In Progress | Completed",
    )
    materials = db.Column(db.JSON, nullable=False, default=dict)
    expenses = db.Column(db.JSON, nullable=False, default=dict)
    total_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    scheduled_date = db.Column(db.Date)
    actuals = db.Column(
        db.JSON,
        nullable=True,
        comment="Crew-reported materials and labor. Written once by the completion transaction.",
    )
    completion_processed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def planned_equipment_ids(self) -> list[int]:
        """Equipment ids listed on the planned materials, in listed order."""
        ids = []
        for entry in (self.materials or {}).get("equipment") or []:
            raw = entry.get("id") if isinstance(entry, dict) else entry
            try:
                ids.append(int(raw))
            except (TypeError, ValueError):
                continue
        return ids

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "estimate_number": self.estimate_number,
            "customer_name": self.customer_name,
            "status": self.status,
            "execution_status": self.execution_status,
            "materials": self.materials or {},
            "expenses": self.expenses or {},
            "total_value": as_float(self.total_value),
            "scheduled_date": self.scheduled_date.isoformat() if self.scheduled_date else None,
            "actuals": self.actuals,
            "completion_processed": self.completion_processed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Job {self.id} {self.execution_status}>"
