"""initial_schema_baseline

Revision ID: 202601050900
Revises:
Create Date: 2026-01-05 09:00:00.000000

Creates every table from the current model definitions, then adds the
PostgreSQL-only pieces: status check constraints and the exclusion
constraint that makes overlapping non-cancelled appointments of one
professional impossible at the storage level.
"""
from typing import Sequence, Union
import sys
import os

# Add src directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from alembic import op

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
from core.constants import APPOINTMENT_STATUSES, ENROLLMENT_STATUSES, GROUP_ACTIVITY_STATUSES
from models import (  # noqa: F401
    Organization, Professional, Client, Service, WorkSchedule, WorkScheduleBreak,
    Appointment, GroupActivity, GroupActivityParticipant
)
from models.appointment import EXCLUSION_CONSTRAINT_NAME


# revision identifiers, used by Alembic.
revision: str = '202601050900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _in_list(values: Sequence[str]) -> str:
    return ", ".join(f"'{value}'" for value in values)


def upgrade() -> None:
    """
    Create all tables, indexes and portable constraints from the models.

    On PostgreSQL additionally:
    - status check constraints
    - btree_gist and the appointment exclusion constraint
    """
    bind = op.get_bind()

    # Step 1: Create all tables from models
    Base.metadata.create_all(bind=bind)

    if bind.dialect.name != 'postgresql':
        return

    # Step 2: Status check constraints
    op.create_check_constraint(
        'check_appointment_status',
        'appointments',
        f"status IN ({_in_list(APPOINTMENT_STATUSES)})"
    )
    op.create_check_constraint(
        'check_group_activity_status',
        'group_activities',
        f"status IN ({_in_list(GROUP_ACTIVITY_STATUSES)})"
    )
    op.create_check_constraint(
        'check_enrollment_status',
        'group_activity_participants',
        f"enrollment_status IN ({_in_list(ENROLLMENT_STATUSES)})"
    )

    # Step 3: No two non-cancelled appointments of a professional may overlap.
    # Ranges are half-open, so back-to-back appointments are allowed.
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    op.execute(f"""
        ALTER TABLE appointments
        ADD CONSTRAINT {EXCLUSION_CONSTRAINT_NAME}
        EXCLUDE USING gist (
            professional_id WITH =,
            tsrange(date + start_time, date + end_time, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
    """)


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
