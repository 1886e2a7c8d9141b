from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from medassist.db.base import Base
from medassist.db.session import SessionLocal, engine
from medassist.models.audit import AuditLog  # noqa: F401  (register table)
from medassist.models.chat import ChatSession  # noqa: F401  (register table)
from medassist.models.users import User


def init_db() -> None:
    """
    Create tables + seed demo users.

    With the dummy auth provider the bearer token is the user id, so the
    seeded ids below can be used directly: `Authorization: Bearer user_doctor_card`.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        _seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(User.id).limit(1)).first() is not None


def _seed(db: Session) -> None:
    db.add_all(
        [
            User(
                id="user_admin",
                email="alice.admin@example.com",
                role="admin",
                clearance=5,
            ),
            User(
                id="user_doctor_card",
                email="dana.cardio@example.com",
                role="doctor",
                department="Cardiology",
                clearance=4,
                specialization="Interventional Cardiology",
            ),
            User(
                id="user_doctor_onc",
                email="omar.onc@example.com",
                role="doctor",
                department="Oncology",
                clearance=3,
                specialization="Radiation Oncology",
            ),
            User(
                id="user_patient",
                email="pat.patient@example.com",
                role="patient",
                department="Cardiology",
                clearance=1,
            ),
            User(
                id="user_researcher",
                email="rae.research@example.com",
                role="researcher",
                clearance=2,
            ),
        ]
    )
    db.commit()
