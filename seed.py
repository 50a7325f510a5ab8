import os
import secrets

from loguru import logger
from sqlmodel import Session, select
from freshdock.db.core import engine, init_db
from freshdock.db.schema import (
    User, Business, BusinessType, UserRole, StaffPosition,
    Connection, ConnectionStatus
)
from freshdock.services.password import get_password_hash


# 1. Demo receiving business and its first admin
DEMO_RECEIVER = {
    "name": "Northside Packhouse",
    "city": "Bundaberg",
    "state": "QLD",
    "phone": "07 4150 0000",
    "email": "dock@northside.com.au",
}

ADMIN_ACCOUNT = {
    "email": os.getenv("SEED_ADMIN_EMAIL", "admin@northside.com.au"),
    "password": os.getenv("SEED_ADMIN_PASSWORD", "change-me-now"),
    "display_name": "Dock Admin",
}

# 2. Demo grower, already connected to the receiver
DEMO_GROWER = {
    "name": "Sunny Ridge Farms",
    "grower_code": "SRF01",
    "email": "grower@sunnyridge.com.au",
    "password": "grower-demo",
    "display_name": "Sam Ridge",
}


def seed_receiver(session: Session) -> Business:
    """Creates the demo receiver and its admin if missing."""
    logger.info("--- Seeding Receiver ---")

    business = session.exec(
        select(Business).where(Business.name == DEMO_RECEIVER["name"])).first()
    if not business:
        business = Business(
            business_type=BusinessType.RECEIVER,
            public_intake_token=secrets.token_urlsafe(24),
            **DEMO_RECEIVER
        )
        session.add(business)
        session.flush()
        logger.info(f"Created Receiver: {business.name}")
    else:
        logger.info(f"Existing Receiver: {business.name}")

    admin = session.exec(
        select(User).where(User.email == ADMIN_ACCOUNT["email"])).first()
    if not admin:
        admin = User(
            email=ADMIN_ACCOUNT["email"],
            hashed_password=get_password_hash(ADMIN_ACCOUNT["password"]),
            display_name=ADMIN_ACCOUNT["display_name"],
            company_name=business.name,
            role=UserRole.STAFF,
            staff_position=StaffPosition.ADMIN,
            business_id=business.id,
        )
        session.add(admin)
        session.flush()
        logger.info(f"Created Admin: {admin.email}")

    if business.owner_id is None:
        business.owner_id = admin.id
        session.add(business)

    logger.info(f"Public intake token: {business.public_intake_token}")
    return business


def seed_grower(session: Session, receiver: Business):
    """Creates the demo grower and approves its connection to the receiver."""
    logger.info("--- Seeding Grower ---")

    grower = session.exec(
        select(Business).where(Business.name == DEMO_GROWER["name"])).first()
    if not grower:
        grower = Business(
            name=DEMO_GROWER["name"],
            business_type=BusinessType.SUPPLIER,
            grower_code=DEMO_GROWER["grower_code"],
            email=DEMO_GROWER["email"],
        )
        session.add(grower)
        session.flush()
        logger.info(f"Created Grower: {grower.name}")

    user = session.exec(
        select(User).where(User.email == DEMO_GROWER["email"])).first()
    if not user:
        user = User(
            email=DEMO_GROWER["email"],
            hashed_password=get_password_hash(DEMO_GROWER["password"]),
            display_name=DEMO_GROWER["display_name"],
            company_name=grower.name,
            grower_code=grower.grower_code,
            role=UserRole.SUPPLIER,
            business_id=grower.id,
        )
        session.add(user)
        session.flush()
        grower.owner_id = user.id
        session.add(grower)

    connection = session.exec(
        select(Connection).where(
            Connection.supplier_business_id == grower.id,
            Connection.receiver_business_id == receiver.id
        )
    ).first()
    if not connection:
        session.add(Connection(
            supplier_business_id=grower.id,
            receiver_business_id=receiver.id,
            status=ConnectionStatus.APPROVED,
        ))
        logger.info(f"  + Connected {grower.name} -> {receiver.name}")
    elif connection.status != ConnectionStatus.APPROVED:
        connection.status = ConnectionStatus.APPROVED
        session.add(connection)


def main():
    # Local SQLite runs skip Alembic
    if engine.dialect.name == "sqlite":
        init_db()

    with Session(engine) as session:
        try:
            receiver = seed_receiver(session)
            seed_grower(session, receiver)

            session.commit()
            logger.info("Database seeding completed successfully.")

        except Exception as e:
            session.rollback()
            logger.error(f"Seeding failed: {e}")
            raise e


if __name__ == "__main__":
    main()
