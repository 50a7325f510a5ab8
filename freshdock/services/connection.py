import uuid
from datetime import datetime
from typing import List
from fastapi import HTTPException
from loguru import logger
from sqlmodel import Session, select, or_

from freshdock.db.schema import Business, BusinessType, Connection, ConnectionStatus
from freshdock.models.auth import SessionContext
from freshdock.models.connection import ConnectionRead, ConnectionRequest


class ConnectionService:
    def __init__(self, session: Session):
        self.session = session

    def _get_active_business(self, ctx: SessionContext) -> Business:
        if not ctx.business_id:
            raise HTTPException(
                status_code=403, detail="No active business context.")
        business = self.session.get(Business, ctx.business_id)
        if not business:
            raise HTTPException(
                status_code=403, detail="No active business context.")
        return business

    def _to_read(self, conn: Connection, own_business_id: uuid.UUID) -> ConnectionRead:
        partner_id = conn.receiver_business_id \
            if conn.supplier_business_id == own_business_id else conn.supplier_business_id
        partner = self.session.get(Business, partner_id)
        return ConnectionRead.model_validate(conn, update={
            "partner_name": partner.name if partner else None,
            "partner_type": partner.business_type if partner else None,
        })

    # ==========================================================================
    # SUPPLIER ACTIONS
    # ==========================================================================

    def request_connection(self, ctx: SessionContext, data: ConnectionRequest) -> ConnectionRead:
        """
        A grower asks to send to a receiver. One row per pair; asking again
        is a conflict whatever the earlier answer was.
        """
        supplier = self._get_active_business(ctx)
        if supplier.business_type != BusinessType.SUPPLIER:
            raise HTTPException(
                status_code=403, detail="Only grower businesses can request connections.")

        receiver = self.session.get(Business, data.receiver_business_id)
        if not receiver or receiver.business_type != BusinessType.RECEIVER:
            raise HTTPException(status_code=404, detail="Receiver not found.")

        existing = self.session.exec(
            select(Connection)
            .where(Connection.supplier_business_id == supplier.id)
            .where(Connection.receiver_business_id == receiver.id)
        ).first()
        if existing:
            raise HTTPException(
                status_code=409,
                detail=f"A connection with {receiver.name} already exists ({existing.status.value})."
            )

        conn = Connection(
            supplier_business_id=supplier.id,
            receiver_business_id=receiver.id,
            status=ConnectionStatus.PENDING,
        )
        self.session.add(conn)
        self.session.commit()
        self.session.refresh(conn)

        logger.info(f"Connection requested: {supplier.name} -> {receiver.name}")
        return self._to_read(conn, supplier.id)

    # ==========================================================================
    # RECEIVER ACTIONS
    # ==========================================================================

    def respond(self, ctx: SessionContext, connection_id: uuid.UUID, approve: bool) -> ConnectionRead:
        receiver = self._get_active_business(ctx)
        if receiver.business_type != BusinessType.RECEIVER or not ctx.can_receive:
            raise HTTPException(
                status_code=403, detail="Only receiver staff can answer connection requests.")

        conn = self.session.exec(
            select(Connection)
            .where(Connection.id == connection_id)
            .where(Connection.receiver_business_id == receiver.id)
        ).first()
        if not conn:
            raise HTTPException(
                status_code=404, detail="Connection request not found or you are not the receiver.")

        old_status = conn.status
        conn.status = ConnectionStatus.APPROVED if approve else ConnectionStatus.REJECTED
        conn.responded_at = datetime.utcnow()
        self.session.add(conn)
        self.session.commit()
        self.session.refresh(conn)

        logger.info(
            f"Connection {conn.id}: {old_status.value} -> {conn.status.value} by {ctx.user_id}")
        return self._to_read(conn, receiver.id)

    # ==========================================================================
    # BOTH SIDES
    # ==========================================================================

    def list_connections(self, ctx: SessionContext) -> List[ConnectionRead]:
        business = self._get_active_business(ctx)
        rows = self.session.exec(
            select(Connection)
            .where(or_(
                Connection.supplier_business_id == business.id,
                Connection.receiver_business_id == business.id,
            ))
            .order_by(Connection.requested_at.desc())
        ).all()
        return [self._to_read(conn, business.id) for conn in rows]
