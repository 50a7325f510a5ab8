import uuid
from datetime import datetime
from typing import List
from fastapi import HTTPException
from loguru import logger
from sqlmodel import Session, select

from freshdock.db.schema import Business, BusinessType, DispatchTemplate
from freshdock.models.auth import SessionContext
from freshdock.models.template import TemplateCreate, TemplateUpdate, TemplateRead


class TemplateService:
    """Saved dispatch forms for grower businesses."""

    def __init__(self, session: Session):
        self.session = session

    def _supplier_business_id(self, ctx: SessionContext) -> uuid.UUID:
        if not ctx.business_id or ctx.business_type != BusinessType.SUPPLIER:
            raise HTTPException(
                status_code=403, detail="Templates are available to grower businesses only.")
        return ctx.business_id

    def _get_template(self, ctx: SessionContext, template_id: uuid.UUID) -> DispatchTemplate:
        business_id = self._supplier_business_id(ctx)
        template = self.session.exec(
            select(DispatchTemplate)
            .where(DispatchTemplate.id == template_id)
            .where(DispatchTemplate.business_id == business_id)
        ).first()
        if not template:
            raise HTTPException(status_code=404, detail="Template not found.")
        return template

    def _check_receiver(self, receiver_id):
        if receiver_id is None:
            return
        receiver = self.session.get(Business, receiver_id)
        if not receiver or receiver.business_type != BusinessType.RECEIVER:
            raise HTTPException(status_code=404, detail="Receiver not found.")

    def list_templates(self, ctx: SessionContext) -> List[TemplateRead]:
        business_id = self._supplier_business_id(ctx)
        rows = self.session.exec(
            select(DispatchTemplate)
            .where(DispatchTemplate.business_id == business_id)
            .order_by(DispatchTemplate.template_name)
        ).all()
        return [TemplateRead.model_validate(t) for t in rows]

    def create_template(self, ctx: SessionContext, data: TemplateCreate) -> TemplateRead:
        business_id = self._supplier_business_id(ctx)
        self._check_receiver(data.receiver_business_id)

        template = DispatchTemplate(
            business_id=business_id,
            receiver_business_id=data.receiver_business_id,
            template_name=data.template_name.strip(),
            template_data=data.template_data,
        )
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        logger.info(f"Template '{template.template_name}' saved for business {business_id}")
        return TemplateRead.model_validate(template)

    def update_template(self, ctx: SessionContext, template_id: uuid.UUID, data: TemplateUpdate) -> TemplateRead:
        template = self._get_template(ctx, template_id)
        update_data = data.model_dump(exclude_unset=True)
        if "receiver_business_id" in update_data:
            self._check_receiver(update_data["receiver_business_id"])

        for key, value in update_data.items():
            setattr(template, key, value)

        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return TemplateRead.model_validate(template)

    def delete_template(self, ctx: SessionContext, template_id: uuid.UUID):
        template = self._get_template(ctx, template_id)
        self.session.delete(template)
        self.session.commit()
        logger.info(f"Template {template_id} deleted by {ctx.user_id}")

    def apply_template(self, ctx: SessionContext, template_id: uuid.UUID) -> TemplateRead:
        """Marks the template as used and returns its saved form values."""
        template = self._get_template(ctx, template_id)
        template.last_used_at = datetime.utcnow()
        self.session.add(template)
        self.session.commit()
        self.session.refresh(template)
        return TemplateRead.model_validate(template)
