import uuid
from typing import List
from fastapi import APIRouter, Depends, status

from freshdock.core.dependencies import get_session_context, get_template_service
from freshdock.models.auth import SessionContext
from freshdock.models.template import TemplateCreate, TemplateUpdate, TemplateRead
from freshdock.services.template import TemplateService

router = APIRouter()


@router.get("", response_model=List[TemplateRead], summary="List templates")
def list_templates(
    ctx: SessionContext = Depends(get_session_context),
    service: TemplateService = Depends(get_template_service)
):
    return service.list_templates(ctx)


@router.post(
    "",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Save template"
)
def create_template(
    data: TemplateCreate,
    ctx: SessionContext = Depends(get_session_context),
    service: TemplateService = Depends(get_template_service)
):
    return service.create_template(ctx, data)


@router.patch("/{template_id}", response_model=TemplateRead, summary="Update template")
def update_template(
    template_id: uuid.UUID,
    data: TemplateUpdate,
    ctx: SessionContext = Depends(get_session_context),
    service: TemplateService = Depends(get_template_service)
):
    return service.update_template(ctx, template_id, data)


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete template"
)
def delete_template(
    template_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: TemplateService = Depends(get_template_service)
):
    service.delete_template(ctx, template_id)


@router.post(
    "/{template_id}/apply",
    response_model=TemplateRead,
    status_code=status.HTTP_200_OK,
    summary="Apply template",
    description="Returns the saved form values and records when the template was last used."
)
def apply_template(
    template_id: uuid.UUID,
    ctx: SessionContext = Depends(get_session_context),
    service: TemplateService = Depends(get_template_service)
):
    return service.apply_template(ctx, template_id)
