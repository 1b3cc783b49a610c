from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.models import PromptTemplate
from bolt.db.repositories.templates import PromptTemplatesRepository
from bolt.schemas.assistant import TemplateCreateRequest, TemplateUpdateRequest

router = APIRouter(prefix="/assistant/templates", tags=["templates"])


def _serialize_template(template: PromptTemplate) -> dict[str, Any]:
    return {
        "id": str(template.id),
        "title": template.title,
        "content": template.content,
        "variables": template.variables or [],
        "isPublic": template.is_public,
        "userId": str(template.user_id),
        "createdAt": template.created_at.isoformat() if template.created_at else None,
        "updatedAt": template.updated_at.isoformat() if template.updated_at else None,
    }


def _get_template_or_404(session: Session, template_id: UUID) -> PromptTemplate:
    template = PromptTemplatesRepository(session).get(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Template not found")
    return template


def _require_owner(template: PromptTemplate, auth: AuthContext, action: str) -> None:
    if template.user_id != auth.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {action} this template",
        )


@router.get("")
def list_templates(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    templates = PromptTemplatesRepository(session).list_visible(user_id=auth.user_id)
    return {"success": True, "templates": [_serialize_template(template) for template in templates]}


@router.get("/{template_id}")
def get_template(
    template_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    template = _get_template_or_404(session, template_id)
    if not template.is_public:
        _require_owner(template, auth, "access")
    return {"success": True, "template": _serialize_template(template)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    template = PromptTemplatesRepository(session).create(
        user_id=auth.user_id,
        title=payload.title,
        content=payload.content,
        variables=[variable.model_dump(mode="json") for variable in payload.variables],
        is_public=payload.isPublic,
    )
    return {"success": True, "template": _serialize_template(template)}


@router.put("/{template_id}")
def update_template(
    template_id: UUID,
    payload: TemplateUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    template = _get_template_or_404(session, template_id)
    _require_owner(template, auth, "update")
    template = PromptTemplatesRepository(session).update(template=template, fields=payload.changed_fields())
    return {"success": True, "template": _serialize_template(template)}


@router.delete("/{template_id}")
def delete_template(
    template_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    template = _get_template_or_404(session, template_id)
    _require_owner(template, auth, "delete")
    PromptTemplatesRepository(session).delete(template)
    return {"success": True, "message": "Template deleted successfully"}
