from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.template import TimetableTemplate
from app.schemas.template import TemplateCreate, TemplateOut
from app.services.slot_grid import validate_template

router = APIRouter()


@router.get("/", response_model=list[TemplateOut])
def list_templates(db: Session = Depends(get_db)) -> list[TemplateOut]:
    return list(
        db.execute(
            select(TimetableTemplate).order_by(TimetableTemplate.usage_count.desc(), TimetableTemplate.name)
        ).scalars()
    )


@router.post("/", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(payload: TemplateCreate, db: Session = Depends(get_db)) -> TemplateOut:
    validate_template(payload)
    template = TimetableTemplate(**payload.model_dump(mode="json"))
    db.add(template)
    db.commit()
    db.refresh(template)
    return template
