from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.faculty import Faculty
from app.models.school_class import SchoolClass
from app.schemas.school_class import SchoolClassCreate, SchoolClassOut

router = APIRouter()


@router.get("/", response_model=list[SchoolClassOut])
def list_classes(db: Session = Depends(get_db)) -> list[SchoolClassOut]:
    return list(db.execute(select(SchoolClass).order_by(SchoolClass.created_at, SchoolClass.name)).scalars())


@router.post("/", response_model=SchoolClassOut, status_code=status.HTTP_201_CREATED)
def create_class(payload: SchoolClassCreate, db: Session = Depends(get_db)) -> SchoolClassOut:
    existing = db.execute(select(SchoolClass).where(SchoolClass.name == payload.name)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Class name already exists")
    if payload.class_teacher_id and db.get(Faculty, payload.class_teacher_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class teacher not found")
    item = SchoolClass(**payload.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    return item
