from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotbook.models.center import Center
from slotbook.routes.dependencies import ensure_database_ready, get_db

router = APIRouter(tags=['centers'])


class CreateCenterRequest(BaseModel):
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Center name is required.')
        return normalized


class CenterResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


@router.post('', response_model=CenterResponse, status_code=status.HTTP_201_CREATED)
def create_center(data: CreateCenterRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        center = Center(name=data.name)
        db.add(center)
        db.commit()
        db.refresh(center)

        return CenterResponse.model_validate(center)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


@router.get('', response_model=list[CenterResponse])
def list_centers(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        centers = db.query(Center).order_by(Center.id.asc()).all()

        return [CenterResponse.model_validate(center) for center in centers]
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc
