from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..configurations import create_configuration, delete_configuration, replace_configuration
from ..database import get_db

router = APIRouter(prefix="/stair-configurations", tags=["stair-configurations"])


def _get_configuration(db: Session, config_id: int) -> models.StairConfiguration:
    configuration = db.query(models.StairConfiguration).filter(
        models.StairConfiguration.id == config_id
    ).first()
    if not configuration:
        raise HTTPException(status_code=404, detail="Stair configuration not found")
    return configuration


@router.post("/", response_model=schemas.StairConfiguration)
def create_stair_configuration(request: schemas.StairConfigurationCreate, db: Session = Depends(get_db)):
    """Price the staircase and save it, with its line items, on the job."""
    return create_configuration(db, request)


@router.get("/job/{job_id}", response_model=List[schemas.StairConfiguration])
def list_job_configurations(job_id: int, db: Session = Depends(get_db)):
    return (
        db.query(models.StairConfiguration)
        .filter(models.StairConfiguration.job_id == job_id)
        .order_by(models.StairConfiguration.id)
        .all()
    )


@router.get("/{config_id}", response_model=schemas.StairConfiguration)
def get_stair_configuration(config_id: int, db: Session = Depends(get_db)):
    return _get_configuration(db, config_id)


@router.put("/{config_id}", response_model=schemas.StairConfiguration)
def replace_stair_configuration(
    config_id: int,
    request: schemas.StairConfigurationCreate,
    db: Session = Depends(get_db),
):
    """Full replace and re-price. Rejected once the job has left the quote stage."""
    return replace_configuration(db, _get_configuration(db, config_id), request)


@router.delete("/{config_id}")
def delete_stair_configuration(config_id: int, db: Session = Depends(get_db)):
    delete_configuration(db, _get_configuration(db, config_id))
    return {"ok": True}
