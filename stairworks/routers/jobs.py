from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..database import get_db

router = APIRouter(prefix="/jobs", tags=["jobs"])

@router.post("/", response_model=schemas.Job)
def create_job(job: schemas.JobCreate, db: Session = Depends(get_db)):
    db_job = models.Job(**job.model_dump())
    db.add(db_job)
    db.commit()
    db.refresh(db_job)
    return db_job

@router.get("/", response_model=List[schemas.Job])
def list_jobs(status: models.JobStatus = None, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    query = db.query(models.Job)
    if status is not None:
        query = query.filter(models.Job.status == status)
    return query.order_by(models.Job.id.desc()).offset(skip).limit(limit).all()

@router.get("/{job_id}", response_model=schemas.Job)
def get_job(job_id: int, db: Session = Depends(get_db)):
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job

@router.patch("/{job_id}", response_model=schemas.Job)
def update_job(job_id: int, update: schemas.JobUpdate, db: Session = Depends(get_db)):
    job = db.query(models.Job).filter(models.Job.id == job_id).first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    changes = update.model_dump(exclude_unset=True)
    if changes.get("tax_rate") is not None and changes["tax_rate"] < 0:
        raise HTTPException(status_code=400, detail="Tax rate cannot be negative")
    for field, value in changes.items():
        setattr(job, field, value)
    db.commit()
    db.refresh(job)
    return job
