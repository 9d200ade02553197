from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from .. import models, schemas
from ..cut_sheet import generate_cut_sheet
from ..database import get_db
from ..shop_service import generate_shop, update_shop_status

router = APIRouter(prefix="/shops", tags=["shops"])


@router.post("/cut-sheet", response_model=List[schemas.CutSheetItem])
def cut_sheet(request: schemas.CutSheetRequest, db: Session = Depends(get_db)):
    """Cut list for specific configurations, without creating a shop run."""
    return generate_cut_sheet(db, request.configuration_ids)


@router.post("/", response_model=schemas.Shop)
def create_shop(request: schemas.ShopCreate, db: Session = Depends(get_db)):
    return generate_shop(db, request.job_ids)


@router.get("/", response_model=List[schemas.Shop])
def list_shops(skip: int = 0, limit: int = 50, db: Session = Depends(get_db)):
    return db.query(models.Shop).order_by(models.Shop.generated_date.desc()).offset(skip).limit(limit).all()


@router.get("/{shop_id}", response_model=schemas.Shop)
def get_shop(shop_id: int, db: Session = Depends(get_db)):
    shop = db.query(models.Shop).filter(models.Shop.id == shop_id).first()
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    return shop


@router.patch("/{shop_id}/status", response_model=schemas.Shop)
def set_shop_status(shop_id: int, update: schemas.ShopStatusUpdate, db: Session = Depends(get_db)):
    shop = db.query(models.Shop).filter(models.Shop.id == shop_id).first()
    if not shop:
        raise HTTPException(status_code=404, detail="Shop not found")
    return update_shop_status(db, shop, update.status)
