from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import crud
from dependencies import get_db
from filter_helpers import (
    blank_to_none,
    normalize_asset_status,
    normalize_limit,
    normalize_offset,
    normalize_order,
    normalize_sort,
)
from models import Asset, AssetIn, AssetUpdate, AssetsMeta, AssetStats

router = APIRouter()


@router.get("/assets", response_model=list[Asset])
def list_assets_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    department: Optional[str] = None,
    sort: str = "serial_number",
    order: str = "asc",
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    return crud.list_assets_filtered(
        db,
        q=blank_to_none(q),
        status=normalize_asset_status(status),
        department=blank_to_none(department),
        sort=normalize_sort(sort),
        order=normalize_order(order),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )


@router.get("/assets/meta", response_model=AssetsMeta)
def assets_meta_api(
    q: Optional[str] = None,
    status: Optional[str] = None,
    department: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    meta = crud.assets_meta(
        db,
        q=blank_to_none(q),
        status=normalize_asset_status(status),
        department=blank_to_none(department),
        limit=normalize_limit(limit),
        offset=normalize_offset(offset),
    )
    return AssetsMeta(**meta)


@router.get("/assets/stats", response_model=AssetStats)
def assets_stats_api(db: Session = Depends(get_db)):
    return AssetStats(**crud.asset_stats(db))


@router.post("/assets", response_model=Asset, status_code=201)
def create_asset_api(
    body: AssetIn,
    db: Session = Depends(get_db),
):
    if not body.serial_number.strip() or not body.name.strip():
        raise HTTPException(status_code=400, detail="serial_number and name are required")
    if crud.serial_number_exists(db, body.serial_number.strip()):
        raise HTTPException(status_code=409, detail="serial_number already exists")
    return crud.create_asset(db, body)


@router.get("/assets/{asset_id}", response_model=Asset)
def get_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
):
    asset = crud.get_asset(db, asset_id)
    if not asset:
        raise HTTPException(status_code=404, detail="asset not found")
    return asset


@router.patch("/assets/{asset_id}", response_model=Asset)
def update_asset_api(
    asset_id: int,
    body: AssetUpdate,
    db: Session = Depends(get_db),
):
    updated = crud.update_asset(db, asset_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="asset not found")
    return updated


@router.delete("/assets/{asset_id}", status_code=204)
def delete_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
):
    ok = crud.delete_asset(db, asset_id)
    if not ok:
        raise HTTPException(status_code=404, detail="asset not found")
    return None
