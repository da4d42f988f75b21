# routers/portfolio_routes.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.holding import HoldingOut
from schemas.holding import IngestResult, SnapshotRequest
from schemas.portfolio import ClassifiedPortfolio
from schemas.taxonomy import AssetClassDef, SubAssetClassDef
from services.errors import AccountNotFoundError
from services.holdings.ingest import ingest_account_snapshot
from services.portfolio.portfolio_service import get_account_holdings, get_classified_portfolio
from services.portfolio.taxonomy import get_default_taxonomy

# matched route templates, as logged per request, include the prefix
router = APIRouter(prefix="/api")


@router.get("/portfolio/taxonomy", response_model=List[AssetClassDef])
def asset_classes():
    return get_default_taxonomy().ordered_asset_classes()


@router.get("/portfolio/taxonomy/{asset_class_id}/sub-classes", response_model=List[SubAssetClassDef])
def sub_asset_classes(asset_class_id: str):
    tx = get_default_taxonomy()
    try:
        tx.asset_class(asset_class_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Asset class not found")
    return tx.sub_classes_for(asset_class_id)


@router.get("/portfolio/{user_id}", response_model=ClassifiedPortfolio)
def classified_portfolio(user_id: str, db: Session = Depends(get_db)):
    return get_classified_portfolio(db, user_id)


@router.get("/accounts/{account_id}/holdings", response_model=List[HoldingOut])
def account_holdings(
    account_id: str,
    include_closed: bool = Query(False),
    db: Session = Depends(get_db),
):
    try:
        return get_account_holdings(db, account_id, include_closed=include_closed)
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")


@router.post("/accounts/{account_id}/snapshot", response_model=IngestResult)
def ingest_snapshot(
    account_id: str,
    body: SnapshotRequest,
    db: Session = Depends(get_db),
):
    try:
        return ingest_account_snapshot(
            db,
            body.user_id,
            account_id,
            body.positions,
            body.provenance,
            balance=body.balance,
            trust_external_total=body.trust_external_total,
        )
    except AccountNotFoundError:
        raise HTTPException(status_code=404, detail="Account not found")
