import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..api.schemas import FinalAssetResponseSchema
from ..api.serializers import asset_to_schema
from ..database.connection import get_db
from ..repositories.final_asset_repository import SqlFinalAssetRepository
from ..repositories.interfaces import FinalAssetRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assets", tags=["assets"])


def get_asset_repository(session: Session = Depends(get_db)) -> FinalAssetRepository:
    """Dependency injection for FinalAssetRepository."""
    return SqlFinalAssetRepository(session)


@router.get("/{asset_id}", response_model=FinalAssetResponseSchema)
async def get_asset(
    asset_id: str, repository: FinalAssetRepository = Depends(get_asset_repository)
) -> FinalAssetResponseSchema:
    """Get a merged video by ID."""
    asset = repository.find_by_id(asset_id)
    if not asset:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Asset not found"
        )
    return asset_to_schema(asset)


@router.get("/", response_model=list[FinalAssetResponseSchema])
async def list_assets(
    user_id: str = Query(..., alias="userId", description="Owner of the assets"),
    repository: FinalAssetRepository = Depends(get_asset_repository),
) -> list[FinalAssetResponseSchema]:
    """List an owner's merged videos, newest first."""
    return [asset_to_schema(asset) for asset in repository.find_by_owner(user_id)]
