import logging

from sqlalchemy.orm import Session

from ..database.models import FinalAsset as FinalAssetEntity
from ..domain.models import FinalAsset, MergeStats, SourceClip
from .interfaces import FinalAssetRepository

logger = logging.getLogger(__name__)


class SqlFinalAssetRepository(FinalAssetRepository):
    """SQLAlchemy implementation of FinalAssetRepository."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, asset: FinalAsset) -> FinalAsset:
        """Insert a new asset row."""
        existing = (
            self.session.query(FinalAssetEntity)
            .filter(FinalAssetEntity.job_id == asset.job_id)
            .first()
        )
        if existing:
            raise ValueError(f"Asset already recorded for merge job {asset.job_id}")

        entity = self._to_entity(asset)
        self.session.add(entity)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(entity)
        logger.info(f"Recorded asset {asset.asset_id} for job {asset.job_id}")
        return self._to_domain(entity)

    def find_by_id(self, asset_id: str) -> FinalAsset | None:
        entity = (
            self.session.query(FinalAssetEntity)
            .filter(FinalAssetEntity.asset_id == asset_id)
            .first()
        )
        return self._to_domain(entity) if entity else None

    def find_by_job_id(self, job_id: str) -> FinalAsset | None:
        entity = (
            self.session.query(FinalAssetEntity)
            .filter(FinalAssetEntity.job_id == job_id)
            .first()
        )
        return self._to_domain(entity) if entity else None

    def find_by_owner(self, owner_id: str) -> list[FinalAsset]:
        entities = (
            self.session.query(FinalAssetEntity)
            .filter(FinalAssetEntity.owner_id == owner_id)
            .order_by(FinalAssetEntity.created_at.desc())
            .all()
        )
        return [self._to_domain(entity) for entity in entities]

    def _to_entity(self, domain: FinalAsset) -> FinalAssetEntity:
        """Convert domain model to SQLAlchemy entity."""
        return FinalAssetEntity(
            asset_id=domain.asset_id,
            job_id=domain.job_id,
            owner_id=domain.owner_id,
            owner_email=domain.owner_email,
            owner_name=domain.owner_name,
            title=domain.title,
            description=domain.description,
            storage_url=domain.storage_url,
            thumbnail_url=domain.thumbnail_url,
            duration_seconds=domain.duration_seconds,
            source_clips=[clip.to_dict() for clip in domain.source_clips],
            stats=domain.stats.to_dict(),
        )

    def _to_domain(self, entity: FinalAssetEntity) -> FinalAsset:
        """Convert SQLAlchemy entity to domain model."""
        return FinalAsset(
            asset_id=entity.asset_id,
            job_id=entity.job_id,
            owner_id=entity.owner_id,
            storage_url=entity.storage_url,
            thumbnail_url=entity.thumbnail_url,
            duration_seconds=entity.duration_seconds,
            source_clips=[SourceClip.from_dict(item) for item in entity.source_clips],
            stats=MergeStats.from_dict(entity.stats),
            title=entity.title,
            description=entity.description,
            owner_email=entity.owner_email,
            owner_name=entity.owner_name,
            created_at=entity.created_at,
        )
