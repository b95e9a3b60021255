from sqlalchemy.orm import Session

from ..database.models import SourceVideo as SourceVideoEntity
from ..domain.models import SourceVideo
from .interfaces import SourceVideoRepository


class SqlSourceVideoRepository(SourceVideoRepository):
    """SQLAlchemy implementation of SourceVideoRepository."""

    def __init__(self, session: Session):
        self.session = session

    def save(self, video: SourceVideo) -> SourceVideo:
        """Save source video to database."""
        entity = self._to_entity(video)

        existing = (
            self.session.query(SourceVideoEntity)
            .filter(SourceVideoEntity.video_id == video.video_id)
            .first()
        )

        if existing:
            for key, value in entity.__dict__.items():
                if not key.startswith("_") and value is not None:
                    setattr(existing, key, value)
            self.session.commit()
            self.session.refresh(existing)
            return self._to_domain(existing)

        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return self._to_domain(entity)

    def find_by_id(self, video_id: str) -> SourceVideo | None:
        entity = (
            self.session.query(SourceVideoEntity)
            .filter(SourceVideoEntity.video_id == video_id)
            .first()
        )
        return self._to_domain(entity) if entity else None

    def find_by_owner(self, owner_id: str) -> list[SourceVideo]:
        entities = (
            self.session.query(SourceVideoEntity)
            .filter(SourceVideoEntity.owner_id == owner_id)
            .order_by(SourceVideoEntity.created_at)
            .all()
        )
        return [self._to_domain(entity) for entity in entities]

    def _to_entity(self, domain: SourceVideo) -> SourceVideoEntity:
        return SourceVideoEntity(
            video_id=domain.video_id,
            owner_id=domain.owner_id,
            title=domain.title,
            video_url=domain.video_url,
            thumbnail_url=domain.thumbnail_url,
            duration=domain.duration,
            file_size=domain.file_size,
            mime_type=domain.mime_type,
            status=domain.status,
        )

    def _to_domain(self, entity: SourceVideoEntity) -> SourceVideo:
        return SourceVideo(
            video_id=entity.video_id,
            owner_id=entity.owner_id,
            title=entity.title,
            video_url=entity.video_url,
            thumbnail_url=entity.thumbnail_url,
            duration=entity.duration,
            file_size=entity.file_size,
            mime_type=entity.mime_type,
            status=entity.status,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )
