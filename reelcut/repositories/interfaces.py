from abc import ABC, abstractmethod

from ..domain.models import FinalAsset, SourceVideo


class SourceVideoRepository(ABC):
    """Abstract repository interface for SourceVideo persistence."""

    @abstractmethod
    def save(self, video: SourceVideo) -> SourceVideo:
        """Save source video to persistence layer."""
        pass

    @abstractmethod
    def find_by_id(self, video_id: str) -> SourceVideo | None:
        """Find source video by ID."""
        pass

    @abstractmethod
    def find_by_owner(self, owner_id: str) -> list[SourceVideo]:
        """Find all source videos uploaded by an owner."""
        pass


class FinalAssetRepository(ABC):
    """Abstract repository interface for FinalAsset persistence.

    Assets are write-once: there is no update or delete operation.
    """

    @abstractmethod
    def create(self, asset: FinalAsset) -> FinalAsset:
        """Persist a new asset.

        Raises:
            ValueError: If an asset already exists for the asset's job ID
        """
        pass

    @abstractmethod
    def find_by_id(self, asset_id: str) -> FinalAsset | None:
        """Find asset by ID."""
        pass

    @abstractmethod
    def find_by_job_id(self, job_id: str) -> FinalAsset | None:
        """Find the asset produced by a merge job."""
        pass

    @abstractmethod
    def find_by_owner(self, owner_id: str) -> list[FinalAsset]:
        """Find all assets of an owner, newest first."""
        pass
