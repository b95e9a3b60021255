"""Resolution of stored media references to files on local disk."""

import logging
import os
import posixpath

from ..domain.exceptions import SourceNotFoundError

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http://", "https://", "s3://")
DEFAULT_LEGACY_PREFIXES = ("uploads/", "backend/uploads/")


class PathResolver:
    """Maps possibly stale or relative media references to existing files.

    Candidates are tried in a fixed order:

    1. the reference as given
    2. the upload root joined with the reference's basename
    3. for each legacy prefix, the upload root joined with the reference
       minus that prefix (or the basename when the prefix does not apply)
    """

    def __init__(self, upload_root: str, legacy_prefixes=DEFAULT_LEGACY_PREFIXES):
        self.upload_root = upload_root
        self.legacy_prefixes = tuple(legacy_prefixes)

    @staticmethod
    def is_remote(reference: str) -> bool:
        return reference.lower().startswith(REMOTE_SCHEMES)

    def candidates(self, reference: str) -> list[str]:
        """List every location checked for a reference, in order."""
        normalized = reference.replace("\\", "/")
        filename = posixpath.basename(normalized)

        paths = [
            normalized,
            os.path.join(self.upload_root, filename),
        ]
        for prefix in self.legacy_prefixes:
            if normalized.startswith(prefix):
                paths.append(os.path.join(self.upload_root, normalized[len(prefix) :]))
            else:
                paths.append(os.path.join(self.upload_root, filename))
        return [os.path.normpath(path) for path in paths]

    def resolve(self, reference: str) -> str:
        """Return the first existing candidate path for a stored reference.

        Remote URLs are returned unchanged.

        Raises:
            SourceNotFoundError: If no candidate exists, listing every path tried
        """
        if not reference:
            raise SourceNotFoundError(reference or "<empty>", [])

        if self.is_remote(reference):
            return reference

        tried = self.candidates(reference)
        logger.debug(f"Resolving {reference}, checking paths: {tried}")

        for path in tried:
            if os.path.isfile(path):
                absolute = os.path.abspath(path)
                logger.debug(f"Resolved {reference} to {absolute}")
                return absolute

        logger.error(
            f"Could not resolve {reference}: cwd={os.getcwd()} "
            f"upload_root={self.upload_root} tried={tried} "
            f"upload_root_contents={self._list_upload_root()}"
        )
        raise SourceNotFoundError(reference, tried)

    def _list_upload_root(self) -> list[str] | str:
        try:
            return sorted(os.listdir(self.upload_root))
        except OSError as e:
            return f"<unreadable: {e}>"
