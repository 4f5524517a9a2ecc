"""Pick the best runtime for a request from local and remote candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar, Union

from .models import LocalRuntime, ProvisionRequest, RemoteRuntimeDescriptor, Vendor
from .version import VersionSpec

logger = logging.getLogger(__name__)

Candidate = TypeVar("Candidate", LocalRuntime, RemoteRuntimeDescriptor)


@dataclass(frozen=True)
class UseLocal:
    runtime: LocalRuntime


@dataclass(frozen=True)
class DownloadRemote:
    """Install *descriptor*; *supersedes* is the local runtime it updates, if any."""

    descriptor: RemoteRuntimeDescriptor
    supersedes: Optional[LocalRuntime] = None


@dataclass(frozen=True)
class NoMatch:
    pass


Selection = Union[UseLocal, DownloadRemote, NoMatch]


class Matcher:
    """Filter and rank candidates.

    Candidates must run on the requested platform, come from a compatible
    vendor and satisfy both the requested constraint and the supported
    version range. Survivors are ranked by how precisely they hit the
    constraint, then by version (newest first), then by whether the vendor
    was named explicitly. Equal candidates keep their input order.
    """

    def __init__(self, supported_range: Optional[VersionSpec] = None):
        self.supported_range = supported_range or VersionSpec.any()

    def select(
        self,
        request: ProvisionRequest,
        local_candidates: Sequence[LocalRuntime],
        remote_candidates: Sequence[RemoteRuntimeDescriptor] = (),
    ) -> Selection:
        ranked_local = self.rank(request, local_candidates)

        if ranked_local:
            if request.allow_auto_download:
                update = self._find_update(request, ranked_local, remote_candidates)
                if update is not None:
                    return update
            return UseLocal(ranked_local[0])

        best_remote = self.best(request, remote_candidates)
        if best_remote is not None:
            return DownloadRemote(best_remote)

        logger.debug("No candidate matches %s", request.describe())
        return NoMatch()

    def _find_update(
        self,
        request: ProvisionRequest,
        ranked_local: list[LocalRuntime],
        remote_candidates: Sequence[RemoteRuntimeDescriptor],
    ) -> Optional[DownloadRemote]:
        """Offer the newest remote runtime that is not installed and beats every local match."""
        newest_local = max(ranked_local, key=lambda runtime: runtime.version)
        installed = {runtime.key for runtime in ranked_local}
        fresh = [c for c in self.rank(request, remote_candidates) if c.key not in installed]
        if not fresh:
            return None
        # max() keeps the first of equal versions, i.e. the better ranked one
        newest_remote = max(fresh, key=lambda descriptor: descriptor.version)
        if newest_remote.version <= newest_local.version:
            return None
        logger.debug("Update available: %s supersedes %s", newest_remote.key, newest_local.key)
        return DownloadRemote(newest_remote, supersedes=newest_local)

    def best(self, request: ProvisionRequest, candidates: Sequence[Candidate]) -> Optional[Candidate]:
        ranked = self.rank(request, candidates)
        return ranked[0] if ranked else None

    def rank(self, request: ProvisionRequest, candidates: Sequence[Candidate]) -> list[Candidate]:
        """Return the acceptable candidates, best first."""
        accepted = [c for c in candidates if self.accepts(request, c)]
        spec = request.version_spec

        def sort_key(candidate: Candidate):
            return (
                spec.match_specificity(candidate.version),
                candidate.version,
                _vendor_rank(request.vendor, candidate.vendor),
            )

        # sorted() is stable, so equal keys keep declaration order
        return sorted(accepted, key=sort_key, reverse=True)

    def accepts(self, request: ProvisionRequest, candidate: Union[LocalRuntime, RemoteRuntimeDescriptor]) -> bool:
        return (
            candidate.platform == request.platform
            and request.vendor.matches(candidate.vendor)
            and request.version_spec.matches(candidate.version)
            and self.supported_range.matches(candidate.version)
        )


def _vendor_rank(requested: Vendor, candidate: Vendor) -> int:
    if requested.is_any or candidate.is_any:
        return 0
    return 1
