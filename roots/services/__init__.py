"""
Services for the Roots archive.

High-level services:
- FamilyArchive: Unified interface for graph commands and provenance
- ArchiveService: Push, anchor and change log orchestration
- IntegrityVerifier: Content hash and receipt ordering checks
"""

from roots.services.archive_service import ArchiveService
from roots.services.family_archive import FamilyArchive
from roots.services.integrity_verifier import IntegrityVerifier

__all__ = [
    "FamilyArchive",
    "ArchiveService",
    "IntegrityVerifier",
]
