"""
Roots - a tamper-evident family history archive.

Persons, relationships and memories live in a family graph; every
committed version is snapshotted into a content-addressed store and
anchored on a ledger so later reads can prove the data is unchanged.
"""

from roots.config import Config
from roots.services import ArchiveService, FamilyArchive, IntegrityVerifier

__version__ = "0.1.0"

__all__ = [
    "Config",
    "FamilyArchive",
    "ArchiveService",
    "IntegrityVerifier",
]
