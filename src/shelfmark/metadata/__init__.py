# ABOUTME: Metadata package: the record types, provider interface and baseline normalization.
# ABOUTME: Exports BookMetadata, MetadataRecord and the provider contract used throughout shelfmark.

from shelfmark.metadata.normalizer import clean_baseline
from shelfmark.metadata.provider import BaseMetadataProvider, MetadataProvider, MultiCriteriaQuery
from shelfmark.metadata.record import MetadataRecord, SeriesInfo
from shelfmark.metadata.types import (
    BookMetadata,
    MetadataSource,
    MetadataType,
    PublicationDate,
    ReconciledField,
    ReconciliationError,
)

__all__ = [
    "BaseMetadataProvider",
    "BookMetadata",
    "MetadataProvider",
    "MetadataRecord",
    "MetadataSource",
    "MetadataType",
    "MultiCriteriaQuery",
    "PublicationDate",
    "ReconciledField",
    "ReconciliationError",
    "SeriesInfo",
    "clean_baseline",
]
