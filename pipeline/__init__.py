"""
Photo ingestion pipeline for Site Inspector.

This module provides the pipeline that turns an uploaded site photo into
an annotated record:
- Validating uploads
- Extracting EXIF metadata and GPS coordinates
- Enriching with weather and reverse-geocoded location
- Parsing floor/zone hints from the location description
- Storing the file and the photo record
- Analyzing stored photos and drafting NCR/PAR reports
"""

from pipeline.coordinates import DecimalCoordinate, dms_to_decimal
from pipeline.file_validator import InvalidInputError, UploadedFile, validate_upload
from pipeline.location_parser import LocationHint, parse_location_description
from pipeline.metadata_extractor import MetadataExtractor, NormalizedExif, extract_exif
from pipeline.enricher import Enricher, Enrichment
from pipeline.storage_handler import PersistenceError, PhotoRecord, PhotoStorage
from pipeline.processor import BatchResult, BatchUploadError, PhotoIngestor
from pipeline.ai_analyzer import AnalysisError, PhotoAnalyzer

__all__ = [
    "DecimalCoordinate",
    "dms_to_decimal",
    "InvalidInputError",
    "UploadedFile",
    "validate_upload",
    "LocationHint",
    "parse_location_description",
    "MetadataExtractor",
    "NormalizedExif",
    "extract_exif",
    "Enricher",
    "Enrichment",
    "PersistenceError",
    "PhotoRecord",
    "PhotoStorage",
    "BatchResult",
    "BatchUploadError",
    "PhotoIngestor",
    "AnalysisError",
    "PhotoAnalyzer",
]
