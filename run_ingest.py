#!/usr/bin/env python3
"""
CLI entry point for the photo ingestion pipeline.

Uploads site photos into a project: extracts EXIF, enriches with weather
and location, stores the file and creates pending photo records. Can also
run the AI analysis stage over pending photos.

Usage:
    python run_ingest.py PROJECT_ID photo1.jpg photo2.jpg --location "4F B區"
    python run_ingest.py PROJECT_ID photos/*.jpg -d "Rebar spacing check" -v
    python run_ingest.py --init-db
    python run_ingest.py --analyze --report ncr --limit 10
"""

import argparse
import logging
import sys
from pathlib import Path

from openai import OpenAI

from config import ConfigurationError, Settings, load_settings
from db.database import (
    create_db_engine,
    create_session_factory,
    init_db,
    verify_connection,
)
from db.models import ReportType
from integrations.geocoding import GoogleGeocodingClient
from integrations.object_storage import LocalObjectStore
from integrations.weather import OpenWeatherClient
from pipeline.ai_analyzer import PhotoAnalyzer
from pipeline.enricher import Enricher
from pipeline.file_validator import InvalidInputError, UploadedFile
from pipeline.processor import BatchUploadError, PhotoIngestor, ProgressCallback
from pipeline.storage_handler import PhotoStorage


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure logging for the pipeline run."""
    level = logging.DEBUG if verbose else logging.INFO

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers
    )


def print_progress(completed: int, total: int, percent: float) -> None:
    """Print progress to console."""
    print(f"[{completed:4d}/{total:4d}] ({percent:5.1f}%)")


def build_ingestor(
    settings: Settings,
    photo_storage: PhotoStorage,
    progress_callback: ProgressCallback | None = None,
) -> PhotoIngestor:
    """
    Wire the ingestion pipeline from settings.

    Raises:
        ConfigurationError: If a provider credential is missing.
    """
    enricher = Enricher(
        weather_client=OpenWeatherClient(
            settings.openweather_api_key,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
        ),
        geocoding_client=GoogleGeocodingClient(
            settings.google_maps_api_key,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
        ),
    )
    return PhotoIngestor(
        object_store=LocalObjectStore(settings.storage_root),
        photo_storage=photo_storage,
        enricher=enricher,
        bucket=settings.photo_bucket,
        max_upload_bytes=settings.max_upload_bytes,
        progress_callback=progress_callback,
    )


def build_analyzer(settings: Settings, photo_storage: PhotoStorage) -> PhotoAnalyzer:
    """Wire the analysis stage from settings."""
    return PhotoAnalyzer(
        client=OpenAI(api_key=settings.openai_api_key),
        photo_storage=photo_storage,
        object_store=LocalObjectStore(settings.storage_root, settings.storage_public_url),
        bucket=settings.photo_bucket,
        model=settings.openai_model,
        report_model=settings.openai_report_model,
    )


def run_upload(
    args: argparse.Namespace,
    settings: Settings,
    photo_storage: PhotoStorage,
) -> int:
    """Upload the given files into a project."""
    ingestor = build_ingestor(
        settings,
        photo_storage,
        progress_callback=print_progress,
    )

    uploads = [UploadedFile.from_path(p) for p in args.files]

    print("Upload Configuration:")
    print(f"  Project: {args.project_id}")
    print(f"  Files: {len(uploads)}")
    print(f"  Location: {args.location or '(none)'}")
    print(f"  Description: {args.description or '(none)'}")
    print()

    try:
        batch = ingestor.ingest_batch(
            uploads,
            project_id=args.project_id,
            location_description=args.location,
            description=args.description,
            uploaded_by=args.uploaded_by,
        )
    except InvalidInputError as e:
        print(f"ERROR: {e}")
        return 1
    except BatchUploadError as e:
        print(f"\nERROR: Upload failed at file {e.index} of {len(uploads)} ({e.filename})")
        print(f"  {e.message}")
        print(f"  {len(e.completed)} file(s) were saved before the failure.")
        return 1

    print("\n" + batch.summary())
    return 0


def run_analysis(
    args: argparse.Namespace,
    settings: Settings,
    photo_storage: PhotoStorage,
) -> int:
    """Analyze pending photos."""
    analyzer = build_analyzer(settings, photo_storage)
    report_type = ReportType(args.report) if args.report else None

    counts = analyzer.process_pending(limit=args.limit, report_type=report_type)
    print(f"\nAnalysis complete: {counts['done']} done, {counts['failed']} failed")

    failed = photo_storage.get_failed()
    if failed:
        print(f"\nFailed photos ({len(failed)}):")
        for photo in failed:
            print(f"  [{photo.id}] {photo.storage_path}: {photo.error_message}")
    return 0 if counts["failed"] == 0 else 1


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Upload site photos: extract EXIF, enrich with weather/location, store records.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  OPENWEATHER_API_KEY, GOOGLE_MAPS_API_KEY   required for uploads
  OPENAI_API_KEY                             required for --analyze
  DATABASE_URL or DB_HOST/DB_NAME/DB_USER/DB_PASSWORD
  STORAGE_ROOT, PHOTO_BUCKET, STORAGE_PUBLIC_URL

Examples:
  python run_ingest.py 42 IMG_0001.jpg IMG_0002.jpg --location "4F B區"
  python run_ingest.py 42 site/*.jpg -d "Formwork before pour" -v
  python run_ingest.py --init-db
  python run_ingest.py --analyze --report par
        """
    )

    parser.add_argument("project_id", nargs="?", help="Project to upload into")
    parser.add_argument("files", nargs="*", type=Path, help="Photo files to upload")

    parser.add_argument(
        "-l", "--location",
        default="",
        help="Location description, e.g. '4F B區'"
    )
    parser.add_argument(
        "-d", "--description",
        default="",
        help="Description for these photos"
    )
    parser.add_argument(
        "--uploaded-by",
        help="Uploader reference stored on each record"
    )

    # Database / analysis modes
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables and exit"
    )
    parser.add_argument(
        "--analyze",
        action="store_true",
        help="Run AI analysis over pending photos"
    )
    parser.add_argument(
        "--report",
        choices=[t.value for t in ReportType],
        help="Report to draft during analysis (ncr or par)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Maximum number of photos to analyze"
    )

    # Output options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug output"
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file"
    )

    args = parser.parse_args()

    if not args.init_db and not args.analyze:
        if not args.project_id or not args.files:
            parser.error("project_id and at least one file are required")

    setup_logging(args.verbose, args.log_file)

    engine = None
    try:
        # Credentials are checked once, before any work starts
        settings = load_settings(
            require_enrichment=not (args.init_db or args.analyze),
            require_analysis=args.analyze,
        )
        engine = create_db_engine()

        print("Verifying database connection...")
        if not verify_connection(engine):
            print("ERROR: Could not connect to database.")
            print("Please check your .env configuration.")
            return 1

        if args.init_db:
            return 0 if init_db(engine) else 1

        photo_storage = PhotoStorage(create_session_factory(engine))

        if args.analyze:
            return run_analysis(args, settings, photo_storage)
        return run_upload(args, settings, photo_storage)

    except ConfigurationError as e:
        print(f"\nCONFIGURATION ERROR: {e}")
        return 2
    except KeyboardInterrupt:
        print("\n\nUpload interrupted by user.")
        return 130
    except Exception as e:
        print(f"\nERROR: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        if engine is not None:
            engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
