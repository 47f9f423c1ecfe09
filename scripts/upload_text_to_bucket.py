"""Upload local text files to a Cloud Storage bucket.

Usage:
    python scripts/upload_text_to_bucket.py <file-path>... [--bucket NAME] [--destination PATH] [--private]
"""
import argparse
import logging
import sys
import time
from pathlib import Path

from google.cloud import storage

sys.path.append(str(Path(__file__).parent.parent))

from api.config import get_settings
from lib import bucket as bucket_helpers
from lib.error_handler import AppError

logger = logging.getLogger(__name__)

def upload_text_file(client: storage.Client, file_path: Path, bucket_name: str, location: str,
                     destination: str = None, make_public: bool = True) -> dict:
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")

    size = file_path.stat().st_size
    destination = destination or f"text-files/{int(time.time() * 1000)}_{file_path.name}"
    logger.info(f"Uploading {file_path} to gs://{bucket_name}/{destination}")

    target = bucket_helpers.ensure_bucket(client, bucket_name, location=location, grant_public_read=make_public)
    url = bucket_helpers.upload_bytes(
        target,
        destination,
        file_path.read_bytes(),
        'text/plain',
        metadata={
            'originalName': file_path.name,
            'fileSize': str(size),
            'source': 'upload-script',
        },
        make_public=make_public
    )

    return {
        'success': True,
        'fileName': file_path.name,
        'bucketName': bucket_name,
        'destinationPath': destination,
        'publicUrl': url if make_public else None,
        'fileSize': size,
        'isPublic': make_public,
    }

def main(argv=None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Upload text files to a Cloud Storage bucket")
    parser.add_argument('files', nargs='+', type=Path)
    parser.add_argument('--bucket', default=settings.bucket_name)
    parser.add_argument('--destination', help="Object path (single file only)")
    parser.add_argument('--private', action='store_true')
    args = parser.parse_args(argv)

    if args.destination and len(args.files) > 1:
        parser.error("--destination can only be used with a single file")

    client = storage.Client(project=settings.google_cloud_project or None)
    failures = 0
    for file_path in args.files:
        try:
            result = upload_text_file(
                client, file_path, args.bucket, settings.tts_bucket_location,
                destination=args.destination, make_public=not args.private
            )
            print(f"Uploaded {result['fileName']}: {result['publicUrl'] or 'private object'} ({result['fileSize']} bytes)")
        except (AppError, OSError) as e:
            failures += 1
            print(f"Failed to upload {file_path}: {str(e)}")

    print(f"Successful: {len(args.files) - failures}, failed: {failures}")
    return 1 if failures else 0

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
