from google.cloud import storage
from google.api_core.exceptions import GoogleAPIError
from typing import Dict, Optional
import logging
from lib.error_handler import RemoteServiceError

logger = logging.getLogger(__name__)

PUBLIC_URL_BASE = "https://storage.googleapis.com"

def public_url(bucket_name: str, path: str) -> str:
    return f"{PUBLIC_URL_BASE}/{bucket_name}/{path}"

def ensure_bucket(client: storage.Client, bucket_name: str, location: str = 'US',
                  grant_public_read: bool = True) -> storage.Bucket:
    """Return the bucket, creating it (and granting allUsers read) when absent"""
    try:
        bucket = client.lookup_bucket(bucket_name, retry=None)
        if bucket is not None:
            return bucket

        logger.info(f"Creating bucket: {bucket_name}")
        bucket = client.bucket(bucket_name)
        bucket.storage_class = 'STANDARD'
        bucket.iam_configuration.uniform_bucket_level_access_enabled = True
        bucket = client.create_bucket(bucket, location=location, retry=None)

        if grant_public_read:
            policy = bucket.get_iam_policy(requested_policy_version=3, retry=None)
            policy.bindings.append({
                'role': 'roles/storage.objectViewer',
                'members': {'allUsers'},
            })
            bucket.set_iam_policy(policy, retry=None)
            logger.info(f"Granted public read on bucket {bucket_name}")
        return bucket
    except GoogleAPIError as e:
        raise RemoteServiceError(f"Failed to prepare bucket {bucket_name}: {str(e)}")

def upload_bytes(bucket: storage.Bucket, path: str, data: bytes, content_type: str,
                 metadata: Optional[Dict[str, str]] = None, make_public: bool = True,
                 cache_control: Optional[str] = None) -> str:
    """Write data to path and return its public URL"""
    try:
        blob = bucket.blob(path)
        blob.metadata = metadata or {}
        if cache_control:
            blob.cache_control = cache_control
        blob.upload_from_string(data, content_type=content_type, retry=None)

        # Object ACLs are rejected on uniform bucket-level access; the bucket policy covers it
        if make_public and not bucket.iam_configuration.uniform_bucket_level_access_enabled:
            blob.make_public(retry=None)

        url = public_url(bucket.name, path)
        logger.info(f"Uploaded {len(data)} bytes to gs://{bucket.name}/{path}")
        return url
    except GoogleAPIError as e:
        raise RemoteServiceError(f"Failed to upload gs://{bucket.name}/{path}: {str(e)}")
