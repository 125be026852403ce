#!/usr/bin/env python3
"""
Verify the media storage configuration: bucket reachable, write and delete
round trip. Falls back to checking the local upload directory when object
storage is not configured.

Run with: python scripts/check_storage.py
"""
import logging
import sys
import uuid

from botocore.exceptions import BotoCoreError, ClientError

from instaplus.core.config import settings
from instaplus.core.storage import MediaStorage

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

def check_storage() -> bool:
    storage = MediaStorage()
    public_id = f"{settings.MEDIA_FOLDER}/healthcheck-{uuid.uuid4().hex}.txt"

    if storage.client:
        if not storage.check_bucket():
            logger.error(f"Bucket '{storage.bucket}' is not reachable with the configured credentials")
            return False
        try:
            storage.client.put_object(
                Bucket=storage.bucket, Key=public_id, Body=b"ok", ContentType="text/plain"
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"Write to bucket failed: {e}")
            return False
    else:
        path = storage.local_path(public_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"ok")

    logger.info(f"Wrote {public_id}, public URL {storage.url_for(public_id)}")
    result = storage.delete(public_id)
    if result != "ok":
        logger.error(f"Delete of {public_id} returned {result!r}")
        return False
    logger.info("Storage round trip succeeded")
    return True

if __name__ == "__main__":
    sys.exit(0 if check_storage() else 1)
