from __future__ import annotations
import boto3
from botocore.config import Config
from .config import settings

_s3 = None

def s3_client():
    global _s3
    if _s3 is None:
        _s3 = boto3.client(
            "s3",
            region_name=settings.aws_region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "virtual"},
            ),
        )
    return _s3

def dynamodb_resource():
    return boto3.resource(
        "dynamodb",
        region_name=settings.aws_region,
        config=Config(retries={"max_attempts": 4, "mode": "standard"}),
    )
