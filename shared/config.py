from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass(frozen=True)
class Settings:
    aws_region: str = os.getenv("AWS_REGION", "ap-south-1")
    stage: str = os.getenv("STAGE", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # DynamoDB
    ddb_products: str = os.getenv("DDB_TABLE_PRODUCTS", "trend_products_dev")
    ddb_variants: str = os.getenv("DDB_TABLE_VARIANTS", "trend_product_variants_dev")
    ddb_collections: str = os.getenv("DDB_TABLE_COLLECTIONS", "trend_collections_dev")
    ddb_collection_products: str = os.getenv("DDB_TABLE_COLLECTION_PRODUCTS", "trend_collection_products_dev")
    ddb_likes: str = os.getenv("DDB_TABLE_LIKES", "trend_product_likes_dev")
    ddb_comments: str = os.getenv("DDB_TABLE_COMMENTS", "trend_comments_dev")
    ddb_blocked: str = os.getenv("DDB_TABLE_BLOCKED", "trend_blocked_users_dev")
    ddb_users: str = os.getenv("DDB_TABLE_USERS", "trend_users_dev")
    ddb_tryon_tasks: str = os.getenv("DDB_TABLE_TRYON_TASKS", "trend_tryon_tasks_dev")
    ddb_tryon_results: str = os.getenv("DDB_TABLE_TRYON_RESULTS", "trend_tryon_results_dev")

    # S3
    s3_bucket_uploads: str = os.getenv("S3_BUCKET_UPLOADS", "trend-uploads-dev")
    s3_presign_expires: int = int(os.getenv("S3_PRESIGN_EXPIRES", "3600"))

    # Try-on provider
    tryon_api_base: str = os.getenv("TRYON_API_BASE", "https://api.piapi.ai")
    tryon_api_key: str = os.getenv("TRYON_API_KEY", "")
    tryon_model: str = os.getenv("TRYON_MODEL", "Qubico/image-toolkit")
    tryon_task_type: str = os.getenv("TRYON_TASK_TYPE", "face-swap")
    tryon_request_timeout: float = float(os.getenv("TRYON_REQUEST_TIMEOUT", "20"))
    tryon_poll_interval: float = float(os.getenv("TRYON_POLL_INTERVAL", "5"))
    tryon_max_attempts: int = int(os.getenv("TRYON_MAX_ATTEMPTS", "60"))
    tryon_cost_coins: int = int(os.getenv("TRYON_COST_COINS", "25"))

    # Feed
    feed_window: int = int(os.getenv("FEED_WINDOW", "1"))
    double_tap_window: float = float(os.getenv("DOUBLE_TAP_WINDOW", "0.3"))
    heart_duration: float = float(os.getenv("HEART_DURATION", "1.0"))
    comments_poll_interval: float = float(os.getenv("COMMENTS_POLL_INTERVAL", "10"))

    # API
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

settings = Settings()
