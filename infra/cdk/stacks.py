from __future__ import annotations
from aws_cdk import (
    Stack, CfnOutput, RemovalPolicy,
    aws_s3 as s3, aws_dynamodb as ddb,
    aws_iam as iam, aws_kms as kms,
)
from constructs import Construct

def _table(scope: Construct, _id: str, pk: str, sk: str | None = None, pitr: bool = False) -> ddb.Table:
    return ddb.Table(scope, _id,
        partition_key=ddb.Attribute(name=pk, type=ddb.AttributeType.STRING),
        sort_key=ddb.Attribute(name=sk, type=ddb.AttributeType.STRING) if sk else None,
        billing_mode=ddb.BillingMode.PAY_PER_REQUEST,
        point_in_time_recovery=pitr,
        removal_policy=RemovalPolicy.RETAIN)


class FeedStack(Stack):
    def __init__(self, scope: Construct, _id: str, stage: str = "dev", **kwargs):
        super().__init__(scope, _id, **kwargs)

        key = kms.Key(self, "FeedMainKey", enable_key_rotation=True)

        # user photos; the try-on provider reads them through presigned urls
        uploads = s3.Bucket(self, "Uploads",
            encryption=s3.BucketEncryption.KMS, encryption_key=key,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL, enforce_ssl=True,
            versioned=True, auto_delete_objects=False)

        tables = {
            "DDB_TABLE_PRODUCTS": _table(self, "Products", "product_id", pitr=True),
            "DDB_TABLE_VARIANTS": _table(self, "ProductVariants", "variant_id", pitr=True),
            "DDB_TABLE_COLLECTIONS": _table(self, "Collections", "collection_id", pitr=True),
            "DDB_TABLE_COLLECTION_PRODUCTS": _table(self, "CollectionProducts", "collection_id", "product_id", pitr=True),
            "DDB_TABLE_LIKES": _table(self, "ProductLikes", "user_id", "product_id"),
            "DDB_TABLE_COMMENTS": _table(self, "Comments", "product_id", "comment_id"),
            "DDB_TABLE_BLOCKED": _table(self, "BlockedUsers", "user_id", "blocked_user_id"),
            "DDB_TABLE_USERS": _table(self, "Users", "user_id", pitr=True),
            "DDB_TABLE_TRYON_TASKS": _table(self, "TryOnTasks", "task_id"),
            "DDB_TABLE_TRYON_RESULTS": _table(self, "TryOnResults", "user_id", "product_id"),
        }

        # the api process runs under this policy
        iam.ManagedPolicy(self, "FeedApiPolicy",
            statements=[
                iam.PolicyStatement(actions=[
                    "dynamodb:GetItem", "dynamodb:PutItem", "dynamodb:UpdateItem", "dynamodb:DeleteItem",
                    "dynamodb:Query", "dynamodb:Scan",
                ], resources=[t.table_arn for t in tables.values()]),
                iam.PolicyStatement(actions=["s3:GetObject", "s3:PutObject"], resources=[f"{uploads.bucket_arn}/*"]),
                iam.PolicyStatement(actions=[
                    "kms:Encrypt", "kms:Decrypt", "kms:GenerateDataKey", "kms:DescribeKey"
                ], resources=[key.key_arn]),
            ])

        for env_name, table in tables.items():
            CfnOutput(self, env_name.replace("_", ""), value=table.table_name, description=env_name)
        CfnOutput(self, "S3BUCKETUPLOADS", value=uploads.bucket_name, description="S3_BUCKET_UPLOADS")
        CfnOutput(self, "Stage", value=stage)
