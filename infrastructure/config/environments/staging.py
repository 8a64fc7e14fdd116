"""Staging environment configuration."""

import os

staging_config = {
    "environment": "staging",
    "branch_name": "staging",
    "account_number": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": "ap-northeast-2",
    "removal_policy": "retain",
    "vpc": {
        "id": "vpc-0a1b2c3d4e5f60002",
        "cidr": "10.20.0.0/16",
        "private_subnet_ids": [
            "subnet-0a1b2c3d4e5f60021",
            "subnet-0a1b2c3d4e5f60022",
        ],
    },
    "databases": [
        {
            "db_name": "orders-aurora-staging",
            "s3_bucket_name": "orders-snapshot-exports-staging",
        },
    ],
    "tags": {
        "Environment": "staging",
        "CostCenter": "Engineering",
    },
}
