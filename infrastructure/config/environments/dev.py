"""Development environment configuration."""

import os

dev_config = {
    "environment": "dev",
    "branch_name": "develop",
    "account_number": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": "ap-northeast-2",
    "removal_policy": "destroy",
    "vpc": {
        "id": "vpc-0a1b2c3d4e5f60001",
        "cidr": "10.10.0.0/16",
        "private_subnet_ids": [
            "subnet-0a1b2c3d4e5f60011",
            "subnet-0a1b2c3d4e5f60012",
        ],
    },
    "databases": [
        {
            "db_name": "orders-aurora-dev",
            "s3_bucket_name": "orders-snapshot-exports-dev",
        },
    ],
    "tags": {
        "Environment": "dev",
        "CostCenter": "Engineering",
    },
}
