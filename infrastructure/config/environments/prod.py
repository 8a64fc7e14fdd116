"""Production environment configuration."""

import os

prod_config = {
    "environment": "prod",
    "branch_name": "main",
    "account_number": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": "ap-northeast-2",
    "lambda_timeout": 60,
    "removal_policy": "retain",
    "vpc": {
        "id": "vpc-0a1b2c3d4e5f60003",
        "cidr": "10.30.0.0/16",
        "private_subnet_ids": [
            "subnet-0a1b2c3d4e5f60031",
            "subnet-0a1b2c3d4e5f60032",
            "subnet-0a1b2c3d4e5f60033",
        ],
    },
    "databases": [
        {
            "db_name": "orders-aurora-prod",
            "s3_bucket_name": "orders-snapshot-exports-prod",
        },
        {
            # Instance snapshots are copied into the backup vault before export.
            "db_name": "billing-postgres-prod",
            "s3_bucket_name": "billing-snapshot-exports-prod",
            "rds_events": [
                {"rds_event_id": "RDS-EVENT-0091", "rds_snapshot_type": "AUTOMATED"},
                {"rds_event_id": "RDS-EVENT-0197", "rds_snapshot_type": "BACKUP"},
            ],
        },
    ],
    "tags": {
        "Environment": "prod",
        "CostCenter": "Engineering",
    },
}
