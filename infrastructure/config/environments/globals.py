"""Settings shared by every environment; environment entries override them."""

global_config = {
    "app_name": "rds-snapshot-exports",
    "lambda_memory": 128,
    "lambda_timeout": 30,
    "log_level": "INFO",
    "database_port": 5432,
    "exporter_asset_path": "assets/exporter",
    "tags": {
        "Project": "AuroraDataRetention",
        "Owner": "DataPlatform",
    },
}
