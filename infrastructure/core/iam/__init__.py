"""IAM helper constructs and utilities for the snapshot export pipeline."""

from . import utils  # noqa: F401
from .snapshot_export_roles import CrawlerRoleConstruct, ExporterFunctionRoleConstruct, ExportTaskRoleConstruct

__all__ = ["utils", "ExportTaskRoleConstruct", "ExporterFunctionRoleConstruct", "CrawlerRoleConstruct"]
