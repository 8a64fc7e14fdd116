#!/usr/bin/env python3
"""
RDS Snapshot Export CDK App
One export pipeline stack per managed database, selected by git branch or environment.
"""

import os
import sys

import aws_cdk as cdk

from infrastructure.config.context import selection_key_from
from infrastructure.config.environments import get_environment_config
from infrastructure.config.errors import ConfigurationError, ContextResolutionError
from infrastructure.core.logging_utils import get_logger
from infrastructure.snapshot_export.events import DEFAULT_EVENT_BINDINGS
from infrastructure.snapshot_export.topology import derive_all
from infrastructure.stacks.rds_snapshot_export_stack import RdsSnapshotExportStack

logger = get_logger("snapshot_export.app")

# CDK_OUTDIR is read here as well so in-process runs honor it
app = cdk.App(outdir=os.environ.get("CDK_OUTDIR"))

# Resolve context: -c branch=<name> / -c environment=<name>, else the current git branch
selection_key = selection_key_from(
    branch=app.node.try_get_context("branch"),
    environment=app.node.try_get_context("environment"),
)
try:
    context = get_environment_config(selection_key)
except (ContextResolutionError, ConfigurationError) as exc:
    logger.error("Failed to resolve deployment context", extra={"selection_key": selection_key, "error": str(exc)})
    raise

logger.info(
    "Resolved deployment context",
    extra={
        "selection_key": selection_key,
        "environment": context.environment,
        "databases": [db.db_name for db in context.databases],
    },
)

cdk_env = cdk.Environment(account=context.account_number, region=context.region)

# ========================================
# SNAPSHOT EXPORT PIPELINES
# ========================================

topologies, failures = derive_all(context, DEFAULT_EVENT_BINDINGS)

for topology in topologies:
    stack = RdsSnapshotExportStack(
        app,
        topology.stack_name,
        stack_name=topology.stack_name,
        context=context,
        topology=topology,
        description="Aurora data retention stack",
        env=cdk_env,
    )
    cdk.Tags.of(stack).add("Database", topology.db_name)

# ========================================
# TAGGING STRATEGY
# ========================================

cdk.Tags.of(app).add("Environment", context.environment)
cdk.Tags.of(app).add("Application", context.app_name)
cdk.Tags.of(app).add("ManagedBy", "CDK")
for key, value in context.tags.items():
    cdk.Tags.of(app).add(key, value)

# Skipped databases fail the run unless -c allow_partial=true
allow_partial = str(app.node.try_get_context("allow_partial") or "").strip().lower() in ("1", "true", "yes")

app.synth()

if failures:
    for failure in failures:
        logger.error("Database skipped", extra={"database": failure.database, "error": str(failure)})
    if not allow_partial:
        sys.exit(1)
    logger.warning(
        "Synthesized without skipped databases",
        extra={"skipped": [failure.database for failure in failures], "stacks": [t.stack_name for t in topologies]},
    )
