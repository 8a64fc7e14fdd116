#!/usr/bin/env python3
"""Verify deployed snapshot export pipelines against their derived topology.

Steps
-----
1. Resolve the context for the target environment and derive every database topology.
2. Check the export bucket carries the storage tiering rule.
3. Check the SNS topic exists and the expected RDS event subscriptions point at it.
4. Check the exporter function's event lists match the configured bindings.
5. Check the Glue crawler targets the export bucket and the sanitized catalog database,
   then emit a machine-readable summary for the workflow.
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from infrastructure.config.environments import get_environment_config
from infrastructure.snapshot_export.events import DEFAULT_EVENT_BINDINGS
from infrastructure.snapshot_export.topology import ResourceTopology, derive_all

_EVENT_LIST_KEYS = ("RDS_EVENT_IDS", "RDS_SNAPSHOT_TYPES", "DB_SNAPSHOT_TYPES")


class CheckFailed(Exception):
    """A deployed resource does not match its derived definition."""


@dataclass
class CheckResult:
    database: str
    check: str
    ok: bool
    detail: str = ""


@dataclass
class AwsClients:
    s3: Any
    sns: Any
    rds: Any
    lambda_: Any
    glue: Any

    @classmethod
    def from_session(cls, session: boto3.session.Session) -> "AwsClients":
        return cls(
            s3=session.client("s3"),
            sns=session.client("sns"),
            rds=session.client("rds"),
            lambda_=session.client("lambda"),
            glue=session.client("glue"),
        )


def _run_check(database: str, name: str, check: Callable[[], str]) -> CheckResult:
    try:
        detail = check()
    except (ClientError, BotoCoreError) as exc:
        return CheckResult(database, name, False, f"AWS error: {exc}")
    except CheckFailed as exc:
        return CheckResult(database, name, False, str(exc))
    return CheckResult(database, name, True, detail)


def check_bucket_lifecycle(s3_client, topology: ResourceTopology) -> str:
    bucket = topology.bucket.bucket_name
    expected = topology.bucket.lifecycle
    resp = s3_client.get_bucket_lifecycle_configuration(Bucket=bucket)
    for rule in resp.get("Rules", []):
        if rule.get("Status") != "Enabled":
            continue
        transitions = {(t.get("StorageClass"), t.get("Days")) for t in rule.get("Transitions", [])}
        wanted = {(t.storage_class.value, t.after_days) for t in expected.transitions}
        if wanted <= transitions and rule.get("Expiration", {}).get("Days") == expected.expiration_days:
            return f"s3://{bucket} tiering rule present"
    raise CheckFailed(f"s3://{bucket} has no enabled rule matching the export tiering policy")


def find_topic_arn(sns_client, topic_name: str) -> Optional[str]:
    paginator = sns_client.get_paginator("list_topics")
    for page in paginator.paginate():
        for topic in page.get("Topics", []):
            arn = topic.get("TopicArn", "")
            if arn.rsplit(":", 1)[-1] == topic_name:
                return arn
    return None


def check_event_subscriptions(sns_client, rds_client, topology: ResourceTopology) -> str:
    topic_arn = find_topic_arn(sns_client, topology.topic.topic_name)
    if not topic_arn:
        raise CheckFailed(f"SNS topic {topology.topic.topic_name} not found")

    paginator = rds_client.get_paginator("describe_event_subscriptions")
    deployed = {
        (sub.get("SourceType"), tuple(sorted(sub.get("EventCategoriesList", []))))
        for page in paginator.paginate()
        for sub in page.get("EventSubscriptionsList", [])
        if sub.get("SnsTopicArn") == topic_arn and sub.get("Enabled", True)
    }
    missing = [
        spec.scope.name
        for spec in topology.subscriptions
        if (spec.source_type, tuple(sorted(spec.event_categories))) not in deployed
    ]
    if missing:
        raise CheckFailed(f"Missing RDS event subscriptions: {', '.join(missing)}")
    return f"{len(topology.subscriptions)} subscription(s) on {topic_arn}"


def check_exporter_environment(lambda_client, topology: ResourceTopology) -> str:
    name = topology.function.function_name
    resp = lambda_client.get_function_configuration(FunctionName=name)
    variables = resp.get("Environment", {}).get("Variables", {})
    mismatched = [key for key in _EVENT_LIST_KEYS if variables.get(key) != topology.function.environment[key]]
    if mismatched:
        raise CheckFailed(f"{name} environment differs for: {', '.join(mismatched)}")
    return f"{name} event bindings match"


def check_crawler(glue_client, topology: ResourceTopology) -> str:
    spec = topology.crawler
    crawler = glue_client.get_crawler(Name=spec.crawler_name)["Crawler"]
    if crawler.get("DatabaseName") != spec.database_name:
        raise CheckFailed(
            f"{spec.crawler_name} writes to {crawler.get('DatabaseName')}, expected {spec.database_name}"
        )
    paths = [t.get("Path") for t in crawler.get("Targets", {}).get("S3Targets", [])]
    if spec.s3_target_path not in paths:
        raise CheckFailed(f"{spec.crawler_name} does not target {spec.s3_target_path}")
    return f"{spec.crawler_name} -> {spec.database_name}"


def validate_topology(clients: AwsClients, topology: ResourceTopology) -> List[CheckResult]:
    """Run every deployment check for one database."""
    db = topology.db_name
    return [
        _run_check(db, "bucket_lifecycle", lambda: check_bucket_lifecycle(clients.s3, topology)),
        _run_check(db, "event_subscriptions", lambda: check_event_subscriptions(clients.sns, clients.rds, topology)),
        _run_check(db, "exporter_environment", lambda: check_exporter_environment(clients.lambda_, topology)),
        _run_check(db, "crawler", lambda: check_crawler(clients.glue, topology)),
    ]


def build_summary(environment: str, results: List[CheckResult], errors: List[str]) -> Dict[str, Any]:
    return {
        "environment": environment,
        "passed": not errors and all(r.ok for r in results),
        "configuration_errors": errors,
        "checks": [asdict(r) for r in results],
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Validate deployed snapshot export pipelines")
    parser.add_argument("--environment", "-e", default="dev", help="Target environment or branch name")
    parser.add_argument("--profile", help="AWS profile to use")
    parser.add_argument("--output-json", default="snapshot_export_validation.json", help="Summary JSON output path")
    args = parser.parse_args(argv)

    context = get_environment_config(args.environment)
    session = boto3.session.Session(profile_name=args.profile, region_name=context.region)
    clients = AwsClients.from_session(session)

    topologies, failures = derive_all(context, DEFAULT_EVENT_BINDINGS)
    results: List[CheckResult] = []
    for topology in topologies:
        print(f"Validating {topology.stack_name}...")
        results.extend(validate_topology(clients, topology))

    summary = build_summary(context.environment, results, [str(f) for f in failures])
    json_path = Path(args.output_json)
    json_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")

    for result in results:
        status = "OK  " if result.ok else "FAIL"
        print(f"[{status}] {result.database} {result.check}: {result.detail}")
    for error in summary["configuration_errors"]:
        print(f"[FAIL] configuration: {error}")
    print(f"Summary written to {json_path}")
    return 0 if summary["passed"] else 1


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as exc:  # pragma: no cover - ensures clean exit for CI
        print(f"Snapshot export validation failed: {exc}", file=sys.stderr)
        sys.exit(1)
