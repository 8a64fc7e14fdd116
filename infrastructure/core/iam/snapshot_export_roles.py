"""Constructs providing the IAM roles of the snapshot export pipeline."""

from __future__ import annotations

from aws_cdk import aws_iam as iam, aws_s3 as s3
from constructs import Construct

from infrastructure.core.iam import utils as iam_utils
from infrastructure.snapshot_export.topology import RoleSpec

EXPORT_TASK_S3_ACTIONS = [
    "s3:PutObject*",
    "s3:ListBucket",
    "s3:GetObject*",
    "s3:DeleteObject*",
    "s3:GetBucketLocation",
]

EXPORTER_RDS_ACTIONS = [
    "rds:StartExportTask",
    "rds:DescribeExportTasks",
    "rds:DescribeDBSnapshots",
    "rds:DescribeDBClusterSnapshots",
]

EXPORTER_SECRETS_ACTIONS = ["secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"]

CRAWLER_S3_ACTIONS = ["s3:GetObject", "s3:PutObject"]


def _role_from_spec(scope: Construct, spec: RoleSpec, inline_policy: iam.PolicyDocument) -> iam.Role:
    return iam.Role(
        scope,
        "Role",
        assumed_by=iam.ServicePrincipal(spec.service_principal),
        description=spec.description,
        managed_policies=[iam.ManagedPolicy.from_aws_managed_policy_name(name) for name in spec.managed_policies],
        inline_policies={spec.policy_name: inline_policy},
    )


class ExportTaskRoleConstruct(Construct):
    """Role RDS assumes to write snapshot exports into the bucket."""

    def __init__(self, scope: Construct, construct_id: str, *, spec: RoleSpec, bucket: s3.IBucket) -> None:
        super().__init__(scope, construct_id)

        policy = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=iam_utils.dedupe(EXPORT_TASK_S3_ACTIONS),
                    resources=[bucket.bucket_arn, bucket.arn_for_objects("*")],
                )
            ]
        )
        self._role = _role_from_spec(self, spec, policy)

    @property
    def role(self) -> iam.Role:
        """Return the created IAM role."""
        return self._role


class ExporterFunctionRoleConstruct(Construct):
    """Execution role for the exporter Lambda.

    The function starts export tasks, so it may pass the export task role
    to RDS and nothing else.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        spec: RoleSpec,
        bucket: s3.IBucket,
        export_task_role: iam.IRole,
    ) -> None:
        super().__init__(scope, construct_id)

        policy = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=iam_utils.dedupe(EXPORTER_RDS_ACTIONS + EXPORTER_SECRETS_ACTIONS),
                    resources=["*"],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["s3:ListBucket"],
                    resources=[bucket.bucket_arn],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["s3:GetObject", "s3:PutObject"],
                    resources=[bucket.arn_for_objects("*")],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["iam:PassRole"],
                    resources=[export_task_role.role_arn],
                ),
            ]
        )
        self._role = _role_from_spec(self, spec, policy)

    @property
    def role(self) -> iam.Role:
        """Return the created IAM role."""
        return self._role


class CrawlerRoleConstruct(Construct):
    """Glue crawler role scoped to the export bucket's objects."""

    def __init__(self, scope: Construct, construct_id: str, *, spec: RoleSpec, bucket: s3.IBucket) -> None:
        super().__init__(scope, construct_id)

        policy = iam.PolicyDocument(
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=CRAWLER_S3_ACTIONS,
                    resources=[bucket.arn_for_objects("*")],
                ),
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["s3:ListBucket"],
                    resources=[bucket.bucket_arn],
                ),
            ]
        )
        self._role = _role_from_spec(self, spec, policy)

    @property
    def role(self) -> iam.Role:
        """Return the created IAM role."""
        return self._role
