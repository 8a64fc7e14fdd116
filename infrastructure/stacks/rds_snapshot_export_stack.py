"""Snapshot export pipeline stack for a single RDS/Aurora database."""

from __future__ import annotations

from pathlib import Path

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_ec2 as ec2,
    aws_glue as glue,
    aws_kms as kms,
    aws_lambda as lambda_,
    aws_lambda_event_sources as lambda_event_sources,
    aws_rds as rds,
    aws_s3 as s3,
    aws_sns as sns,
)
from constructs import Construct

from infrastructure.config.context import ExportContext
from infrastructure.config.errors import ConfigurationError
from infrastructure.core.iam import CrawlerRoleConstruct, ExporterFunctionRoleConstruct, ExportTaskRoleConstruct
from infrastructure.core.iam import utils as iam_utils
from infrastructure.snapshot_export.topology import ResourceTopology

REPO_ROOT = Path(__file__).resolve().parents[2]

_RUNTIMES = {
    "python3.11": lambda_.Runtime.PYTHON_3_11,
    "python3.12": lambda_.Runtime.PYTHON_3_12,
}


def resolve_asset_path(raw_path: str) -> Path:
    """Resolve the exporter code bundle relative to the repository root."""
    path = Path(raw_path)
    if not path.is_absolute():
        path = REPO_ROOT / path
    return path


class RdsSnapshotExportStack(Stack):
    """Realize one ``ResourceTopology``: storage, keys, roles, events, exporter and crawler."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        context: ExportContext,
        topology: ResourceTopology,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.export_context = context
        self.topology = topology

        self.bucket = self._create_bucket()

        self.export_task_role = ExportTaskRoleConstruct(
            self, topology.export_task_role.logical_id, spec=topology.export_task_role, bucket=self.bucket
        ).role
        self.exporter_role = ExporterFunctionRoleConstruct(
            self,
            topology.exporter_role.logical_id,
            spec=topology.exporter_role,
            bucket=self.bucket,
            export_task_role=self.export_task_role,
        ).role
        self.crawler_role = CrawlerRoleConstruct(
            self, topology.crawler_role.logical_id, spec=topology.crawler_role, bucket=self.bucket
        ).role

        self.encryption_key = self._create_encryption_key()
        self.topic = self._create_topic()
        self.event_subscriptions = self._create_event_subscriptions()

        self.vpc, self.private_subnets = self._import_network()
        self.security_group = self._create_security_group()
        self.exporter_function = self._create_exporter_function()

        self.glue_database, self.crawler = self._create_crawler()

        self._create_outputs()

    def _removal_policy(self) -> RemovalPolicy:
        if self.export_context.removal_policy == "destroy":
            return RemovalPolicy.DESTROY
        return RemovalPolicy.RETAIN

    def _create_bucket(self) -> s3.Bucket:
        """Create the export bucket with its storage tiering rule."""
        spec = self.topology.bucket
        transitions = [
            s3.Transition(
                storage_class=getattr(s3.StorageClass, transition.storage_class.value),
                transition_after=Duration.days(transition.after_days),
            )
            for transition in spec.lifecycle.transitions
        ]
        return s3.Bucket(
            self,
            "SnapshotExportBucket",
            bucket_name=spec.bucket_name,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL if spec.block_public_access else None,
            encryption=s3.BucketEncryption.S3_MANAGED,
            enforce_ssl=True,
            lifecycle_rules=[
                s3.LifecycleRule(
                    transitions=transitions,
                    expiration=Duration.days(spec.lifecycle.expiration_days),
                )
            ],
            removal_policy=self._removal_policy(),
        )

    def _create_encryption_key(self) -> kms.Key:
        """Create the KMS key export tasks encrypt with."""
        spec = self.topology.key
        return kms.Key(
            self,
            "SnapshotExportEncryptionKey",
            alias=spec.alias,
            enable_key_rotation=spec.enable_key_rotation,
            policy=iam_utils.export_key_policy(
                key_users=[self.exporter_role, self.crawler_role],
                grant_manager=self.exporter_role,
            ),
            removal_policy=RemovalPolicy.RETAIN,
        )

    def _create_topic(self) -> sns.Topic:
        spec = self.topology.topic
        return sns.Topic(
            self,
            "SnapshotEventTopic",
            topic_name=spec.topic_name,
            display_name=spec.display_name,
        )

    def _create_event_subscriptions(self) -> list[rds.CfnEventSubscription]:
        """Subscribe the topic to the RDS events the topology selected."""
        return [
            rds.CfnEventSubscription(
                self,
                spec.logical_id,
                sns_topic_arn=self.topic.topic_arn,
                enabled=spec.enabled,
                event_categories=spec.event_categories,
                source_type=spec.source_type,
            )
            for spec in self.topology.subscriptions
        ]

    def _import_network(self) -> tuple[ec2.IVpc, list[ec2.ISubnet]]:
        """Import the existing VPC and the private subnets the exporter runs in."""
        vpc_config = self.export_context.vpc
        vpc = ec2.Vpc.from_lookup(self, "Vpc", vpc_id=vpc_config.id)
        subnets = [
            ec2.Subnet.from_subnet_id(self, f"PrivateSubnet{index}", subnet_id)
            for index, subnet_id in enumerate(self.topology.function.subnet_ids)
        ]
        return vpc, subnets

    def _create_security_group(self) -> ec2.SecurityGroup:
        spec = self.topology.security_group
        security_group = ec2.SecurityGroup(
            self,
            "LambdaSecurityGroup",
            vpc=self.vpc,
            allow_all_outbound=True,
            security_group_name=spec.security_group_name,
            description=f"Snapshot exporter for {self.topology.db_name}",
        )
        security_group.add_ingress_rule(
            ec2.Peer.ipv4(spec.ingress_cidr),
            ec2.Port.tcp(spec.ingress_port),
            spec.description,
        )
        return security_group

    def _create_exporter_function(self) -> lambda_.Function:
        """Create the exporter Lambda triggered by snapshot events on the topic."""
        spec = self.topology.function
        asset_path = resolve_asset_path(self.export_context.exporter_asset_path)
        if not asset_path.is_dir():
            raise ConfigurationError(
                f"Exporter code bundle not found at {asset_path}",
                database=self.topology.db_name,
                environment=self.export_context.environment,
            )
        runtime = _RUNTIMES.get(spec.runtime)
        if runtime is None:
            raise ConfigurationError(
                f"Unsupported exporter runtime: {spec.runtime}",
                database=self.topology.db_name,
                environment=self.export_context.environment,
            )

        environment = dict(spec.environment)
        environment.update(
            {
                "SNAPSHOT_BUCKET_NAME": self.bucket.bucket_name,
                "SNAPSHOT_TASK_ROLE": self.export_task_role.role_arn,
                "SNAPSHOT_TASK_KEY": self.encryption_key.key_arn,
            }
        )

        return lambda_.Function(
            self,
            "LambdaFunction",
            function_name=spec.function_name,
            runtime=runtime,
            handler=spec.handler,
            code=lambda_.Code.from_asset(str(asset_path)),
            environment=environment,
            role=self.exporter_role,
            memory_size=spec.memory_mb,
            timeout=Duration.seconds(spec.timeout_seconds),
            vpc=self.vpc,
            security_groups=[self.security_group],
            vpc_subnets=ec2.SubnetSelection(subnets=self.private_subnets),
            events=[lambda_event_sources.SnsEventSource(self.topic)],
        )

    def _create_crawler(self) -> tuple[glue.CfnDatabase, glue.CfnCrawler]:
        """Create the Glue catalog database and the crawler that fills it."""
        spec = self.topology.crawler
        database = glue.CfnDatabase(
            self,
            "SnapshotExportDatabase",
            catalog_id=self.account,
            database_input=glue.CfnDatabase.DatabaseInputProperty(
                name=spec.database_name,
                description=f"Snapshot exports of {self.topology.db_name}",
                parameters={
                    "environment": self.export_context.environment,
                    "created_by": "cdk",
                    "classification": "rds-snapshot-export",
                },
            ),
        )
        crawler = glue.CfnCrawler(
            self,
            "SnapshotExportCrawler",
            name=spec.crawler_name,
            role=self.crawler_role.role_arn,
            database_name=spec.database_name,
            targets=glue.CfnCrawler.TargetsProperty(
                s3_targets=[glue.CfnCrawler.S3TargetProperty(path=spec.s3_target_path)],
            ),
            schema_change_policy=glue.CfnCrawler.SchemaChangePolicyProperty(
                update_behavior=spec.update_behavior,
                delete_behavior=spec.delete_behavior,
            ),
        )
        crawler.add_dependency(database)
        return database, crawler

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs."""
        CfnOutput(
            self,
            "SnapshotExportBucketName",
            value=self.bucket.bucket_name,
            description="Snapshot export S3 bucket name",
        )

        CfnOutput(
            self,
            "SnapshotEventTopicArn",
            value=self.topic.topic_arn,
            description="SNS topic receiving RDS snapshot events",
        )

        CfnOutput(
            self,
            "SnapshotExporterFunctionName",
            value=self.exporter_function.function_name,
            description="Lambda function starting snapshot export tasks",
        )

        CfnOutput(
            self,
            "SnapshotExportCrawlerName",
            value=self.topology.crawler.crawler_name,
            description="Glue crawler cataloging exported snapshots",
        )
