"""Reusable IAM helper utilities for security-related constructs."""

from __future__ import annotations

from typing import Iterable, Sequence

from aws_cdk import aws_iam as iam

KEY_USAGE_ACTIONS = [
    "kms:Encrypt",
    "kms:Decrypt",
    "kms:ReEncrypt*",
    "kms:GenerateDataKey*",
    "kms:DescribeKey",
]

KEY_GRANT_ACTIONS = ["kms:CreateGrant", "kms:ListGrants", "kms:RevokeGrant"]


def dedupe(values: Iterable[str]) -> list[str]:
    """Return items without duplicates while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def export_key_policy(*, key_users: Sequence[iam.IRole], grant_manager: iam.IRole) -> iam.PolicyDocument:
    """Build the export key policy.

    The account root keeps full control, ``key_users`` may use the key for
    data, and ``grant_manager`` may create grants for AWS services (RDS
    export tasks encrypt through a grant).
    """
    return iam.PolicyDocument(
        statements=[
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                principals=[iam.AccountRootPrincipal()],
                actions=["kms:*"],
                resources=["*"],
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                principals=[iam.ArnPrincipal(role.role_arn) for role in key_users],
                actions=KEY_USAGE_ACTIONS,
                resources=["*"],
            ),
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                principals=[iam.ArnPrincipal(grant_manager.role_arn)],
                actions=KEY_GRANT_ACTIONS,
                resources=["*"],
                conditions={"Bool": {"kms:GrantIsForAWSResource": True}},
            ),
        ]
    )
