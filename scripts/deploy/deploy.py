#!/usr/bin/env python3
"""Deployment script for the snapshot export CDK application."""

import argparse
import os
import shlex
import subprocess
import sys
from typing import Mapping, Optional, Sequence

from infrastructure.config.environments import get_environment_config
from infrastructure.config.errors import ConfigurationError, ContextResolutionError


def run_command(
    command: Sequence[str], *, check: bool = True, env: Optional[Mapping[str, str]] = None
) -> subprocess.CompletedProcess[str]:
    """Execute a subprocess without shell interpolation."""

    printable = " ".join(shlex.quote(part) for part in command)
    print(f"Running: {printable}")

    result = subprocess.run(command, capture_output=True, text=True, env=env, check=False)

    if check and result.returncode != 0:
        print(f"Command failed with return code {result.returncode}")
        if result.stdout:
            print(f"stdout: {result.stdout}")
        if result.stderr:
            print(f"stderr: {result.stderr}")
        sys.exit(result.returncode)

    return result


def build_deploy_command(environment: str, stacks: Optional[str] = None) -> list[str]:
    """Return the ``cdk deploy`` invocation for the selected environment."""
    deploy_cmd = ["cdk", "deploy"]
    if stacks:
        deploy_cmd.extend(shlex.split(stacks))
    else:
        deploy_cmd.append("--all")

    deploy_cmd.extend(["--context", f"environment={environment}", "--require-approval", "never"])
    return deploy_cmd


def deploy_stacks(environment: str, stacks: Optional[str] = None) -> None:
    """Deploy CDK stacks to the specified environment."""
    try:
        context = get_environment_config(environment)
    except (ContextResolutionError, ConfigurationError) as exc:
        print(f"Cannot deploy: {exc}")
        sys.exit(2)

    print(f"Deploying to environment: {context.environment} ({len(context.databases)} database(s))")

    exec_env = {**os.environ, "CDK_DEFAULT_REGION": context.region}
    if context.account_number:
        exec_env["CDK_DEFAULT_ACCOUNT"] = context.account_number

    # Bootstrap CDK if needed
    print("Checking CDK bootstrap status...")
    run_command(
        ["cdk", "bootstrap", "--context", f"environment={environment}"],
        check=False,
        env=exec_env,
    )

    run_command(build_deploy_command(environment, stacks), env=exec_env)
    print(f"Deployment to {context.environment} completed successfully!")


def main():
    """Main deployment function."""
    parser = argparse.ArgumentParser(description="Deploy snapshot export CDK stacks")
    parser.add_argument(
        "--environment", "-e", default="dev", help="Target environment or branch name (dev|staging|prod)"
    )
    parser.add_argument("--stacks", "-s", help="Specific stacks to deploy (space-separated)")

    args = parser.parse_args()

    deploy_stacks(args.environment, args.stacks)


if __name__ == "__main__":
    main()
