"""Ensure the synthesized export stack has no circular dependencies.

The key policy names the exporter and crawler roles, the exporter function
reads the key ARN from its environment and the crawler depends on its catalog
database. The graph below is built from ``DependsOn``, ``Ref`` and
``Fn::GetAtt`` so a regression in that wiring fails with the offending path.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Set

import pytest
from aws_cdk import App, Environment, Stack
from aws_cdk.assertions import Template

from infrastructure.config.context import DatabaseConfig
from infrastructure.snapshot_export.topology import derive_topology
from infrastructure.stacks.rds_snapshot_export_stack import RdsSnapshotExportStack
from tests.fixtures.context_builders import (
    AURORA_CREATED,
    BACKUP_COPIED,
    MANUAL_CREATED,
    TEST_ACCOUNT,
    TEST_REGION,
    build_context,
)


def _collect_refs(value: object) -> Iterator[str]:
    """Yield logical IDs referenced via Ref/GetAtt inside a CFN structure."""

    if isinstance(value, dict):
        if set(value.keys()) == {"Ref"} and isinstance(value["Ref"], str):
            yield value["Ref"]
        elif "Fn::GetAtt" in value:
            target = value["Fn::GetAtt"]
            if isinstance(target, list) and target and isinstance(target[0], str):
                yield target[0]
            elif isinstance(target, str):
                yield target.split(".", 1)[0]
        for nested in value.values():
            yield from _collect_refs(nested)
    elif isinstance(value, list):
        for item in value:
            yield from _collect_refs(item)


def _dependency_graph(template_dict: Dict[str, object]) -> Dict[str, Set[str]]:
    resources = template_dict.get("Resources", {})
    graph: Dict[str, Set[str]] = {}

    for name, definition in resources.items():
        deps: Set[str] = set()
        depends_on = definition.get("DependsOn")
        if isinstance(depends_on, str):
            deps.add(depends_on)
        elif isinstance(depends_on, list):
            deps.update(dep for dep in depends_on if isinstance(dep, str))
        deps.update(_collect_refs(definition.get("Properties", {})))
        graph[name] = {dep for dep in deps if dep in resources and dep != name}

    return graph


def _find_cycles(graph: Dict[str, Set[str]]) -> List[List[str]]:
    visited: Set[str] = set()
    active: List[str] = []
    cycles: List[List[str]] = []

    def walk(node: str) -> None:
        if node in active:
            cycles.append(active[active.index(node):] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        active.append(node)
        for dependency in sorted(graph.get(node, ())):
            walk(dependency)
        active.pop()

    for resource in sorted(graph):
        walk(resource)
    return cycles


def _assert_no_cycles(stack: Stack) -> None:
    cycles = _find_cycles(_dependency_graph(Template.from_stack(stack).to_json()))
    if cycles:
        readable = ", ".join(" -> ".join(cycle) for cycle in cycles)
        pytest.fail(f"Detected CloudFormation dependency cycle(s): {readable}")


def _stack(exporter_asset: Path, bindings) -> RdsSnapshotExportStack:
    context = build_context(
        [DatabaseConfig("orders-aurora-dev", "orders-exports-dev")],
        exporter_asset_path=str(exporter_asset),
    )
    topology = derive_topology(context, context.databases[0], bindings)
    return RdsSnapshotExportStack(
        App(),
        "CycleCheck",
        context=context,
        topology=topology,
        env=Environment(account=TEST_ACCOUNT, region=TEST_REGION),
    )


@pytest.mark.parametrize(
    "bindings",
    [[AURORA_CREATED], [MANUAL_CREATED, BACKUP_COPIED]],
    ids=["cluster", "instance-with-copy"],
)
def test_export_stack_has_no_cycles(exporter_asset: Path, bindings) -> None:
    """
    Given: 클러스터/인스턴스 구독 조합으로 합성한 스택
    When: 리소스 의존성 그래프를 구성하면
    Then: 순환 의존성이 없어야 함
    """
    _assert_no_cycles(_stack(exporter_asset, bindings))


def test_cycle_detector_reports_offending_path() -> None:
    graph = {"Key": {"Role"}, "Role": {"Key"}, "Bucket": set()}

    cycles = _find_cycles(graph)

    assert cycles == [["Key", "Role", "Key"]]
