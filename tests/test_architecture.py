"""Architectural boundary tests using pytest-archon.

These tests verify that the codebase follows clean architecture principles:
- Domain layer has no dependencies on application services or adapters
- Application services don't depend on adapters
- Adapters can depend on domain
- Only the composition root and the CLI wire everything together
"""

from pytest_archon import archrule


def test_domain_models_have_no_dependencies() -> None:
    """Domain models should not import any other modules except standard library and domain itself."""
    (
        archrule("domain models", comment="Domain models should be independent")
        .match("vehicle_tracking.domain.models*")
        .should_not_import("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.application*")
        .should_not_import("vehicle_tracking.domain.contracts*")
        .may_import("vehicle_tracking.domain.models*")
        .check("vehicle_tracking")
    )


def test_domain_contracts_have_no_dependencies() -> None:
    """Domain contracts (protocols) should not import adapters or application."""
    (
        archrule("domain contracts", comment="Domain contracts should be independent")
        .match("vehicle_tracking.domain.contracts*")
        .should_not_import("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.application*")
        .may_import("vehicle_tracking.domain.contracts*")
        .may_import("vehicle_tracking.domain.models*")
        .check("vehicle_tracking")
    )


def test_application_services_dont_import_adapters() -> None:
    """Application services should not depend on adapters (infrastructure layer)."""
    (
        archrule(
            "application services", comment="Application services should not depend on adapters"
        )
        .match("vehicle_tracking.application*")
        .should_not_import("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.main")
        .should_not_import("vehicle_tracking.cli")
        .may_import("vehicle_tracking.domain*")
        .may_import("vehicle_tracking.application*")
        .check("vehicle_tracking")
    )


def test_adapters_dont_import_application() -> None:
    """Adapters should not import application services (to avoid cycles)."""
    (
        archrule(
            "adapters independence", comment="Adapters should not depend on application services"
        )
        .match("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.application*")
        .may_import("vehicle_tracking.domain*")
        .may_import("vehicle_tracking.adapters*")
        .check("vehicle_tracking", only_direct_imports=True)
    )


def test_no_circular_dependencies_in_domain() -> None:
    """Domain layer should not have circular dependencies."""
    (
        archrule("domain no cycles", comment="Domain layer should not have circular dependencies")
        .match("vehicle_tracking.domain*")
        .should_not_import("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.application*")
        .may_import("vehicle_tracking.domain*")
        .check("vehicle_tracking", only_direct_imports=True)
    )


def test_only_entry_points_wire_services() -> None:
    """Neither layer should reach back into the composition root or the CLI."""
    (
        archrule("entry points", comment="main and cli sit on top of every layer")
        .match("vehicle_tracking.adapters*")
        .should_not_import("vehicle_tracking.main")
        .should_not_import("vehicle_tracking.cli")
        .check("vehicle_tracking", only_direct_imports=True)
    )
    (
        archrule("domain entry points", comment="main and cli sit on top of every layer")
        .match("vehicle_tracking.domain*")
        .should_not_import("vehicle_tracking.main")
        .should_not_import("vehicle_tracking.cli")
        .check("vehicle_tracking", only_direct_imports=True)
    )
