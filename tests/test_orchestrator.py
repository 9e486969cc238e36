import httpx
import pytest

from product_updater.models import ProductStatus, RegistryState, UpgradeEvent

from conftest import FILE_PATH


def upgrade_event(items=(FILE_PATH,), type="product", action="update"):
    return {"type": type, "action": action, "items": list(items)}


def test_sync_hook_name(integration):
    assert integration.orchestrator.sync_hook_name == "product_updater_sync_license_data_my-plugin42"


def test_activate_marks_up_to_date_and_pings(integration, server):
    server.on("ping", fixture="ping-success.json")
    integration.product.status = ProductStatus.INACTIVE

    integration.orchestrator.on_activate()

    assert integration.product.status == ProductStatus.ACTIVE
    assert integration.registry.state(integration.product) == RegistryState.UP_TO_DATE
    assert server.last().url.params["product_status"] == "active"


def test_deactivate_reports_inactive(integration, server):
    server.on("ping", fixture="ping-success.json")

    integration.orchestrator.on_deactivate()

    assert integration.product.status == ProductStatus.INACTIVE
    assert integration.registry.state(integration.product) == RegistryState.UP_TO_DATE
    assert server.last().url.params["product_status"] == "inactive"


def test_lifecycle_ping_failure_is_ignored(integration, server):
    server.on("ping", exc=httpx.ConnectTimeout("Connection timed out"))

    integration.orchestrator.on_activate()

    assert integration.registry.state(integration.product) == RegistryState.UP_TO_DATE


def test_lifecycle_ping_with_corrupt_body_is_ignored(integration, server):
    server.on("ping", headers={"content-encoding": "gzip"}, raw=b"not gzip at all")

    integration.orchestrator.on_activate()
    integration.orchestrator.on_deactivate()

    assert integration.registry.state(integration.product) == RegistryState.UP_TO_DATE


def test_periodic_sync_without_code_only_pings(integration, server):
    server.on("ping", fixture="ping-success.json")

    assert integration.orchestrator.on_periodic_sync() is None
    assert server.calls("ping") == 1
    assert server.calls("check_license") == 0


def test_periodic_sync_refreshes_record(licensed_integration, server):
    server.on("check_license", fixture="check-license-success.json")
    licensed_integration.license_store.set_code("ABC-123-DEF")
    licensed_integration.license_store.set_record({"status": "expired", "note": "old"})

    result = licensed_integration.orchestrator.on_periodic_sync()

    assert result.ok
    record = licensed_integration.license_store.get_record()
    assert record.status == "active"
    assert "note" not in record.model_dump()
    assert server.last().url.params["license"] == "ABC-123-DEF"


def test_periodic_sync_error_leaves_record_stale(licensed_integration, server):
    server.on("check_license", exc=httpx.ConnectError("refused"))
    licensed_integration.license_store.set_code("ABC-123-DEF")
    licensed_integration.license_store.set_record({"status": "expired"})

    result = licensed_integration.orchestrator.on_periodic_sync()

    assert not result.ok
    assert licensed_integration.license_store.status().value == "expired"


def test_check_for_updates_reconciles(integration, server):
    server.on("updates", fixture="updates-available.json")

    state = integration.orchestrator.on_check_for_updates({FILE_PATH: "1.0.0"})

    assert state == RegistryState.PENDING
    assert integration.registry.entry(integration.product).new_version == "1.3.0"


def test_check_for_updates_skips_empty_scan(integration, server):
    server.on("updates", fixture="updates-available.json")

    state = integration.orchestrator.on_check_for_updates({})

    assert state == RegistryState.NO_RECORD
    assert server.calls() == 0


def test_check_for_updates_uses_cache(integration, server):
    server.on("updates", fixture="updates-available.json")

    integration.orchestrator.on_check_for_updates()
    integration.orchestrator.on_check_for_updates()

    assert server.calls("updates") == 1


def test_check_for_updates_error_keeps_state(integration, server):
    server.on("updates", fixture="updates-available.json")
    integration.orchestrator.on_check_for_updates()
    integration.client.invalidate_cache()
    server.on("updates", status=500, text="")

    state = integration.orchestrator.on_check_for_updates()

    assert state == RegistryState.PENDING


def test_post_upgrade_marks_product_current(integration, server):
    server.on("updates", fixture="updates-available.json")
    server.on("ping", fixture="ping-success.json")
    integration.orchestrator.on_check_for_updates()
    integration.orchestrator.version_reader = lambda product: "1.3.0"

    handled = integration.orchestrator.on_post_upgrade_complete(upgrade_event())

    doc = integration.registry.snapshot()
    assert handled
    assert integration.product.version == "1.3.0"
    assert FILE_PATH not in doc.pending
    assert doc.up_to_date_entry(FILE_PATH).new_version == "1.3.0"
    assert server.last().url.params["product_version"] == "1.3.0"


def test_post_upgrade_invalidates_cache(integration, server):
    server.on("updates", fixture="updates-available.json")
    server.on("ping", fixture="ping-success.json")
    integration.orchestrator.on_check_for_updates()

    integration.orchestrator.on_post_upgrade_complete(UpgradeEvent(**upgrade_event()))
    integration.orchestrator.on_check_for_updates()

    assert server.calls("updates") == 2


def test_post_upgrade_without_version_reader_keeps_version(integration, server):
    server.on("ping", fixture="ping-success.json")

    assert integration.orchestrator.on_post_upgrade_complete(upgrade_event())
    assert integration.product.version == "1.0.0"


@pytest.mark.parametrize(
    "event",
    [
        upgrade_event(items=["other/other.php"]),
        upgrade_event(type="theme"),
        upgrade_event(action="install"),
        upgrade_event(items=[]),
    ],
)
def test_post_upgrade_ignores_unrelated_events(integration, server, event):
    assert not integration.orchestrator.on_post_upgrade_complete(event)
    assert server.calls() == 0
    assert integration.registry.state(integration.product) == RegistryState.NO_RECORD


def test_details_request_returns_details(integration, server):
    server.on("details", fixture="details-success.json")

    details = integration.orchestrator.on_details_request("product_information", "my-plugin")

    assert details.name == "My Plugin"
    assert details.version == "1.3.0"


@pytest.mark.parametrize(
    "action, slug",
    [("product_information", "other-plugin"), ("query_products", "my-plugin"), ("product_information", None)],
)
def test_details_request_for_other_products(integration, server, action, slug):
    assert integration.orchestrator.on_details_request(action, slug) is None
    assert server.calls() == 0


def test_details_request_error_is_displayable(integration, server):
    server.on("details", status=404, fixture="error-product-not-found.json")

    details = integration.orchestrator.on_details_request("product_information", "my-plugin")

    assert details.sections == {
        "error": "Unable to retrieve information. Error: Requested plugin does not exits on this provider"
    }


def test_details_request_without_details_member(integration, server):
    server.on("details", json_body={"details": {}, "message": "Product is archived"})

    details = integration.orchestrator.on_details_request("product_information", "my-plugin")

    assert details.sections == {"api_error": "Product is archived"}


def test_details_request_without_details_or_message(integration, server):
    server.on("details", json_body={"success": False})

    details = integration.orchestrator.on_details_request("product_information", "my-plugin")

    assert details.sections == {"api_error": "Errors occurred. Try back later"}


def test_package_options_force_clean_install(integration):
    options = {"destination": "/plugins", "hook_extra": {"product": "My-Plugin/my-plugin.php"}}

    result = integration.orchestrator.on_upgrade_package_options(options)

    assert result["clear_destination"] is True
    assert result["abort_if_destination_exists"] is True
    assert "clear_destination" not in options


@pytest.mark.parametrize("options", [{}, {"hook_extra": {}}, {"hook_extra": {"product": "other/other.php"}}])
def test_package_options_for_other_products_unchanged(integration, options):
    assert integration.orchestrator.on_upgrade_package_options(options) == options
