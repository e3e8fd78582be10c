"""End-to-end coverage of the pagination driver against the fake registry.

Scenarios cover full multi-page runs, cache reuse across runs, per-entry
failure aggregation, cooperative cancellation between pages, test mode, and
aborts on page-level failures.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from Typo3Nix.ExtensionCatalog import pipeline
from Typo3Nix.ExtensionCatalog.cancellation import CancellationToken
from Typo3Nix.ExtensionCatalog.errors import EntryResolutionError, ParseError, TransferError
from Typo3Nix.ExtensionCatalog.manifests import write_manifest
from Typo3Nix.ExtensionCatalog.models import OutputRecord
from Typo3Nix.ExtensionCatalog.pipeline import RunState, run_update
from Typo3Nix.ExtensionCatalog.resolver import resolve_entry
from Typo3Nix.ExtensionCatalog.testing import FakeRegistry, make_settings


def _populate(registry: FakeRegistry, count: int) -> None:
    for index in range(count):
        registry.add(f"ext_{index:03d}", f"1.0.{index}", description=f"Extension {index}\nmore")


def test_full_run_walks_every_page(settings, registry, collect) -> None:
    _populate(registry, 125)

    report = collect(settings, registry.transport())

    assert report.state is RunState.DONE
    assert report.total_pages == 3
    assert report.pages_fetched == 3
    assert report.scheduled == 125
    assert report.recomputed == 125
    assert report.reused == 0
    assert set(report.manifest) == {extension.key for extension in registry.extensions}
    assert report.manifest["ext_007"].description == "Extension 7"
    assert report.manifest["ext_007"].hash == registry.get("ext_007").integrity()
    assert [r.params["page"] for r in registry.listing_requests()] == ["1", "2", "3"]


def test_manifest_is_sorted_regardless_of_completion_order(settings, registry, collect) -> None:
    for key in ("zeta", "mike", "alpha", "kilo"):
        registry.add(key, "1.0.0")
    delays = {"zeta": 0.0, "mike": 0.02, "alpha": 0.04, "kilo": 0.01}

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/zip"):
            await asyncio.sleep(delays[request.url.path.split("/")[-3]])
        return registry.handler(request)

    report = collect(settings, httpx.MockTransport(handler))

    assert list(report.manifest) == ["alpha", "kilo", "mike", "zeta"]


def test_unchanged_entries_reuse_prior_hashes(settings, registry, collect) -> None:
    registry.add("foo", "1.0.0")
    registry.add("bar", "2.0.0")
    prior = {
        "foo": OutputRecord(version="1.0.0", compatibility=(), description="", hash="sha256-abc"),
        "bar": OutputRecord(version="1.9.0", compatibility=(), description="", hash="sha256-old"),
        "gone": OutputRecord(version="0.1.0", compatibility=(), description="", hash="sha256-x"),
    }

    report = collect(settings, registry.transport(), prior=prior)

    assert report.manifest["foo"].hash == "sha256-abc"
    assert report.manifest["bar"].hash == registry.get("bar").integrity()
    assert "gone" not in report.manifest
    assert (report.reused, report.recomputed) == (1, 1)
    assert registry.download_requests("foo") == []
    assert len(registry.download_requests("bar")) == 1


def test_second_run_is_byte_identical_and_downloads_nothing(settings, registry) -> None:
    _populate(registry, 7)

    first = run_update(settings, transport=registry.transport(), handle_interrupts=False)
    first_bytes = settings.manifest_path.read_bytes()
    downloads_after_first = len(registry.download_requests())

    second = run_update(settings, transport=registry.transport(), handle_interrupts=False)

    assert settings.manifest_path.read_bytes() == first_bytes
    assert downloads_after_first == 7
    assert len(registry.download_requests()) == 7
    assert (first.recomputed, second.reused, second.recomputed) == (7, 7, 0)


def test_failed_entries_are_aggregated(settings, registry, collect) -> None:
    _populate(registry, 5)
    registry.failing_downloads.update({"ext_001", "ext_003"})

    with pytest.raises(EntryResolutionError) as excinfo:
        collect(settings, registry.transport())

    assert set(excinfo.value.failures) == {"ext_001", "ext_003"}
    assert all(isinstance(error, TransferError) for error in excinfo.value.failures.values())
    assert "Unable to calculate hash of ext_001" in str(excinfo.value)
    assert "1 more" in str(excinfo.value)


def test_failed_run_leaves_existing_manifest_untouched(settings, registry) -> None:
    prior = {"keep": OutputRecord(version="1", compatibility=(), description="", hash="sha256-k")}
    write_manifest(settings.manifest_path, prior)
    before = settings.manifest_path.read_bytes()
    _populate(registry, 3)
    registry.failing_downloads.add("ext_002")

    with pytest.raises(EntryResolutionError):
        run_update(settings, transport=registry.transport(), handle_interrupts=False)

    assert settings.manifest_path.read_bytes() == before


def test_cancellation_before_start_fetches_nothing(settings, registry, collect) -> None:
    _populate(registry, 3)
    token = CancellationToken()
    token.cancel()

    report = collect(settings, registry.transport(), token=token)

    assert report.cancelled
    assert report.pages_fetched == 0
    assert report.manifest == {}
    assert registry.requests == []


def test_cancellation_stops_paging_but_drains_scheduled_entries(registry, collect, tmp_path):
    settings = make_settings(per_page=2, manifest_path=tmp_path / "extensions.json")
    _populate(registry, 6)
    token = CancellationToken()

    async def handler(request: httpx.Request) -> httpx.Response:
        response = registry.handler(request)
        if request.url.path.endswith("/extension"):
            token.cancel()
        else:
            await asyncio.sleep(0.01)
        return response

    report = collect(settings, httpx.MockTransport(handler), token=token)

    assert report.cancelled
    assert report.pages_fetched == 1
    assert report.total_pages == 3
    assert report.state is RunState.DONE
    assert sorted(report.manifest) == ["ext_000", "ext_001"]
    assert len(registry.listing_requests()) == 1


def test_test_mode_schedules_one_page_and_writes_nothing(registry, tmp_path) -> None:
    manifest_path = tmp_path / "extensions.json"
    settings = make_settings(test_mode=True, manifest_path=manifest_path)
    _populate(registry, 3)

    report = run_update(settings, transport=registry.transport(), handle_interrupts=False)

    assert report.test_mode
    assert report.scheduled == 1
    assert report.pages_fetched == 1
    assert report.manifest is None
    assert not manifest_path.exists()
    (listing,) = registry.listing_requests()
    assert listing.params == {"page": "1", "per_page": "1"}


def test_page_failure_aborts_without_writing(settings, registry) -> None:
    _populate(registry, 120)
    registry.failing_pages.add(2)

    with pytest.raises(TransferError) as excinfo:
        run_update(settings, transport=registry.transport(), handle_interrupts=False)

    assert excinfo.value.status_code == 503
    assert not settings.manifest_path.exists()
    assert len(registry.listing_requests()) == 2


def test_malformed_page_aborts_run(settings, registry, collect) -> None:
    _populate(registry, 2)
    registry.malformed_pages.add(1)

    with pytest.raises(ParseError):
        collect(settings, registry.transport())


def test_key_listed_on_two_pages_is_resolved_once(registry, collect, tmp_path, caplog) -> None:
    settings = make_settings(per_page=1, manifest_path=tmp_path / "extensions.json")
    registry.add("dup", "1.0.0")
    registry.add("dup", "1.0.0")
    registry.add("solo", "3.0.0")

    report = collect(settings, registry.transport())

    assert sorted(report.manifest) == ["dup", "solo"]
    assert report.scheduled == 2
    assert len(registry.download_requests("dup")) == 1
    assert any("listed twice" in record.getMessage() for record in caplog.records)


def test_empty_catalog_yields_empty_manifest(settings, registry) -> None:
    report = run_update(settings, transport=registry.transport(), handle_interrupts=False)

    assert report.total_pages == 0
    assert report.manifest == {}
    assert settings.manifest_path.read_text(encoding="utf-8") == "{}"


def test_unexpected_resolver_error_still_logs_transfer_failures(
    settings, registry, collect, monkeypatch, caplog
) -> None:
    _populate(registry, 3)
    registry.failing_downloads.add("ext_000")

    async def _resolve(entry, **kwargs):
        if entry.key == "ext_002":
            raise RuntimeError("resolver crashed")
        return await resolve_entry(entry, **kwargs)

    monkeypatch.setattr(pipeline, "resolve_entry", _resolve)

    with pytest.raises(RuntimeError, match="resolver crashed"):
        collect(settings, registry.transport())

    assert any(
        "could not be hashed: ext_000" in record.getMessage() for record in caplog.records
    )
