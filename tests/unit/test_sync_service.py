"""
Tests del sincronizador feed -> Postgres sin base real.

Usa el repositorio en memoria de conftest, que replica la semantica
transaccional (snapshot al conectar, rollback restaura) y la FK de
offer_attributes hacia offers.
"""
from decimal import Decimal

import pytest
from loguru import logger

from catalog_sync.infrastructure.external.feed_sync.sync_service import (
    CatalogSynchronizer,
    SyncResult,
    _dedupe_by_key,
)
from catalog_sync.domain.entities.catalog_records import CategoryRecord
from catalog_sync.shared.constants.entity_constants import EntityKind
from catalog_sync.shared.exceptions.domain import UnknownKindError
from catalog_sync.shared.exceptions.sync import SyncError


def _service(repo, feed, **kwargs) -> CatalogSynchronizer:
    return CatalogSynchronizer(pg_repo=repo, feed=feed, upsert_batch_size=2, **kwargs)


@pytest.fixture
def log_records():
    """Captura los registros de loguru de nivel WARNING o superior."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="WARNING")
    yield records
    logger.remove(handler_id)


class TestSyncOne:
    """Tests para CatalogSynchronizer.sync_one."""

    def test_first_sync_creates_tables_and_upserts(self, memory_repo, fake_feed) -> None:
        result = _service(memory_repo, fake_feed).sync_one("currencies")

        assert result == SyncResult(
            kind=EntityKind.CURRENCY, table="currencies", upserted=3, skipped=1, tables_created=True
        )
        assert set(memory_repo.tables["currencies"]) == {"RUR", "USD", "EUR"}
        assert memory_repo.tables["currencies"]["USD"]["rate"] == Decimal("90.5")
        assert memory_repo.commits == 1

    def test_second_sync_does_not_recreate_tables(self, memory_repo, fake_feed) -> None:
        service = _service(memory_repo, fake_feed)
        service.sync_one("category")

        result = service.sync_one("category")

        assert result.tables_created is False
        assert len(memory_repo.ddl_executed) == 1

    def test_sync_is_idempotent(self, memory_repo, fake_feed) -> None:
        service = _service(memory_repo, fake_feed)
        service.sync_all()
        first = (dict(memory_repo.tables["offers"]), list(memory_repo.attributes))

        service.sync_all()

        assert (memory_repo.tables["offers"], memory_repo.attributes) == first
        assert len(memory_repo.attributes_for("VC-1")) == 3

    def test_offer_attributes_are_replaced(self, memory_repo, make_feed, shrunk_params_feed) -> None:
        feed = make_feed()
        service = _service(memory_repo, feed)
        service.sync_one("offer")
        assert len(memory_repo.attributes_for("VC-1")) == 3

        feed.content = shrunk_params_feed
        result = service.sync_one("offer")

        assert memory_repo.attributes_for("VC-1") == [("Color", "Red")]
        assert result.attributes_replaced == 1

    def test_last_write_wins_on_changed_values(self, memory_repo, make_feed, wrapped_feed) -> None:
        feed = make_feed()
        service = _service(memory_repo, feed)
        service.sync_one("offer")

        feed.content = wrapped_feed.replace(b"<name>Drill</name>", b"<name>Hammer drill</name>")
        service.sync_one("offer")

        assert memory_repo.tables["offers"]["VC-1"]["name"] == "Hammer drill"
        assert len(memory_repo.tables["offers"]) == 2

    def test_failed_attribute_insert_rolls_back_everything(self, memory_repo, fake_feed) -> None:
        service = _service(memory_repo, fake_feed)
        service.sync_one("offer")
        before = memory_repo._state()

        memory_repo.fail_on_attribute_insert = True
        with pytest.raises(SyncError) as exc_info:
            service.sync_one("offer")

        assert exc_info.value.kind == "offer"
        assert memory_repo._state() == before
        assert memory_repo.rollbacks >= 1

    def test_failed_first_sync_leaves_no_tables(self, memory_repo, fake_feed) -> None:
        memory_repo.fail_on_upsert_table = "offers"

        with pytest.raises(SyncError):
            _service(memory_repo, fake_feed).sync_one("offers")

        assert memory_repo.created == set()
        assert memory_repo.tables == {}

    def test_fetch_failure_never_touches_database(self, memory_repo, failing_feed) -> None:
        with pytest.raises(SyncError) as exc_info:
            _service(memory_repo, failing_feed).sync_one("currency")

        assert "connection refused" in exc_info.value.message
        assert memory_repo.connect_count == 0

    def test_fetch_failure_is_logged(self, memory_repo, failing_feed, log_records) -> None:
        with pytest.raises(SyncError):
            _service(memory_repo, failing_feed).sync_one("currency")

        [record] = log_records
        assert record["level"].name == "ERROR"
        assert "currency" in record["message"]
        assert "connection refused" in record["message"]

    def test_parse_failure_raises_sync_error(self, memory_repo, make_feed) -> None:
        with pytest.raises(SyncError):
            _service(memory_repo, make_feed(content=b"<shop><offers>")).sync_one("offer")

        assert memory_repo.connect_count == 0

    def test_unknown_kind_raises_before_fetch(self, memory_repo, fake_feed) -> None:
        with pytest.raises(UnknownKindError):
            _service(memory_repo, fake_feed).sync_one("products")

        assert fake_feed.fetch_count == 0

    def test_busy_advisory_lock_aborts(self, memory_repo, fake_feed) -> None:
        memory_repo.lock_available = False

        with pytest.raises(SyncError) as exc_info:
            _service(memory_repo, fake_feed).sync_one("currency")

        assert "advisory lock" in exc_info.value.message
        assert memory_repo.tables == {}

    def test_busy_advisory_lock_is_logged(self, memory_repo, fake_feed, log_records) -> None:
        memory_repo.lock_available = False

        with pytest.raises(SyncError):
            _service(memory_repo, fake_feed).sync_one("currency")

        [record] = log_records
        assert record["level"].name == "WARNING"
        assert "advisory lock" in record["message"]

    def test_lock_can_be_disabled(self, memory_repo, fake_feed) -> None:
        memory_repo.lock_available = False

        result = _service(memory_repo, fake_feed, advisory_lock=False).sync_one("currency")

        assert result.upserted == 3

    def test_empty_section_syncs_zero_rows(self, memory_repo, make_feed) -> None:
        feed = make_feed(content=b"<shop><name>x</name><offers><offer><vendorCode>A</vendorCode></offer></offers></shop>")

        result = _service(memory_repo, feed).sync_one("category")

        assert result.upserted == 0
        assert memory_repo.tables["categories"] == {}


class TestSyncAll:
    """Tests para CatalogSynchronizer.sync_all."""

    def test_syncs_every_kind_in_order(self, memory_repo, fake_feed) -> None:
        results = _service(memory_repo, fake_feed).sync_all()

        assert [r.table for r in results] == ["currencies", "categories", "offers"]
        assert [r.upserted for r in results] == [3, 3, 2]
        assert [r.skipped for r in results] == [1, 2, 1]
        assert results[2].attributes_replaced == 3

    def test_failure_keeps_previous_kinds_and_stops(self, memory_repo, fake_feed) -> None:
        memory_repo.fail_on_upsert_table = "categories"

        with pytest.raises(SyncError) as exc_info:
            _service(memory_repo, fake_feed).sync_all()

        assert exc_info.value.kind == "category"
        assert set(memory_repo.tables["currencies"]) == {"RUR", "USD", "EUR"}
        assert "categories" not in memory_repo.tables
        assert "offers" not in memory_repo.tables
        assert fake_feed.fetch_count == 2


class TestDedupe:
    """Tests para la deduplicacion por clave natural."""

    def test_last_occurrence_wins(self) -> None:
        records = [
            CategoryRecord(category_id=1, name="first"),
            CategoryRecord(category_id=2, name="other"),
            CategoryRecord(category_id=1, name="last"),
        ]

        deduped = _dedupe_by_key(records, "category_id")

        assert [r.name for r in deduped] == ["last", "other"]

    def test_duplicate_vendor_codes_in_feed(self, memory_repo, make_feed) -> None:
        feed = make_feed(
            content=(
                b"<shop><name>x</name><offers>"
                b'<offer id="1"><vendorCode>A</vendorCode><param name="p">1</param></offer>'
                b'<offer id="2"><vendorCode>A</vendorCode><param name="p">2</param></offer>'
                b"</offers></shop>"
            )
        )

        result = _service(memory_repo, feed).sync_one("offer")

        assert result.upserted == 1
        assert memory_repo.tables["offers"]["A"]["offer_id"] == "2"
        assert memory_repo.attributes_for("A") == [("p", "2")]


class TestSyncResult:
    def test_summary(self) -> None:
        result = SyncResult(kind=EntityKind.OFFER, table="offers", upserted=2, attributes_replaced=3)

        assert result.summary() == "Tabla offers actualizada correctamente: 2 filas, 3 atributos"

    def test_summary_reports_skipped_elements(self) -> None:
        result = SyncResult(kind=EntityKind.CATEGORY, table="categories", upserted=3, skipped=2)

        assert result.summary() == "Tabla categories actualizada correctamente: 3 filas, 2 omitidos"
