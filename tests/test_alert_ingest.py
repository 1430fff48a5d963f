"""
Tests for the satellite alert ingestion job.

GFW and FIRMS clients are replaced with AsyncMocks returning canned rows;
parsing, storage and state aggregation run for real against SQLite.
"""
from datetime import date, datetime
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.alerts.ingest import AlertIngestionJob, run_alert_ingestion
from app.core.models import ForestAlert, ForestStat
from app.core.store import ForestStore

NOW = datetime(2024, 6, 8, 12, 0)

GFW_ROWS = [
    {
        "latitude": 21.15,
        "longitude": 79.08,
        "gfw_integrated_alerts__date": "2024-06-07",
        "gfw_integrated_alerts__confidence": "high",
    },
    {
        "latitude": 19.5,
        "longitude": 80.5,
        "gfw_integrated_alerts__date": "2024-06-06",
        "gfw_integrated_alerts__confidence": "nominal",
    },
]

FIRMS_CSV = "\n".join([
    "latitude,longitude,bright_ti4,acq_date,acq_time,confidence,frp",
    "30.07,79.02,331.2,2024-06-08,0845,h,4.1",
    "30.10,79.05,320.0,2024-06-08,0850,n,1.2",
])


def _gfw_client(rows=None, error=None):
    client = MagicMock()
    if error is not None:
        client.fetch_alerts = AsyncMock(side_effect=error)
    else:
        client.fetch_alerts = AsyncMock(return_value=rows or [])
    return client


def _firms_client(text="", error=None):
    client = MagicMock()
    if error is not None:
        client.fetch_fire_csv = AsyncMock(side_effect=error)
    else:
        client.fetch_fire_csv = AsyncMock(return_value=text)
    return client


@pytest.fixture
def firms_settings(make_settings):
    return make_settings(nasa_firms_api_key="MAPKEY")


def _job(settings, db, gfw, firms):
    return AlertIngestionJob(settings, db, gfw, firms, clock=lambda: NOW)


@pytest.mark.unit
class TestAlertIngestionJob:

    @pytest.mark.asyncio
    async def test_stores_both_sources(self, firms_settings, test_db):
        result = await _job(
            firms_settings, test_db, _gfw_client(GFW_ROWS), _firms_client(FIRMS_CSV)
        ).run()

        assert result == {"gfw_count": 2, "fire_count": 2, "total": 4, "inserted": 4}

        sources = sorted(a.data_source.value for a in test_db.query(ForestAlert).all())
        assert sources == ["GFW_GLAD", "GFW_GLAD", "NASA_FIRMS", "NASA_FIRMS"]

    @pytest.mark.asyncio
    async def test_query_window_uses_lookback(self, firms_settings, test_db):
        gfw = _gfw_client(GFW_ROWS)
        firms = _firms_client(FIRMS_CSV)

        await _job(firms_settings, test_db, gfw, firms).run()

        gfw.fetch_alerts.assert_awaited_once_with(
            date(2024, 6, 1), date(2024, 6, 8), iso="IND", limit=200
        )
        firms.fetch_fire_csv.assert_awaited_once_with(country="IND", day_range=1)

    @pytest.mark.asyncio
    async def test_rerun_inserts_nothing(self, firms_settings, test_db):
        gfw = _gfw_client(GFW_ROWS)
        firms = _firms_client(FIRMS_CSV)

        await _job(firms_settings, test_db, gfw, firms).run()
        result = await _job(firms_settings, test_db, gfw, firms).run()

        assert result["total"] == 4
        assert result["inserted"] == 0
        assert test_db.query(ForestAlert).count() == 4

    @pytest.mark.asyncio
    async def test_missing_firms_key_skips_fires(self, settings, test_db):
        firms = _firms_client(FIRMS_CSV)

        result = await _job(settings, test_db, _gfw_client(GFW_ROWS), firms).run()

        assert result["fire_count"] == 0
        assert result["gfw_count"] == 2
        firms.fetch_fire_csv.assert_not_called()

    @pytest.mark.asyncio
    async def test_gfw_failure_keeps_fire_alerts(self, firms_settings, test_db):
        result = await _job(
            firms_settings,
            test_db,
            _gfw_client(error=Exception("HTTP 503")),
            _firms_client(FIRMS_CSV),
        ).run()

        assert result == {"gfw_count": 0, "fire_count": 2, "total": 2, "inserted": 2}

    @pytest.mark.asyncio
    async def test_firms_failure_keeps_gfw_alerts(self, firms_settings, test_db):
        result = await _job(
            firms_settings,
            test_db,
            _gfw_client(GFW_ROWS),
            _firms_client(error=Exception("timeout")),
        ).run()

        assert result["gfw_count"] == 2
        assert result["fire_count"] == 0

    @pytest.mark.asyncio
    async def test_nothing_fetched(self, settings, test_db):
        result = await _job(settings, test_db, _gfw_client([]), _firms_client("")).run()
        assert result == {"gfw_count": 0, "fire_count": 0, "total": 0, "inserted": 0}

    @pytest.mark.asyncio
    async def test_insert_error_is_tolerated(self, firms_settings, test_db):
        with patch.object(ForestStore, "insert_alerts", side_effect=RuntimeError("db down")):
            result = await _job(
                firms_settings, test_db, _gfw_client(GFW_ROWS), _firms_client(FIRMS_CSV)
            ).run()

        assert result["total"] == 4
        assert result["inserted"] == 0

    @pytest.mark.asyncio
    async def test_nan_coordinate_row_does_not_drop_batch(self, firms_settings, test_db):
        csv_text = "\n".join([
            "latitude,longitude,bright_ti4,acq_date,acq_time,confidence,frp",
            "30.07,79.02,331.2,2024-06-08,0845,h,4.1",
            "nan,79.03,325.0,2024-06-08,0847,h,2.0",
            "30.10,79.05,320.0,2024-06-08,0850,n,1.2",
        ])

        result = await _job(
            firms_settings, test_db, _gfw_client(GFW_ROWS), _firms_client(csv_text)
        ).run()

        assert result["fire_count"] == 2
        assert result["inserted"] == 4
        assert test_db.query(ForestAlert).count() == 4

    @pytest.mark.asyncio
    async def test_refreshes_state_counts(self, firms_settings, test_db):
        await _job(
            firms_settings, test_db, _gfw_client(GFW_ROWS), _firms_client(FIRMS_CSV)
        ).run()

        counts = {s.state: s.alerts_count for s in test_db.query(ForestStat).all()}
        assert counts["Uttarakhand"] == 2
        assert sum(counts.values()) == 4


@pytest.mark.unit
class TestRunAlertIngestion:

    @pytest.mark.asyncio
    async def test_builds_clients_from_settings(self, firms_settings, test_db):
        with patch(
            "app.sources.gfw.client.GFWClient.fetch_alerts",
            AsyncMock(return_value=GFW_ROWS),
        ), patch(
            "app.sources.firms.client.FIRMSClient.fetch_fire_csv",
            AsyncMock(return_value=FIRMS_CSV),
        ):
            result = await run_alert_ingestion(firms_settings, test_db)

        assert result["total"] == 4
