"""Storage backend: repository protocols, SQLite implementation, factory."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from price_aggregator.core.config import StorageConfig
from price_aggregator.core.exceptions import AssetNotFoundError, StorageError
from price_aggregator.core.models import (
    TRACKABLE_TYPES,
    Asset,
    AssetId,
    AssetType,
    PredictionTimeframe,
    PricePrediction,
    PriceRecord,
    ValuationUpdate,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class AssetRepository(Protocol):
    """Asset access needed by the aggregation core.

    Creation and deletion belong to the asset-management collaborator;
    ``save_asset`` and ``list_assets`` exist for that side and for seeding.
    """

    async def get_asset(self, asset_id: AssetId) -> Asset | None: ...
    async def list_trackable_assets(self) -> list[Asset]: ...
    async def update_valuation(self, asset_id: AssetId, update: ValuationUpdate) -> Asset: ...
    async def save_asset(self, asset: Asset) -> None: ...
    async def list_assets(self) -> list[Asset]: ...


@runtime_checkable
class PriceHistoryStore(Protocol):
    """Append-only price time series."""

    async def append_price(self, record: PriceRecord) -> bool: ...
    async def get_prices_since(self, asset_id: AssetId, since: datetime) -> list[PriceRecord]: ...
    async def get_latest_price(self, asset_id: AssetId) -> PriceRecord | None: ...
    async def delete_prices_before(self, cutoff: datetime) -> int: ...


@runtime_checkable
class PredictionStore(Protocol):
    """Generated predictions, kept until they expire."""

    async def save_prediction(self, prediction: PricePrediction) -> None: ...
    async def list_active_predictions(
        self,
        asset_id: AssetId,
        now: datetime,
        timeframe: PredictionTimeframe | None = None,
    ) -> list[PricePrediction]: ...


def _ts(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 so lexical order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SqliteStore:
    """SQLite implementation of the asset, history and prediction protocols.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS assets (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL,
                    symbol TEXT,
                    isin TEXT,
                    quantity REAL NOT NULL DEFAULT 0,
                    purchase_price REAL NOT NULL DEFAULT 0,
                    currency TEXT NOT NULL DEFAULT 'EUR',
                    brand TEXT,
                    model TEXT,
                    year INTEGER,
                    condition TEXT,
                    mileage INTEGER,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    current_price REAL,
                    total_value REAL,
                    total_gain REAL,
                    total_gain_percent REAL,
                    last_price_update TEXT,
                    created_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS price_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asset_id TEXT NOT NULL,
                    price REAL NOT NULL,
                    source TEXT NOT NULL,
                    recorded_at TEXT NOT NULL,
                    UNIQUE(asset_id, recorded_at, source)
                )""",
                # Indexes
                "CREATE INDEX IF NOT EXISTS idx_assets_type ON assets(type)",
                "CREATE INDEX IF NOT EXISTS idx_history_asset_time ON price_history(asset_id, recorded_at)",
                "CREATE INDEX IF NOT EXISTS idx_history_recorded_at ON price_history(recorded_at)",
            ],
        ),
        2: (
            "Prediction persistence",
            [
                """CREATE TABLE IF NOT EXISTS predictions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    asset_id TEXT NOT NULL,
                    predicted_price REAL NOT NULL,
                    confidence REAL NOT NULL,
                    timeframe TEXT NOT NULL,
                    algorithm TEXT NOT NULL,
                    factors TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )""",
                "CREATE INDEX IF NOT EXISTS idx_predictions_asset_expiry ON predictions(asset_id, expires_at)",
            ],
        ),
    }

    def __init__(self, config: StorageConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Asset Operations ---

    async def save_asset(self, asset: Asset) -> None:
        try:
            await self._db.execute(
                """INSERT OR REPLACE INTO assets
                   (id, name, type, symbol, isin, quantity, purchase_price,
                    currency, brand, model, year, condition, mileage, is_active,
                    current_price, total_value, total_gain, total_gain_percent,
                    last_price_update)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    asset.id,
                    asset.name,
                    str(asset.type),
                    asset.symbol,
                    asset.isin,
                    asset.quantity,
                    asset.purchase_price,
                    asset.currency,
                    asset.brand,
                    asset.model,
                    asset.year,
                    asset.condition,
                    asset.mileage,
                    int(asset.is_active),
                    asset.current_price,
                    asset.total_value,
                    asset.total_gain,
                    asset.total_gain_percent,
                    _ts(asset.last_price_update) if asset.last_price_update else None,
                ),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to save asset: {e}",
                context={"operation": "insert", "table": "assets", "asset_id": asset.id},
            ) from e

    async def get_asset(self, asset_id: AssetId) -> Asset | None:
        try:
            async with self._db.execute(
                "SELECT * FROM assets WHERE id = ?", (asset_id,)
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_asset(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to get asset: {e}",
                context={"operation": "query", "table": "assets", "asset_id": asset_id},
            ) from e

    async def list_assets(self) -> list[Asset]:
        try:
            async with self._db.execute("SELECT * FROM assets ORDER BY id") as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_asset(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list assets: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e

    async def list_trackable_assets(self) -> list[Asset]:
        """Active assets of a trackable type.

        Financial assets without a symbol are returned too; the orchestrator
        reports them as failures instead of silently dropping them.
        """
        trackable = sorted(str(t) for t in TRACKABLE_TYPES)
        query = (
            "SELECT * FROM assets WHERE is_active = 1"
            f" AND type IN ({', '.join('?' * len(trackable))})"
            " ORDER BY id"
        )
        try:
            async with self._db.execute(query, trackable) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_asset(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to list trackable assets: {e}",
                context={"operation": "query", "table": "assets"},
            ) from e

    async def update_valuation(self, asset_id: AssetId, update: ValuationUpdate) -> Asset:
        try:
            cursor = await self._db.execute(
                """UPDATE assets SET current_price = ?, total_value = ?,
                   total_gain = ?, total_gain_percent = ?, last_price_update = ?
                   WHERE id = ?""",
                (
                    update.current_price,
                    update.total_value,
                    update.total_gain,
                    update.total_gain_percent,
                    _ts(update.last_price_update),
                    asset_id,
                ),
            )
            await self._db.commit()
            updated = cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to update valuation: {e}",
                context={"operation": "update", "table": "assets", "asset_id": asset_id},
            ) from e

        if updated == 0:
            raise AssetNotFoundError(
                "Asset not found", context={"asset_id": asset_id}
            )
        asset = await self.get_asset(asset_id)
        if asset is None:
            raise AssetNotFoundError("Asset not found", context={"asset_id": asset_id})
        return asset

    # --- Price History Operations ---

    async def append_price(self, record: PriceRecord) -> bool:
        """Insert a record; returns False when the same point already exists."""
        try:
            cursor = await self._db.execute(
                """INSERT OR IGNORE INTO price_history
                   (asset_id, price, source, recorded_at)
                   VALUES (?, ?, ?, ?)""",
                (record.asset_id, record.price, record.source, _ts(record.recorded_at)),
            )
            await self._db.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(
                f"Failed to append price: {e}",
                context={
                    "operation": "insert",
                    "table": "price_history",
                    "asset_id": record.asset_id,
                },
            ) from e

    async def get_prices_since(self, asset_id: AssetId, since: datetime) -> list[PriceRecord]:
        try:
            async with self._db.execute(
                """SELECT * FROM price_history
                   WHERE asset_id = ? AND recorded_at >= ?
                   ORDER BY recorded_at ASC, id ASC""",
                (asset_id, _ts(since)),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_price_record(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to query price history: {e}",
                context={"operation": "query", "table": "price_history", "asset_id": asset_id},
            ) from e

    async def get_latest_price(self, asset_id: AssetId) -> PriceRecord | None:
        try:
            async with self._db.execute(
                """SELECT * FROM price_history WHERE asset_id = ?
                   ORDER BY recorded_at DESC, id DESC LIMIT 1""",
                (asset_id,),
            ) as cursor:
                row = await cursor.fetchone()
            return self._row_to_price_record(row) if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to query latest price: {e}",
                context={"operation": "query", "table": "price_history", "asset_id": asset_id},
            ) from e

    async def delete_prices_before(self, cutoff: datetime) -> int:
        try:
            cursor = await self._db.execute(
                "DELETE FROM price_history WHERE recorded_at < ?", (_ts(cutoff),)
            )
            await self._db.commit()
            return cursor.rowcount
        except Exception as e:
            raise StorageError(
                f"Failed to prune price history: {e}",
                context={"operation": "delete", "table": "price_history"},
            ) from e

    # --- Prediction Operations ---

    async def save_prediction(self, prediction: PricePrediction) -> None:
        try:
            await self._db.execute(
                """INSERT INTO predictions
                   (asset_id, predicted_price, confidence, timeframe, algorithm,
                    factors, created_at, expires_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    prediction.asset_id,
                    prediction.predicted_price,
                    prediction.confidence,
                    str(prediction.timeframe),
                    prediction.algorithm,
                    json.dumps(prediction.factors, default=str),
                    _ts(prediction.created_at),
                    _ts(prediction.expires_at),
                ),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to save prediction: {e}",
                context={
                    "operation": "insert",
                    "table": "predictions",
                    "asset_id": prediction.asset_id,
                },
            ) from e

    async def list_active_predictions(
        self,
        asset_id: AssetId,
        now: datetime,
        timeframe: PredictionTimeframe | None = None,
    ) -> list[PricePrediction]:
        """Unexpired predictions for an asset, newest first."""
        query = "SELECT * FROM predictions WHERE asset_id = ? AND expires_at > ?"
        params: list = [asset_id, _ts(now)]
        if timeframe is not None:
            query += " AND timeframe = ?"
            params.append(str(timeframe))
        query += " ORDER BY created_at DESC, id DESC"
        try:
            async with self._db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_prediction(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to query predictions: {e}",
                context={"operation": "query", "table": "predictions", "asset_id": asset_id},
            ) from e

    # --- Row Mapping ---

    @staticmethod
    def _row_to_asset(row: aiosqlite.Row) -> Asset:
        last_update = row["last_price_update"]
        return Asset(
            id=row["id"],
            name=row["name"],
            type=AssetType(row["type"]),
            symbol=row["symbol"],
            isin=row["isin"],
            quantity=row["quantity"],
            purchase_price=row["purchase_price"],
            currency=row["currency"],
            brand=row["brand"],
            model=row["model"],
            year=row["year"],
            condition=row["condition"],
            mileage=row["mileage"],
            is_active=bool(row["is_active"]),
            current_price=row["current_price"],
            total_value=row["total_value"],
            total_gain=row["total_gain"],
            total_gain_percent=row["total_gain_percent"],
            last_price_update=datetime.fromisoformat(last_update) if last_update else None,
        )

    @staticmethod
    def _row_to_price_record(row: aiosqlite.Row) -> PriceRecord:
        return PriceRecord(
            asset_id=row["asset_id"],
            price=row["price"],
            source=row["source"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )

    @staticmethod
    def _row_to_prediction(row: aiosqlite.Row) -> PricePrediction:
        return PricePrediction(
            asset_id=row["asset_id"],
            predicted_price=row["predicted_price"],
            confidence=row["confidence"],
            timeframe=PredictionTimeframe(row["timeframe"]),
            algorithm=row["algorithm"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            factors=json.loads(row["factors"]),
        )


async def create_store(config: StorageConfig) -> SqliteStore:
    """Create and initialize the SQLite store, creating its directory if needed."""
    if config.sqlite_path != ":memory:":
        Path(config.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
    store = SqliteStore(config)
    await store.initialize()
    return store
