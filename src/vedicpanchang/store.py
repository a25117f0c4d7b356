"""Panchang cache/store — append-only SQLAlchemy tables keyed by (date, rounded lat, rounded lng, UTC offset)."""

import logging
from datetime import datetime
from threading import Lock

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from vedicpanchang.errors import CacheUnavailable
from vedicpanchang.models import (
    DayDuration,
    LunarMonth,
    MuhurtaResult,
    MuhurtaWindow,
    Nakshatra,
    ObservationPoint,
    PanchangResult,
    Period,
    Ritu,
    Tithi,
    Weekday,
    YearInfo,
)

logger = logging.getLogger(__name__)

metadata = sa.MetaData()

panchang_data = sa.Table(
    "panchang_data",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column("date", sa.Date, nullable=False),
    sa.Column("lat_e4", sa.Integer, nullable=False),
    sa.Column("lon_e4", sa.Integer, nullable=False),
    sa.Column("latitude", sa.Float, nullable=False),
    sa.Column("longitude", sa.Float, nullable=False),
    sa.Column("timezone", sa.Float, nullable=False),
    sa.Column("offset_minutes", sa.Integer, nullable=False),
    sa.Column("sun_rise", sa.String(8), nullable=True),
    sa.Column("sun_set", sa.String(8), nullable=True),
    sa.Column("weekday_number", sa.Integer, nullable=False),
    sa.Column("weekday_name", sa.String(16), nullable=False),
    sa.Column("vedic_weekday_number", sa.Integer, nullable=False),
    sa.Column("vedic_weekday_name", sa.String(16), nullable=False),
    sa.Column("lunar_month_number", sa.Integer, nullable=False),
    sa.Column("lunar_month_name", sa.String(32), nullable=False),
    sa.Column("lunar_month_full_name", sa.String(48), nullable=False),
    sa.Column("adhika", sa.Integer, nullable=False),
    sa.Column("nija", sa.Integer, nullable=False),
    sa.Column("kshaya", sa.Integer, nullable=False),
    sa.Column("ritu_number", sa.Integer, nullable=False),
    sa.Column("ritu_name", sa.String(32), nullable=False),
    sa.Column("aayanam", sa.String(16), nullable=False),
    sa.Column("tithi_number", sa.Integer, nullable=False),
    sa.Column("tithi_name", sa.String(32), nullable=False),
    sa.Column("paksha", sa.String(16), nullable=False),
    sa.Column("tithi_completes_at", sa.String(19), nullable=False),
    sa.Column("tithi_left_percentage", sa.Float, nullable=False),
    sa.Column("nakshatra_number", sa.Integer, nullable=False),
    sa.Column("nakshatra_name", sa.String(32), nullable=False),
    sa.Column("nakshatra_starts_at", sa.String(19), nullable=False),
    sa.Column("nakshatra_ends_at", sa.String(19), nullable=False),
    sa.Column("nakshatra_left_percentage", sa.Float, nullable=False),
    sa.Column("saka_salivahana_number", sa.Integer, nullable=False),
    sa.Column("saka_salivahana_name_number", sa.Integer, nullable=False),
    sa.Column("saka_salivahana_year_name", sa.String(32), nullable=False),
    sa.Column("vikram_chaitradi_number", sa.Integer, nullable=False),
    sa.Column("vikram_chaitradi_name_number", sa.Integer, nullable=False),
    sa.Column("vikram_chaitradi_year_name", sa.String(32), nullable=False),
    sa.Column("day_duration_hours", sa.Integer, nullable=True),
    sa.Column("day_duration_minutes", sa.Integer, nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    sa.UniqueConstraint(
        "date", "lat_e4", "lon_e4", "offset_minutes", name="uq_panchang_key"
    ),
)


def _period_table(name: str) -> sa.Table:
    return sa.Table(
        name,
        metadata,
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "panchang_id",
            sa.Integer,
            sa.ForeignKey("panchang_data.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("number", sa.Integer, nullable=False),
        sa.Column("name", sa.String(32), nullable=False),
        sa.Column("completion", sa.String(19), nullable=False),
        sa.Column("left_percentage", sa.Float, nullable=False),
    )


panchang_yogas = _period_table("panchang_yogas")
panchang_karanas = _period_table("panchang_karanas")

panchang_muhurtas = sa.Table(
    "panchang_muhurtas",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
    sa.Column(
        "panchang_id",
        sa.Integer,
        sa.ForeignKey("panchang_data.id", ondelete="CASCADE"),
        nullable=False,
    ),
    sa.Column("position", sa.Integer, nullable=False),
    sa.Column("key", sa.String(32), nullable=False),
    sa.Column("name", sa.String(32), nullable=False),
    sa.Column("start", sa.String(32), nullable=False),  # ISO 8601 with offset
    sa.Column("end", sa.String(32), nullable=False),
    sa.Column("category", sa.String(16), nullable=False),
    sa.Column("usage", sa.String(16), nullable=False),
    sa.Column("description", sa.Text, nullable=False),
)


def create_store_engine(database_url: str) -> Engine:
    """SQLAlchemy engine for `database_url`; in-memory SQLite shares one connection."""
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        return sa.create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return sa.create_engine(database_url, connect_args={"check_same_thread": False})
    return sa.create_engine(database_url, pool_pre_ping=True)


def _panchang_row(point: ObservationPoint, p: PanchangResult) -> dict:
    day, lat_e4, lon_e4, offset_minutes = point.cache_key()
    return {
        "date": day,
        "lat_e4": lat_e4,
        "lon_e4": lon_e4,
        "offset_minutes": offset_minutes,
        "latitude": point.latitude,
        "longitude": point.longitude,
        "timezone": point.timezone_offset_hours,
        "sun_rise": p.sun_rise,
        "sun_set": p.sun_set,
        "weekday_number": p.weekday.weekday_number,
        "weekday_name": p.weekday.weekday_name,
        "vedic_weekday_number": p.weekday.vedic_weekday_number,
        "vedic_weekday_name": p.weekday.vedic_weekday_name,
        "lunar_month_number": p.lunar_month.lunar_month_number,
        "lunar_month_name": p.lunar_month.lunar_month_name,
        "lunar_month_full_name": p.lunar_month.lunar_month_full_name,
        "adhika": p.lunar_month.adhika,
        "nija": p.lunar_month.nija,
        "kshaya": p.lunar_month.kshaya,
        "ritu_number": p.ritu.number,
        "ritu_name": p.ritu.name,
        "aayanam": p.aayanam,
        "tithi_number": p.tithi.number,
        "tithi_name": p.tithi.name,
        "paksha": p.tithi.paksha,
        "tithi_completes_at": p.tithi.completes_at,
        "tithi_left_percentage": p.tithi.left_percentage,
        "nakshatra_number": p.nakshatra.number,
        "nakshatra_name": p.nakshatra.name,
        "nakshatra_starts_at": p.nakshatra.starts_at,
        "nakshatra_ends_at": p.nakshatra.ends_at,
        "nakshatra_left_percentage": p.nakshatra.left_percentage,
        "saka_salivahana_number": p.year.saka_salivahana_number,
        "saka_salivahana_name_number": p.year.saka_salivahana_name_number,
        "saka_salivahana_year_name": p.year.saka_salivahana_year_name,
        "vikram_chaitradi_number": p.year.vikram_chaitradi_number,
        "vikram_chaitradi_name_number": p.year.vikram_chaitradi_name_number,
        "vikram_chaitradi_year_name": p.year.vikram_chaitradi_year_name,
    }


def _periods(conn: Connection, table: sa.Table, panchang_id: int) -> tuple[Period, ...]:
    rows = conn.execute(
        sa.select(table)
        .where(table.c.panchang_id == panchang_id)
        .order_by(table.c.position)
    ).mappings()
    return tuple(
        Period(
            number=r["number"],
            name=r["name"],
            completion=r["completion"],
            left_percentage=r["left_percentage"],
        )
        for r in rows
    )


def _panchang_from_row(conn: Connection, row) -> PanchangResult:
    return PanchangResult(
        sun_rise=row["sun_rise"],
        sun_set=row["sun_set"],
        weekday=Weekday(
            weekday_number=row["weekday_number"],
            weekday_name=row["weekday_name"],
            vedic_weekday_number=row["vedic_weekday_number"],
            vedic_weekday_name=row["vedic_weekday_name"],
        ),
        tithi=Tithi(
            number=row["tithi_number"],
            name=row["tithi_name"],
            paksha=row["paksha"],
            completes_at=row["tithi_completes_at"],
            left_percentage=row["tithi_left_percentage"],
        ),
        nakshatra=Nakshatra(
            number=row["nakshatra_number"],
            name=row["nakshatra_name"],
            starts_at=row["nakshatra_starts_at"],
            ends_at=row["nakshatra_ends_at"],
            left_percentage=row["nakshatra_left_percentage"],
        ),
        yoga=_periods(conn, panchang_yogas, row["id"]),
        karana=_periods(conn, panchang_karanas, row["id"]),
        lunar_month=LunarMonth(
            lunar_month_number=row["lunar_month_number"],
            lunar_month_name=row["lunar_month_name"],
            lunar_month_full_name=row["lunar_month_full_name"],
            adhika=row["adhika"],
            nija=row["nija"],
            kshaya=row["kshaya"],
        ),
        ritu=Ritu(number=row["ritu_number"], name=row["ritu_name"]),
        aayanam=row["aayanam"],
        year=YearInfo(
            saka_salivahana_number=row["saka_salivahana_number"],
            saka_salivahana_name_number=row["saka_salivahana_name_number"],
            saka_salivahana_year_name=row["saka_salivahana_year_name"],
            vikram_chaitradi_number=row["vikram_chaitradi_number"],
            vikram_chaitradi_name_number=row["vikram_chaitradi_name_number"],
            vikram_chaitradi_year_name=row["vikram_chaitradi_year_name"],
        ),
    )


class PanchangStore:
    """Database-first cache of computed Panchang results.

    Rows are never updated: a `put` for a key that already exists is a no-op
    (first writer wins), since results for a key are deterministic. Every
    database failure surfaces as CacheUnavailable.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._schema_ready = False
        self._schema_lock = Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "PanchangStore":
        try:
            engine = create_store_engine(database_url)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cannot open cache database: {e}") from e
        return cls(engine)

    def _ensure_schema(self) -> None:
        with self._schema_lock:
            if self._schema_ready:
                return
            try:
                metadata.create_all(self._engine)
            except SQLAlchemyError as e:
                raise CacheUnavailable(f"Cannot prepare cache schema: {e}") from e
            self._schema_ready = True

    def _find(self, conn: Connection, point: ObservationPoint):
        day, lat_e4, lon_e4, offset_minutes = point.cache_key()
        return (
            conn.execute(
                sa.select(panchang_data).where(
                    panchang_data.c.date == day,
                    panchang_data.c.lat_e4 == lat_e4,
                    panchang_data.c.lon_e4 == lon_e4,
                    panchang_data.c.offset_minutes == offset_minutes,
                )
            )
            .mappings()
            .first()
        )

    def get(self, point: ObservationPoint) -> PanchangResult | None:
        self._ensure_schema()
        try:
            with self._engine.connect() as conn:
                row = self._find(conn, point)
                if row is None:
                    return None
                return _panchang_from_row(conn, row)
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache read failed: {e}") from e

    def get_muhurta(self, point: ObservationPoint) -> MuhurtaResult | None:
        self._ensure_schema()
        try:
            with self._engine.connect() as conn:
                row = self._find(conn, point)
                if row is None or row["day_duration_hours"] is None:
                    return None
                rows = conn.execute(
                    sa.select(panchang_muhurtas)
                    .where(panchang_muhurtas.c.panchang_id == row["id"])
                    .order_by(panchang_muhurtas.c.position)
                ).mappings()
                tz = point.tzinfo
                windows = tuple(
                    MuhurtaWindow(
                        key=r["key"],
                        name=r["name"],
                        start=datetime.fromisoformat(r["start"]).astimezone(tz),
                        end=datetime.fromisoformat(r["end"]).astimezone(tz),
                        category=r["category"],
                        usage=r["usage"],
                        description=r["description"],
                    )
                    for r in rows
                )
                return MuhurtaResult(
                    windows=windows,
                    day_duration=DayDuration(
                        hours=row["day_duration_hours"],
                        minutes=row["day_duration_minutes"],
                    ),
                )
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache read failed: {e}") from e

    def put(
        self,
        point: ObservationPoint,
        panchang: PanchangResult,
        muhurta: MuhurtaResult | None = None,
    ) -> bool:
        """Persist a result. Returns False when the key was already stored."""
        self._ensure_schema()
        row = _panchang_row(point, panchang)
        if muhurta is not None:
            row["day_duration_hours"] = muhurta.day_duration.hours
            row["day_duration_minutes"] = muhurta.day_duration.minutes
        try:
            with self._engine.begin() as conn:
                panchang_id = conn.execute(
                    panchang_data.insert().values(**row)
                ).inserted_primary_key[0]
                for table, periods in (
                    (panchang_yogas, panchang.yoga),
                    (panchang_karanas, panchang.karana),
                ):
                    if periods:
                        conn.execute(
                            table.insert(),
                            [
                                {
                                    "panchang_id": panchang_id,
                                    "position": i,
                                    "number": p.number,
                                    "name": p.name,
                                    "completion": p.completion,
                                    "left_percentage": p.left_percentage,
                                }
                                for i, p in enumerate(periods, start=1)
                            ],
                        )
                if muhurta is not None:
                    conn.execute(
                        panchang_muhurtas.insert(),
                        [
                            {
                                "panchang_id": panchang_id,
                                "position": i,
                                "key": w.key,
                                "name": w.name,
                                "start": w.start.isoformat(),
                                "end": w.end.isoformat(),
                                "category": w.category,
                                "usage": w.usage,
                                "description": w.description,
                            }
                            for i, w in enumerate(muhurta.windows, start=1)
                        ],
                    )
        except IntegrityError:
            logger.debug("panchang for %s already stored; keeping first write", row["date"])
            return False
        except SQLAlchemyError as e:
            raise CacheUnavailable(f"Cache write failed: {e}") from e
        logger.debug(
            "stored panchang for %s (%d, %d, %+d min)",
            row["date"],
            row["lat_e4"],
            row["lon_e4"],
            row["offset_minutes"],
        )
        return True
