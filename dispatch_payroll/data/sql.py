"""
SQLAlchemy-backed store.

Plain String columns for enums; the pydantic enums validate on the way out.
Automatic bonuses carry a partial unique index on (driver_id, week_start) so
that two racing reconciliation passes cannot both insert a row for the same
driver and week.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import Date, DateTime, Index, Numeric, String, Text, create_engine, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from dispatch_payroll.core.errors import NotFoundError, PersistenceError
from dispatch_payroll.data.models import Bonus, BonusType, Driver, Load
from dispatch_payroll.data.repository import DispatchRepository


class Base(DeclarativeBase):
    pass


class DriverRow(Base):
    __tablename__ = "drivers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    driver_name: Mapped[str] = mapped_column(String(200), nullable=False)
    driver_type: Mapped[str] = mapped_column(String(32), nullable=False, default="company_driver")
    truck_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class LoadRow(Base):
    __tablename__ = "loads"
    __table_args__ = (
        Index("ix_loads_pickup_date", "pickup_date"),
        Index("ix_loads_driver_id", "driver_id"),
    )

    load_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    pickup_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    origin: Mapped[str] = mapped_column(String(200), nullable=False)
    destination: Mapped[str] = mapped_column(String(200), nullable=False)
    # Load.rate and Bonus.amount are validated to whole cents.
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    load_type: Mapped[str] = mapped_column(String(16), nullable=False)
    # No foreign key: deleting a driver leaves its loads in place.
    driver_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    parent_load_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class BonusRow(Base):
    __tablename__ = "bonuses"
    __table_args__ = (
        Index(
            "uq_bonuses_automatic_driver_week",
            "driver_id",
            "week_start",
            unique=True,
            postgresql_where=text("bonus_type = 'automatic'"),
            sqlite_where=text("bonus_type = 'automatic'"),
        ),
        Index("ix_bonuses_week_start_type", "week_start", "bonus_type"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    driver_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    bonus_type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    bonus_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


def _driver_from_row(row: DriverRow) -> Driver:
    return Driver(
        driver_id=row.id,
        driver_name=row.driver_name,
        driver_type=row.driver_type,
        truck_number=row.truck_number,
        status=row.status,
        created_at=row.created_at,
    )


def _load_from_row(row: LoadRow) -> Load:
    return Load(
        load_id=row.load_id,
        pickup_date=row.pickup_date,
        delivery_date=row.delivery_date,
        origin=row.origin,
        destination=row.destination,
        rate=row.rate,
        load_type=row.load_type,
        driver_id=row.driver_id,
        parent_load_id=row.parent_load_id,
        created_at=row.created_at,
    )


def _bonus_from_row(row: BonusRow) -> Bonus:
    return Bonus(
        bonus_id=row.id,
        driver_id=row.driver_id,
        bonus_type=row.bonus_type,
        amount=row.amount,
        week_start=row.week_start,
        date=row.bonus_date,
        note=row.note or "",
        created_at=row.created_at,
    )


# Pydantic field name -> ORM attribute name, where they differ.
_DRIVER_COLUMNS = {"driver_id": "id"}
_BONUS_COLUMNS = {"bonus_id": "id", "date": "bonus_date"}


def _assign(row: Any, fields: dict[str, Any], renames: dict[str, str]) -> None:
    for key, value in fields.items():
        if hasattr(value, "value"):
            value = value.value
        setattr(row, renames.get(key, key), value)


class SqlRepository(DispatchRepository):
    """
    DispatchRepository over any SQLAlchemy-supported database.

    Each call runs in its own transaction; SQLAlchemy errors are re-raised as
    PersistenceError after rollback.
    """

    def __init__(
        self,
        database_url: str | None = None,
        engine: Engine | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if engine is None:
            if not database_url:
                raise ValueError("database_url or engine is required")
            engine = create_engine(database_url, echo=False, future=True)
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        self.logger = logger or structlog.get_logger(component="sql_repository")

    def create_schema(self) -> None:
        """Create tables and indexes that do not exist yet."""
        Base.metadata.create_all(self.engine)
        self.logger.info("schema_created", url=str(self.engine.url))

    @contextmanager
    def _session(self, operation: str, entity: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except PersistenceError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            self.logger.error("sql_operation_failed", operation=operation, entity=entity, error=str(e))
            raise PersistenceError(operation, entity, str(e)) from e
        finally:
            session.close()

    # Loads
    def list_loads(self) -> list[Load]:
        with self._session("list", "load") as session:
            rows = session.scalars(select(LoadRow).order_by(LoadRow.pickup_date)).all()
            return [_load_from_row(r) for r in rows]

    def insert_load(self, load: Load) -> Load:
        with self._session("insert", "load") as session:
            session.add(
                LoadRow(
                    load_id=load.load_id,
                    pickup_date=load.pickup_date,
                    delivery_date=load.delivery_date,
                    origin=load.origin,
                    destination=load.destination,
                    rate=load.rate,
                    load_type=load.load_type.value,
                    driver_id=load.driver_id,
                    parent_load_id=load.parent_load_id,
                    created_at=load.created_at,
                )
            )
        return load

    def update_load(self, load_id: str, fields: dict[str, Any]) -> None:
        with self._session("update", "load") as session:
            row = session.get(LoadRow, load_id)
            if row is None:
                raise NotFoundError("update", "load", load_id)
            new_id = fields.get("load_id", load_id)
            if new_id != load_id:
                session.execute(
                    update(LoadRow)
                    .where(LoadRow.parent_load_id == load_id)
                    .values(parent_load_id=new_id)
                )
            _assign(row, fields, {})

    def delete_load(self, load_id: str) -> None:
        with self._session("delete", "load") as session:
            row = session.get(LoadRow, load_id)
            if row is None:
                raise NotFoundError("delete", "load", load_id)
            session.delete(row)

    # Drivers
    def list_drivers(self) -> list[Driver]:
        with self._session("list", "driver") as session:
            rows = session.scalars(select(DriverRow).order_by(DriverRow.driver_name)).all()
            return [_driver_from_row(r) for r in rows]

    def insert_driver(self, driver: Driver) -> Driver:
        with self._session("insert", "driver") as session:
            session.add(
                DriverRow(
                    id=driver.driver_id,
                    driver_name=driver.driver_name,
                    driver_type=driver.driver_type.value,
                    truck_number=driver.truck_number,
                    status=driver.status.value,
                    created_at=driver.created_at,
                )
            )
        return driver

    def update_driver(self, driver_id: str, fields: dict[str, Any]) -> None:
        with self._session("update", "driver") as session:
            row = session.get(DriverRow, driver_id)
            if row is None:
                raise NotFoundError("update", "driver", driver_id)
            _assign(row, fields, _DRIVER_COLUMNS)

    def delete_driver(self, driver_id: str) -> None:
        with self._session("delete", "driver") as session:
            row = session.get(DriverRow, driver_id)
            if row is None:
                raise NotFoundError("delete", "driver", driver_id)
            session.delete(row)

    # Bonuses
    def list_bonuses(self) -> list[Bonus]:
        with self._session("list", "bonus") as session:
            rows = session.scalars(select(BonusRow).order_by(BonusRow.bonus_date)).all()
            return [_bonus_from_row(r) for r in rows]

    def list_automatic_bonuses(self, week_start: date) -> list[Bonus]:
        with self._session("list", "bonus") as session:
            rows = session.scalars(
                select(BonusRow).where(
                    BonusRow.bonus_type == BonusType.AUTOMATIC.value,
                    BonusRow.week_start == week_start,
                )
            ).all()
            return [_bonus_from_row(r) for r in rows]

    def insert_bonus(self, bonus: Bonus) -> Bonus:
        with self._session("insert", "bonus") as session:
            session.add(
                BonusRow(
                    id=bonus.bonus_id,
                    driver_id=bonus.driver_id,
                    bonus_type=bonus.bonus_type.value,
                    amount=bonus.amount,
                    week_start=bonus.week_start,
                    bonus_date=bonus.date,
                    note=bonus.note,
                    created_at=bonus.created_at,
                )
            )
        return bonus

    def update_bonus(self, bonus_id: str, fields: dict[str, Any]) -> None:
        with self._session("update", "bonus") as session:
            row = session.get(BonusRow, bonus_id)
            if row is None:
                raise NotFoundError("update", "bonus", bonus_id)
            _assign(row, fields, _BONUS_COLUMNS)

    def delete_bonus(self, bonus_id: str) -> None:
        with self._session("delete", "bonus") as session:
            row = session.get(BonusRow, bonus_id)
            if row is None:
                raise NotFoundError("delete", "bonus", bonus_id)
            session.delete(row)
