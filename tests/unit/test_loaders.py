"""
Unit tests for the PostgreSQL batch loader
"""

import pytest
from unittest.mock import AsyncMock
from sqlalchemy.exc import IntegrityError
from ingestion.loaders.postgres_loader import ConflictPolicy, PostgresLoader
from models import Car, Deregistration, Post
from schemas.records import DeregistrationRecord
from tests.helpers import make_result


def dereg_rows(count):
    return [
        {"month": "2024-01", "category": f"Category {i}", "number": i}
        for i in range(count)
    ]


def returning(*counts):
    """Results reporting ``count`` written rows per executed batch"""
    return [make_result(rows=[(i,) for i in range(count)]) for count in counts]


class TestPostgresLoader:
    """Test PostgreSQL loader functionality"""

    @pytest.mark.asyncio
    async def test_load_empty_list(self, mock_session):
        loader = PostgresLoader(mock_session)

        result = await loader.load_batch(Deregistration, [])

        assert result == 0
        mock_session.execute.assert_not_called()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_batches_of_5000(self, mock_session):
        """12 000 records -> 5000, 5000, 2000"""
        mock_session.execute.side_effect = returning(5000, 5000, 2000)
        loader = PostgresLoader(mock_session, batch_size=5000)

        result = await loader.load_batch(
            Deregistration, dereg_rows(12000), key_fields=("month", "category")
        )

        assert result == 12000
        assert mock_session.execute.call_count == 3
        assert mock_session.commit.call_count == 3
        batch_sizes = [
            len(call.args[0].compile().params) // 3
            for call in mock_session.execute.call_args_list
        ]
        assert batch_sizes == [5000, 5000, 2000]

    @pytest.mark.asyncio
    async def test_counts_only_returned_rows(self, mock_session):
        """Rows skipped by ON CONFLICT DO NOTHING are not counted"""
        mock_session.execute.side_effect = returning(3)
        loader = PostgresLoader(mock_session)

        result = await loader.load_batch(
            Deregistration, dereg_rows(10), key_fields=("month", "category")
        )

        assert result == 3

    @pytest.mark.asyncio
    async def test_accepts_pydantic_records(self, mock_session):
        mock_session.execute.side_effect = returning(1)
        loader = PostgresLoader(mock_session)
        record = DeregistrationRecord(month="2024-01", category="Category A", number=5)

        result = await loader.load_batch(Deregistration, [record], key_fields=("month", "category"))

        assert result == 1
        params = mock_session.execute.call_args.args[0].compile().params
        assert "Category A" in params.values()

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_reraises(self, mock_session):
        error = IntegrityError("INSERT", {}, Exception("duplicate key value violates unique constraint"))
        mock_session.execute.side_effect = [returning(2)[0], error]
        loader = PostgresLoader(mock_session, batch_size=2)

        with pytest.raises(IntegrityError) as exc_info:
            await loader.load_batch(Deregistration, dereg_rows(4), key_fields=("month", "category"))

        assert exc_info.value is error
        mock_session.rollback.assert_awaited_once()
        assert mock_session.commit.call_count == 1

    def test_do_nothing_statement(self):
        loader = PostgresLoader(AsyncMock())

        stmt = loader._build_statement(
            Car,
            [{"month": "2024-01", "make": "BMW", "importer_type": "AD",
              "fuel_type": "Petrol", "vehicle_type": "Saloon", "number": 1}],
            ConflictPolicy.DO_NOTHING,
            ("month", "make", "importer_type", "fuel_type", "vehicle_type"),
        )
        sql = str(stmt.compile())

        assert "ON CONFLICT (month, make, importer_type, fuel_type, vehicle_type) DO NOTHING" in sql
        assert "RETURNING cars.id" in sql

    def test_do_update_statement_updates_non_key_columns(self):
        loader = PostgresLoader(AsyncMock())

        stmt = loader._build_statement(
            Post,
            [{"title": "t", "slug": "t", "content": "c", "month": "2024-01", "data_type": "cars"}],
            ConflictPolicy.DO_UPDATE,
            ("month", "data_type"),
        )
        sql = str(stmt.compile())

        assert "ON CONFLICT (month, data_type) DO UPDATE SET" in sql
        assert "title = excluded.title" in sql
        assert "month = excluded.month" not in sql

    def test_do_update_requires_key_fields(self):
        loader = PostgresLoader(AsyncMock())

        with pytest.raises(ValueError):
            loader._build_statement(Post, [{"title": "t"}], ConflictPolicy.DO_UPDATE, None)
