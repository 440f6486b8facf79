"""
Unit tests for the dataset workflows
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from redis.exceptions import ConnectionError as RedisConnectionError
from core.cache import CacheInvalidator
from core.exceptions import FatalError, FetchError
from models.base import DataType
from schemas.results import GeneratedPost, SavedPost, UpdaterResult
from workflows.car_costs import run_car_costs_workflow
from workflows.cars import run_cars_workflow
from workflows.coe import run_coe_workflow
from workflows.deregistrations import run_deregistrations_workflow
from workflows.population import run_car_population_workflow, run_vehicle_population_workflow
from workflows.regenerate_post import run_regenerate_post_workflow
from workflows.runtime import LocalStepRuntime
from workflows.shared import PublishResult, WorkflowDependencies, post_slug, save_post
from tests.helpers import make_result, make_session_factory


def updater_result(count, table="cars"):
    return UpdaterResult(table=table, records_processed=count, message=f"{count} record(s) inserted")


def invalidated_tags(redis_client):
    return [tag for _, tag in redis_client.published]


@pytest.fixture
def generator():
    return AsyncMock(return_value=GeneratedPost(title="January 2024 Car Registrations", content="..."))


@pytest.fixture
def publisher():
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=[PublishResult(platform="discord", success=True)])
    return publisher


@pytest.fixture
def deps(redis_client, mock_session, generator, publisher):
    return WorkflowDependencies(
        http_client=MagicMock(),
        session_factory=make_session_factory(mock_session),
        cache=redis_client,
        invalidator=CacheInvalidator(redis_client),
        generator=generator,
        publisher=publisher,
        runtime=LocalStepRuntime(sleep=AsyncMock()),
    )


SAVED = SavedPost(post_id="3f1c", slug="january-2024-car-registrations", title="January 2024 Car Registrations")


class TestCarsWorkflow:

    @pytest.mark.asyncio
    async def test_no_records_exits_early(self, deps, redis_client, generator):
        with patch("workflows.cars.update_cars", AsyncMock(return_value=updater_result(0))), \
                patch("workflows.queries.get_cars_latest_month") as latest:
            result = await run_cars_workflow(deps)

        assert result.message == "No car records processed. Skipped publishing to social media."
        assert result.post_id is None
        latest.assert_not_called()
        generator.assert_not_called()
        assert redis_client.published == []
        assert "last_updated:cars" not in redis_client.values

    @pytest.mark.asyncio
    async def test_no_month_found(self, deps, redis_client):
        with patch("workflows.cars.update_cars", AsyncMock(return_value=updater_result(5))), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value=None)):
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] No car records found"
        assert redis_client.published == []
        assert "last_updated:cars" in redis_client.values

    @pytest.mark.asyncio
    async def test_existing_post_skips_generation(self, deps, redis_client, generator):
        with patch("workflows.cars.update_cars", AsyncMock(return_value=updater_result(5))), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value="2024-01")), \
                patch("workflows.queries.get_existing_post", AsyncMock(return_value=MagicMock(id=1))):
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] Data processed. Post already exists, skipping social media."
        assert invalidated_tags(redis_client) == ["cars:month:2024-01", "cars:year:2024", "cars:months"]
        generator.assert_not_called()

    @pytest.mark.asyncio
    async def test_full_run_generates_and_publishes(self, deps, redis_client, generator, publisher):
        aggregate = {"month": "2024-01", "total": 100}
        with patch("workflows.cars.update_cars", AsyncMock(return_value=updater_result(5))), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value="2024-01")), \
                patch("workflows.queries.get_existing_post", AsyncMock(return_value=None)), \
                patch("workflows.queries.get_cars_aggregated_by_month", AsyncMock(return_value=aggregate)), \
                patch("workflows.shared.save_post", AsyncMock(return_value=SAVED)) as save:
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] Data processed and cache revalidated successfully"
        assert result.post_id == "3f1c"
        generator.assert_awaited_once_with(aggregate, "2024-01", DataType.CARS)
        assert save.await_args.args[2:] == ("2024-01", DataType.CARS)
        message, link = publisher.publish.await_args.args
        assert message == "📰 New Blog Post: January 2024 Car Registrations"
        assert link.endswith("/blog/january-2024-car-registrations")
        assert invalidated_tags(redis_client) == [
            "cars:month:2024-01",
            "cars:year:2024",
            "cars:months",
            "posts:list",
        ]

    @pytest.mark.asyncio
    async def test_without_generator_stops_after_cache(self, deps, redis_client):
        deps.generator = None
        with patch("workflows.cars.update_cars", AsyncMock(return_value=updater_result(5))), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value="2024-01")), \
                patch("workflows.queries.get_existing_post") as existing:
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] Data processed and cache revalidated successfully"
        assert result.post_id is None
        existing.assert_not_called()

    @pytest.mark.asyncio
    async def test_transient_download_failure_is_retried(self, deps):
        update = AsyncMock(side_effect=[FetchError("https://example.com/a.zip", 503), updater_result(0)])
        with patch("workflows.cars.update_cars", update):
            result = await run_cars_workflow(deps)

        assert update.await_count == 2
        deps.runtime.sleep.assert_awaited_once_with(1.0)
        assert result.message.startswith("No car records processed")

    @pytest.mark.asyncio
    async def test_fatal_download_failure_ends_pipeline(self, deps):
        update = AsyncMock(side_effect=FetchError("https://example.com/a.zip", 404))
        with patch("workflows.cars.update_cars", update):
            with pytest.raises(FatalError) as exc_info:
                await run_cars_workflow(deps)

        assert str(exc_info.value).startswith("[CARS] ")
        assert update.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_outage_after_insert_is_retried(self, deps, redis_client):
        deps.generator = None
        deps.invalidator = MagicMock()
        deps.invalidator.invalidate = AsyncMock(side_effect=[
            RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused."),
            ["cars:month:2024-01", "cars:year:2024", "cars:months"],
        ])
        update = AsyncMock(return_value=updater_result(5))
        with patch("workflows.cars.update_cars", update), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value="2024-01")):
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] Data processed and cache revalidated successfully"
        assert deps.invalidator.invalidate.await_count == 2
        update.assert_awaited_once()
        deps.runtime.sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_last_updated_failure_does_not_rerun_ingestion(self, deps, redis_client):
        deps.generator = None
        update = AsyncMock(return_value=updater_result(5))
        stamp = AsyncMock(side_effect=[RedisConnectionError("Connection reset by peer"), True])
        with patch("workflows.cars.update_cars", update), \
                patch("workflows.queries.get_cars_latest_month", AsyncMock(return_value="2024-01")), \
                patch.object(redis_client, "set", stamp):
            result = await run_cars_workflow(deps)

        assert result.message == "[CARS] Data processed and cache revalidated successfully"
        update.assert_awaited_once()
        assert stamp.await_count == 2
        assert stamp.await_args.args[0] == "last_updated:cars"


class TestCOEWorkflow:

    @pytest.mark.asyncio
    async def test_no_records_exits_early(self, deps, redis_client):
        with patch("workflows.coe.update_coe", AsyncMock(return_value=updater_result(0, "coe"))):
            result = await run_coe_workflow(deps)

        assert result.message == "No COE records processed. Skipped publishing to social media."
        assert redis_client.published == []

    @pytest.mark.asyncio
    async def test_no_record_found(self, deps):
        with patch("workflows.coe.update_coe", AsyncMock(return_value=updater_result(3, "coe"))), \
                patch("workflows.queries.get_coe_latest_record", AsyncMock(return_value=None)):
            result = await run_coe_workflow(deps)

        assert result.message == "[COE] No COE records found"

    @pytest.mark.asyncio
    async def test_first_bidding_waits(self, deps, redis_client, generator):
        record = {"month": "2024-03", "bidding_no": 1}
        with patch("workflows.coe.update_coe", AsyncMock(return_value=updater_result(10, "coe"))), \
                patch("workflows.queries.get_coe_latest_record", AsyncMock(return_value=record)), \
                patch("workflows.queries.get_existing_post") as existing:
            result = await run_coe_workflow(deps)

        assert result.message == "[COE] Data processed. Waiting for second bidding exercise to generate post."
        assert invalidated_tags(redis_client) == ["coe:latest", "coe:months", "coe:year:2024"]
        existing.assert_not_called()
        generator.assert_not_called()
        assert "last_updated:coe" in redis_client.values

    @pytest.mark.asyncio
    async def test_second_bidding_generates_post(self, deps, generator):
        record = {"month": "2024-03", "bidding_no": 2}
        data = {"month": "2024-03", "bidding_results": [], "pqp": {}}
        with patch("workflows.coe.update_coe", AsyncMock(return_value=updater_result(10, "coe"))), \
                patch("workflows.queries.get_coe_latest_record", AsyncMock(return_value=record)), \
                patch("workflows.queries.get_existing_post", AsyncMock(return_value=None)), \
                patch("workflows.queries.get_coe_for_month", AsyncMock(return_value=data)), \
                patch("workflows.shared.save_post", AsyncMock(return_value=SAVED)):
            result = await run_coe_workflow(deps)

        assert result.post_id == "3f1c"
        assert result.message == "[COE] Data processed and cache revalidated successfully"
        generator.assert_awaited_once_with(data, "2024-03", DataType.COE)

    @pytest.mark.asyncio
    async def test_second_bidding_existing_post(self, deps, generator):
        record = {"month": "2024-03", "bidding_no": 2}
        with patch("workflows.coe.update_coe", AsyncMock(return_value=updater_result(10, "coe"))), \
                patch("workflows.queries.get_coe_latest_record", AsyncMock(return_value=record)), \
                patch("workflows.queries.get_existing_post", AsyncMock(return_value=MagicMock())):
            result = await run_coe_workflow(deps)

        assert result.message == "[COE] Data processed. Post already exists, skipping social media."
        generator.assert_not_called()


class TestDeregistrationsWorkflow:

    @pytest.mark.asyncio
    async def test_no_records(self, deps):
        with patch(
            "workflows.deregistrations.update_deregistrations",
            AsyncMock(return_value=updater_result(0, "deregistrations"))
        ):
            result = await run_deregistrations_workflow(deps)

        assert result.message == "No deregistration records processed."

    @pytest.mark.asyncio
    async def test_no_data_found(self, deps):
        with patch(
            "workflows.deregistrations.update_deregistrations",
            AsyncMock(return_value=updater_result(4, "deregistrations"))
        ), patch("workflows.queries.get_deregistrations_latest_month", AsyncMock(return_value=None)):
            result = await run_deregistrations_workflow(deps)

        assert result.message == "No deregistration data found."

    @pytest.mark.asyncio
    async def test_processed(self, deps, redis_client, generator):
        with patch(
            "workflows.deregistrations.update_deregistrations",
            AsyncMock(return_value=updater_result(4, "deregistrations"))
        ), patch("workflows.queries.get_deregistrations_latest_month", AsyncMock(return_value="2024-02")):
            result = await run_deregistrations_workflow(deps)

        assert result.message == "[DEREGISTRATIONS] Data processed and cache revalidated successfully"
        assert invalidated_tags(redis_client) == [
            "deregistrations:month:2024-02",
            "deregistrations:months",
            "deregistrations:year:2024",
        ]
        generator.assert_not_called()


class TestCarCostsWorkflow:

    @pytest.mark.asyncio
    async def test_processed(self, deps, redis_client):
        with patch(
            "workflows.car_costs.update_car_costs",
            AsyncMock(return_value=updater_result(120, "car_costs"))
        ), patch("workflows.queries.get_car_costs_latest_month", AsyncMock(return_value="2026-01")):
            result = await run_car_costs_workflow(deps)

        assert result.message == "[CAR COSTS] Data processed and cache revalidated successfully"
        assert invalidated_tags(redis_client) == ["car-costs:month:2026-01", "car-costs:months"]
        assert "last_updated:car-costs" in redis_client.values


class TestPopulationWorkflows:

    @pytest.mark.asyncio
    async def test_car_population_no_records(self, deps, redis_client):
        with patch(
            "workflows.population.update_car_population",
            AsyncMock(return_value=updater_result(0, "car_population"))
        ), patch("workflows.queries.get_car_population_latest_year") as latest:
            result = await run_car_population_workflow(deps)

        assert result.message == "No car population records processed."
        latest.assert_not_called()
        assert redis_client.published == []
        assert "last_updated:car-population" not in redis_client.values

    @pytest.mark.asyncio
    async def test_car_population_processed(self, deps, redis_client, generator):
        with patch(
            "workflows.population.update_car_population",
            AsyncMock(return_value=updater_result(300, "car_population"))
        ), patch("workflows.queries.get_car_population_latest_year", AsyncMock(return_value="2024")):
            result = await run_car_population_workflow(deps)

        assert result.message == "[CAR POPULATION] Data processed and cache revalidated successfully"
        assert invalidated_tags(redis_client) == [
            "car-population:year:2024",
            "car-population:years",
            "car-population:totals",
        ]
        assert "last_updated:car-population" in redis_client.values
        generator.assert_not_called()

    @pytest.mark.asyncio
    async def test_month_selects_year(self, deps, redis_client):
        with patch(
            "workflows.population.update_car_population",
            AsyncMock(return_value=updater_result(300, "car_population"))
        ), patch("workflows.queries.get_car_population_latest_year") as latest:
            await run_car_population_workflow(deps, "2023-06")

        latest.assert_not_called()
        assert invalidated_tags(redis_client)[0] == "car-population:year:2023"

    @pytest.mark.asyncio
    async def test_vehicle_population_no_data_found(self, deps, redis_client):
        with patch(
            "workflows.population.update_vehicle_population",
            AsyncMock(return_value=updater_result(12, "vehicle_population"))
        ), patch("workflows.queries.get_vehicle_population_latest_year", AsyncMock(return_value=None)):
            result = await run_vehicle_population_workflow(deps)

        assert result.message == "No vehicle population data found."
        assert redis_client.published == []
        assert "last_updated:vehicle-population" in redis_client.values

    @pytest.mark.asyncio
    async def test_vehicle_population_processed(self, deps, redis_client):
        with patch(
            "workflows.population.update_vehicle_population",
            AsyncMock(return_value=updater_result(12, "vehicle_population"))
        ), patch("workflows.queries.get_vehicle_population_latest_year", AsyncMock(return_value="2024")):
            result = await run_vehicle_population_workflow(deps)

        assert result.message == "[VEHICLE POPULATION] Data processed and cache revalidated successfully"
        assert invalidated_tags(redis_client) == [
            "vehicle-population:year:2024",
            "vehicle-population:years",
            "vehicle-population:totals",
        ]


class TestRegeneratePostWorkflow:

    @pytest.mark.asyncio
    async def test_regenerates_cars_post(self, deps, redis_client, generator, publisher):
        aggregate = {"month": "2024-01", "total": 100}
        with patch("workflows.queries.get_cars_aggregated_by_month", AsyncMock(return_value=aggregate)) as fetch, \
                patch("workflows.queries.get_coe_for_month") as coe_fetch, \
                patch("workflows.shared.save_post", AsyncMock(return_value=SAVED)) as save:
            result = await run_regenerate_post_workflow(deps, "2024-01", DataType.CARS)

        assert result.message == "[REGENERATE] Successfully regenerated cars post for 2024-01"
        assert result.post_id == "3f1c"
        assert result.title == "January 2024 Car Registrations"
        assert result.slug == "january-2024-car-registrations"
        assert fetch.await_args.args[1] == "2024-01"
        coe_fetch.assert_not_called()
        generator.assert_awaited_once_with(aggregate, "2024-01", DataType.CARS)
        assert save.await_args.args[2:] == ("2024-01", DataType.CARS)
        assert invalidated_tags(redis_client) == ["posts:list"]
        publisher.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_regenerates_coe_post_from_string_type(self, deps, generator):
        data = {"month": "2024-03", "bidding_results": [], "pqp": {}}
        with patch("workflows.queries.get_coe_for_month", AsyncMock(return_value=data)), \
                patch("workflows.shared.save_post", AsyncMock(return_value=SAVED)):
            result = await run_regenerate_post_workflow(deps, "2024-03", "coe")

        assert result.message == "[REGENERATE] Successfully regenerated coe post for 2024-03"
        generator.assert_awaited_once_with(data, "2024-03", DataType.COE)

    @pytest.mark.asyncio
    async def test_requires_generator(self, deps):
        deps.generator = None
        with pytest.raises(ValueError):
            await run_regenerate_post_workflow(deps, "2024-01", DataType.CARS)

    @pytest.mark.asyncio
    async def test_unknown_data_type(self, deps):
        with pytest.raises(ValueError):
            await run_regenerate_post_workflow(deps, "2024-01", "deregistrations")


class TestSavePost:

    def test_post_slug(self):
        assert post_slug("COE Results: March 2024 (2nd Bidding)") == "coe-results-march-2024-2nd-bidding"

    @pytest.mark.asyncio
    async def test_upserts_on_month_and_data_type(self, mock_session):
        mock_session.execute.return_value = make_result(scalar="a-uuid")
        post = GeneratedPost(title="March 2024 COE", content="body", tags=["coe"])

        with patch("workflows.shared.PostgresLoader") as loader_cls:
            loader_cls.return_value.load_batch = AsyncMock(return_value=1)
            saved = await save_post(make_session_factory(mock_session), post, "2024-03", DataType.COE)

        assert saved.post_id == "a-uuid"
        assert saved.slug == "march-2024-coe"
        kwargs = loader_cls.return_value.load_batch.await_args.kwargs
        assert kwargs["key_fields"] == ("month", "data_type")
        assert kwargs["conflict"].value == "do_update"
        row = loader_cls.return_value.load_batch.await_args.args[1][0]
        assert row["month"] == "2024-03"
        assert row["data_type"] == DataType.COE
        assert row["tags"] == ["coe"]
