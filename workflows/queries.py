"""
Read queries used by the dataset workflows
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from models import COE, PQP, Car, CarCost, CarPopulation, Deregistration, Post, VehiclePopulation
from models.base import DataType

TOP_MAKES_LIMIT = 3


async def get_cars_latest_month(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(func.max(Car.month)))
    return result.scalar_one_or_none()


async def get_coe_latest_record(session: AsyncSession) -> Optional[Dict[str, Any]]:
    """Month and bidding exercise of the most recent COE result"""
    result = await session.execute(
        select(COE.month, COE.bidding_no)
        .order_by(COE.month.desc(), COE.bidding_no.desc())
        .limit(1)
    )
    row = result.first()
    if row is None:
        return None
    return {"month": row.month, "bidding_no": row.bidding_no}


async def get_deregistrations_latest_month(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(func.max(Deregistration.month)))
    return result.scalar_one_or_none()


async def get_car_costs_latest_month(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(func.max(CarCost.month)))
    return result.scalar_one_or_none()


async def get_car_population_latest_year(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(func.max(CarPopulation.year)))
    return result.scalar_one_or_none()


async def get_vehicle_population_latest_year(session: AsyncSession) -> Optional[str]:
    result = await session.execute(select(func.max(VehiclePopulation.year)))
    return result.scalar_one_or_none()


async def get_existing_post(
    session: AsyncSession,
    month: str,
    data_type: DataType
) -> Optional[Post]:
    result = await session.execute(
        select(Post)
        .where(Post.month == month, Post.data_type == data_type)
        .limit(1)
    )
    return result.scalars().first()


async def get_cars_aggregated_by_month(session: AsyncSession, month: str) -> Dict[str, Any]:
    """
    Registration totals for one month, broken down by fuel and vehicle type,
    with the top makes of every fuel type.
    """
    total = await session.execute(
        select(func.coalesce(func.sum(Car.number), 0)).where(Car.month == month)
    )

    fuel_types = await session.execute(
        select(Car.fuel_type, func.sum(Car.number).label("total"))
        .where(Car.month == month)
        .group_by(Car.fuel_type)
        .order_by(func.sum(Car.number).desc())
    )
    fuel_type_rows = [{"name": r.fuel_type, "total": int(r.total or 0)} for r in fuel_types]

    vehicle_types = await session.execute(
        select(Car.vehicle_type, func.sum(Car.number).label("total"))
        .where(Car.month == month)
        .group_by(Car.vehicle_type)
        .order_by(func.sum(Car.number).desc())
    )

    # One query per fuel type
    top_makes: List[Dict[str, Any]] = []
    for fuel_type in fuel_type_rows:
        makes = await session.execute(
            select(Car.make, func.sum(Car.number).label("total"))
            .where(Car.month == month, Car.fuel_type == fuel_type["name"])
            .group_by(Car.make)
            .order_by(func.sum(Car.number).desc())
            .limit(TOP_MAKES_LIMIT)
        )
        top_makes.append({
            "fuel_type": fuel_type["name"],
            "makes": [{"make": r.make, "total": int(r.total or 0)} for r in makes],
        })

    return {
        "month": month,
        "total": int(total.scalar_one()),
        "fuel_type": fuel_type_rows,
        "vehicle_type": [
            {"name": r.vehicle_type, "total": int(r.total or 0)} for r in vehicle_types
        ],
        "top_makes_by_fuel_type": top_makes,
    }


async def get_coe_for_month(session: AsyncSession, month: str) -> Dict[str, Any]:
    """Both bidding exercises of a month plus its PQP rates"""
    results = await session.execute(
        select(COE)
        .where(COE.month == month)
        .order_by(COE.bidding_no, COE.vehicle_class)
    )
    pqp = await session.execute(
        select(PQP)
        .where(PQP.month == month)
        .order_by(PQP.vehicle_class)
    )

    return {
        "month": month,
        "bidding_results": [
            {
                "bidding_no": r.bidding_no,
                "vehicle_class": r.vehicle_class,
                "quota": r.quota,
                "bids_success": r.bids_success,
                "bids_received": r.bids_received,
                "premium": r.premium,
            }
            for r in results.scalars()
        ],
        "pqp": {r.vehicle_class: r.pqp for r in pqp.scalars()},
    }
