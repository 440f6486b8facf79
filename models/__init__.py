"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (DataType, PostStatus)
    cars: Monthly new car registrations by make
    coe: COE bidding results and prevailing quota premiums
    deregistration: Monthly vehicle de-registrations
    car_cost: Car cost breakdowns from the monthly workbook
    population: Annual car and motor vehicle population
    post: Generated blog posts, one per month and dataset

Natural keys:
    Every table carries a unique index on its business key. Ingestion relies
    on these indexes (INSERT ... ON CONFLICT) to stay idempotent when a batch
    is retried or two runs of the same workflow race.

Usage:
    from models import Car, COE, PQP, Deregistration, CarCost, CarPopulation, VehiclePopulation, Post
    from models.base import DataType
"""

from models.base import Base, DataType, PostStatus
from models.cars import Car
from models.coe import COE, PQP
from models.deregistration import Deregistration
from models.car_cost import CarCost
from models.population import CarPopulation, VehiclePopulation
from models.post import Post

__all__ = [
    "Base",
    "DataType",
    "PostStatus",
    "Car",
    "COE",
    "PQP",
    "Deregistration",
    "CarCost",
    "CarPopulation",
    "VehiclePopulation",
    "Post",
]
