from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class DataType(str, enum.Enum):
    """Dataset a generated post is written about"""
    CARS = "cars"
    COE = "coe"


class PostStatus(str, enum.Enum):
    """Generated post lifecycle"""
    DRAFT = "draft"
    PUBLISHED = "published"
