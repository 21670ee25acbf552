"""
Naming rules for tables, blobs and share files.

Table names are fixed per entity kind so that data written by earlier
releases stays readable.
"""

import uuid
from datetime import datetime
from enum import Enum
from pathlib import PurePath
from typing import Optional, Type, Union


class EntityKind(str, Enum):
    """Entity kinds with a registered table name."""
    CUSTOMER = "Customer"
    PRODUCT = "Product"
    ORDER = "Order"


TABLE_NAMES = {
    EntityKind.CUSTOMER: "Customers",
    EntityKind.PRODUCT: "Products",
    EntityKind.ORDER: "Orders",
}


def table_name_for(entity_type: Union[Type, str]) -> str:
    """
    Map an entity type (or type name) to its table name.

    Registered kinds use TABLE_NAMES; anything else becomes "{TypeName}s".
    """
    type_name = entity_type if isinstance(entity_type, str) else entity_type.__name__
    try:
        return TABLE_NAMES[EntityKind(type_name)]
    except ValueError:
        return f"{type_name}s"


def file_extension(filename: str) -> str:
    """Return the extension of filename including the dot, or ''."""
    return PurePath(filename).suffix


def unique_blob_name(filename: str) -> str:
    """Random blob name that keeps the original extension."""
    return f"{uuid.uuid4()}{file_extension(filename)}"


def timestamped_file_name(filename: str, now: Optional[datetime] = None) -> str:
    """Prefix filename with a local YYYYMMDD_HHMMSS timestamp."""
    now = now or datetime.now()
    return f"{now:%Y%m%d_%H%M%S}_{PurePath(filename).name}"
