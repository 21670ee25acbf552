"""
Pydantic models for the storage layer.

Defines table entities (customers, products, orders), the metadata a backend
returns on write, queue messages, and uploaded files.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict


SYSTEM_PROPERTIES = {'PartitionKey', 'RowKey', 'Timestamp', 'etag', 'odata.etag'}


class TableEntity(BaseModel):
    """
    Base model for anything stored in a table.

    Entities must have PartitionKey and RowKey. Timestamp and etag are
    assigned by the backend on every successful write; callers only
    round-trip them.
    """
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    PartitionKey: str = Field(..., description="Partition key for the entity")
    RowKey: str = Field(..., description="Row key for the entity")
    Timestamp: Optional[datetime] = Field(
        default=None,
        description="Last modification timestamp, set by the backend"
    )
    etag: str = Field(
        default="",
        description="ETag for optimistic concurrency",
        alias="odata.etag"
    )

    @field_validator('PartitionKey', 'RowKey')
    @classmethod
    def validate_keys_not_empty(cls, v: str) -> str:
        """Validate that keys are not empty."""
        if not v or not v.strip():
            raise ValueError("PartitionKey and RowKey cannot be empty")
        return v

    def to_record(self) -> Dict[str, Any]:
        """
        Flatten the entity into the record written to the backend.

        System properties other than the keys are left out; the backend owns
        Timestamp and the version tag.
        """
        return self.model_dump(exclude={'Timestamp', 'etag'})

    def custom_properties(self) -> Dict[str, Any]:
        """Get all non-system properties."""
        return {k: v for k, v in self.to_record().items() if k not in SYSTEM_PROPERTIES}

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TableEntity":
        """Build an entity from a record returned by a backend."""
        return cls.model_validate(record)

    def apply_metadata(self, metadata: "EntityMetadata") -> None:
        """Adopt the version tag and timestamp assigned by a write."""
        self.etag = metadata.etag
        self.Timestamp = metadata.timestamp


class Customer(TableEntity):
    """A registered customer."""
    Name: str = ""
    Surname: str = ""
    Username: str = ""
    Email: str = ""
    ShippingAddress: str = ""


class Product(TableEntity):
    """A product in the catalogue."""
    ProductName: str = ""
    Description: str = ""
    Price: float = Field(default=0.0, ge=0.0)
    StockAvailable: int = Field(default=0, ge=0)
    ImageUrl: str = ""


class Order(TableEntity):
    """An order placed by a customer for one product."""
    CustomerId: str = ""
    Username: str = ""
    ProductId: str = ""
    ProductName: str = ""
    OrderDate: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    Quantity: int = Field(default=1, ge=1)
    UnitPrice: float = Field(default=0.0, ge=0.0)
    TotalPrice: float = Field(default=0.0, ge=0.0)
    Status: str = "Submitted"


@dataclass
class EntityMetadata:
    """Version tag and timestamp assigned by the backend on a write."""
    etag: str
    timestamp: Optional[datetime] = None


@dataclass
class QueueMessage:
    """A message received from a queue, still awaiting acknowledgement."""
    message_id: str
    pop_receipt: str
    content: str
    dequeue_count: int = 1


@dataclass
class FileUpload:
    """An uploaded file held in memory."""
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)
