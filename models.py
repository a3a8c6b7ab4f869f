"""Pydantic models for ticket records and API request/response validation."""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

# Decimal ether amounts arrive as strings; plain integers are tolerated.
# Strict types keep JSON booleans and floats from being coerced into numbers.
Amount = Union[StrictStr, StrictInt]
TicketId = StrictInt


# Ticket record (off-chain mirror of one on-chain ticket)
class Ticket(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_id: int = Field(..., ge=0, alias="ticketId", description="On-chain token id")
    owner: str = Field(..., description="Current holder address")
    base_price: str = Field(..., alias="basePrice", description="Mint price in wei")
    sale_price: str = Field("0", alias="salePrice", description="Resale price in wei, 0 when not listed")
    token_uri: Optional[str] = Field(None, alias="tokenURI")
    event_id: Optional[int] = Field(None, alias="eventId", description="Catalog event the ticket belongs to")
    validated: bool = False
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    def to_row(self) -> dict:
        """Store representation (snake_case columns)."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_row(cls, row: dict) -> "Ticket":
        return cls.model_validate(row)


# Event catalog models
class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    date: str = Field(..., min_length=1, description="Event date (ISO format)")
    location: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class Event(EventCreate):
    model_config = ConfigDict(populate_by_name=True)

    event_id: int = Field(..., ge=0, alias="eventId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    def to_row(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_row(cls, row: dict) -> "Event":
        return cls.model_validate(row)


# Blockchain request models
class MintRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(..., description="Recipient address")
    price: Amount = Field(..., description="Base price in ETH")
    token_uri: str = Field(..., alias="tokenURI")
    event_id: Optional[StrictInt] = Field(None, alias="eventId")


class BuyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token_uri: str = Field(..., alias="tokenURI")
    buyer: str
    value: Amount = Field(..., description="Payment in ETH")
    event_id: Optional[StrictInt] = Field(None, alias="eventId")


class ListRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_id: TicketId = Field(..., alias="ticketId")
    sale_price: Amount = Field(..., alias="salePrice", description="Resale price in ETH")
    owner: str


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_id: TicketId = Field(..., alias="ticketId")
    owner: str


class PurchaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_id: TicketId = Field(..., alias="ticketId")
    buyer: str


class ValidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ticket_id: TicketId = Field(..., alias="ticketId")
    owner: str


# Responses
class TransactionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transaction_hash: str = Field(..., alias="transactionHash")
    status: int
    gas_used: str = Field(..., alias="gasUsed")
    block_number: str = Field(..., alias="blockNumber")


class TicketActionResponse(BaseModel):
    message: str
    ticket: Ticket
    transaction: TransactionResponse


class TransactionActionResponse(BaseModel):
    message: str
    transaction: TransactionResponse


class TicketListResponse(BaseModel):
    tickets: List[Ticket]


class EventListResponse(BaseModel):
    events: List[Event]
