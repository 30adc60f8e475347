from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class CocItem(BaseModel):
    """One shipped serial as returned by the COC data API."""
    sscc: str = ""
    serial: str = ""
    product_id: str = ""
    coc_document_id: str = ""
    coc_document_date: str = ""
    delivery_note_uri: str = ""
    purchase_order_uri: str = ""
    shipping_event_id: str = ""
    send_coc_emails: int = 0
    ship_to_notification_emails: List[str] = Field(default_factory=list)
    sold_to_notification_emails: List[str] = Field(default_factory=list)

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value, info):
        # The data API sends null for empty columns
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class CocData(BaseModel):
    sscc: str
    items: List[CocItem]

    @property
    def send_emails(self) -> bool:
        return bool(self.items) and self.items[0].send_coc_emails == 1

    @property
    def email_addresses(self) -> List[str]:
        """Ship-to then sold-to recipients of the first item, trimmed and de-duplicated."""
        if not self.items:
            return []
        first = self.items[0]
        addresses: List[str] = []
        for address in first.ship_to_notification_emails + first.sold_to_notification_emails:
            address = address.strip()
            if address and address not in addresses:
                addresses.append(address)
        return addresses


class CoveredProduct(BaseModel):
    product_id: str


class CertificationRecord(BaseModel):
    certification_type: str
    certification_identification: str
    sscc: str
    delivery_note: str
    customer_po: str
    initial_certification_date: str
    covered_serials: str
    covered_products: List[CoveredProduct]
    event_id: str


class PipelineRequest(BaseModel):
    """Request schema for triggering a pipeline."""
    sscc: str = Field(default="", description="Serial shipping container code to process")
    skip_steps: List[str] = Field(default_factory=list, description="Steps to mark done without running")


class PipelineResult(BaseModel):
    """Outcome of one pipeline execution."""
    success: bool
    run_id: Optional[str] = None
    certification_id: Optional[str] = None
    file_id: Optional[str] = None
    email_sent: bool = False
    email_skipped: Optional[str] = None
    error: Optional[str] = None


class PipelineResponse(BaseModel):
    success: bool
    certification_id: Optional[str] = None
    file_id: Optional[str] = None
    email_sent: bool = False
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: PipelineResult) -> "PipelineResponse":
        return cls(
            success=result.success,
            certification_id=result.certification_id,
            file_id=result.file_id,
            email_sent=result.email_sent,
            error=result.error,
        )


class JobListResponse(BaseModel):
    jobs: List[str]


class JobInfoResponse(BaseModel):
    name: str
    description: str = ""
    tasks: List[str]
    schedule: str = "@manual"
