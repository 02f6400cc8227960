from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TextBody(_Payload):
    body: str = ""


class InboundMessage(_Payload):
    id: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    type: Optional[str] = None
    text: Optional[TextBody] = None


class ValueMetadata(_Payload):
    phone_number_id: Optional[str] = None
    display_phone_number: Optional[str] = None


class ChangeValue(_Payload):
    messaging_product: Optional[str] = None
    metadata: Optional[ValueMetadata] = None
    messages: list[InboundMessage] = Field(default_factory=list)


class Change(_Payload):
    field: Optional[str] = None
    value: Optional[ChangeValue] = None


class Entry(_Payload):
    id: Optional[str] = None
    changes: list[Change] = Field(default_factory=list)


class WebhookPayload(_Payload):
    """WhatsApp Cloud API notification. Only the first entry/change/message is read."""

    object_: Optional[str] = Field(default=None, alias="object")
    entry: list[Entry] = Field(default_factory=list)

    def first_value(self) -> Optional[ChangeValue]:
        if not self.entry or not self.entry[0].changes:
            return None
        return self.entry[0].changes[0].value

    def first_message(self) -> Optional[InboundMessage]:
        value = self.first_value()
        if not value or not value.messages:
            return None
        return value.messages[0]

    def routing_key(self) -> Optional[str]:
        value = self.first_value()
        if not value or not value.metadata:
            return None
        return value.metadata.phone_number_id


class InboundEvent(BaseModel):
    """One inbound message reduced to what the pipeline needs."""

    routing_key: str
    conversant_id: str
    message_id: Optional[str] = None
    message_type: str
    text: str = ""

    @property
    def is_text(self) -> bool:
        return self.message_type == "text"


class WebhookResponse(BaseModel):
    status: str
    message: Optional[str] = None
