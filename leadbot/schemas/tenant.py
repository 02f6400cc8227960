from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

LeadField = Literal["name", "email", "need"]
Keyword = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

DEFAULT_HANDOFF_MESSAGE = "Te paso con una persona."
DEFAULT_CONFIRM_MESSAGE = "¡Gracias! Lo tengo."
DEFAULT_FIELD_PROMPTS = {
    "name": "¿Cómo te llamas?",
    "email": "¿Cuál es tu email?",
    "need": "Cuéntame brevemente qué necesitas.",
}


class _ConfigModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)


class HandoffCapability(_ConfigModel):
    enabled: bool = False
    keywords: list[Keyword] = Field(default_factory=list)
    message: str = DEFAULT_HANDOFF_MESSAGE


class FaqItem(_ConfigModel):
    q: str = Field(min_length=1)
    a: str = Field(min_length=1)


class FaqCapability(_ConfigModel):
    enabled: bool = False
    items: list[FaqItem] = Field(default_factory=list)


class LeadCaptureCapability(_ConfigModel):
    enabled: bool = False
    fields: list[LeadField] = Field(default_factory=list)
    confirm_message: str = Field(default=DEFAULT_CONFIRM_MESSAGE, alias="confirmMessage")
    prompts: dict[LeadField, str] = Field(default_factory=dict)

    def prompt_for(self, field: str) -> str:
        return self.prompts.get(field) or DEFAULT_FIELD_PROMPTS[field]


class Capabilities(_ConfigModel):
    handoff: Optional[HandoffCapability] = None
    faq: Optional[FaqCapability] = None
    lead_capture: Optional[LeadCaptureCapability] = Field(default=None, alias="leadCapture")


class TenantConfig(_ConfigModel):
    id: str = Field(min_length=1)
    system_prompt: str = Field(default="", alias="systemPrompt")
    model: str = "gpt-4o-mini"
    temperature: float = Field(default=0.4, ge=0.0, le=2.0)
    capabilities: Capabilities = Field(default_factory=Capabilities)

    @property
    def handoff(self) -> Optional[HandoffCapability]:
        cap = self.capabilities.handoff
        return cap if cap and cap.enabled else None

    @property
    def faq(self) -> Optional[FaqCapability]:
        cap = self.capabilities.faq
        return cap if cap and cap.enabled else None

    @property
    def lead_capture(self) -> Optional[LeadCaptureCapability]:
        cap = self.capabilities.lead_capture
        return cap if cap and cap.enabled else None
