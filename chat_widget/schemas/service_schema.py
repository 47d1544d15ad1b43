"""Request and response models for the Widget Config and Ticket services."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WidgetConfig(BaseModel):
    """Branding and copy returned by the Widget Config Service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = "Chatbot Name"
    welcome_message: Optional[str] = Field(default=None, alias="welcomeMessage")
    supporting_text: Optional[str] = Field(default=None, alias="supportingText")
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    primary_color: Optional[str] = Field(default=None, alias="primaryColor")
    secondary_color: Optional[str] = Field(default=None, alias="secondaryColor")


class TicketRequest(BaseModel):
    """Create-ticket payload built from onboarding answers."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    category: str = "support"
    attachments: list[str] = Field(default_factory=list)
    description: str
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str
    is_guest: bool = Field(default=True, alias="isGuest")


class TicketResponse(BaseModel):
    """Ticket Service reply; only id and organizationId are consumed."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    organization_id: Optional[str] = Field(default=None, alias="organizationId")
