"""DAO Notifier — API Schemas.

Pydantic models for HTTP request bodies. Field aliases follow the
camelCase names event producers already send.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from dao_notifier.notifier.events import DEFAULT_EVENT_KIND, NotificationEvent


class NotifyRequest(BaseModel):
    """Body of POST /notify/{chain_id}/{dao}.

    ``type`` defaults to "proposal_created" for producers that predate
    typed events. ``apiKey`` is optional here so a missing key is
    answered with 401 rather than a validation error.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    type: str = DEFAULT_EVENT_KIND
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    dao_name: str = Field(alias="daoName")
    proposal_id: str = Field(alias="proposalId")
    dao_url: str = Field(alias="daoUrl")
    url: str
    proposal_title: Optional[str] = Field(default=None, alias="proposalTitle")
    proposal_description: Optional[str] = Field(default=None, alias="proposalDescription")
    winning_choice: Optional[str] = Field(default=None, alias="winningChoice")

    def to_event(self) -> NotificationEvent:
        """Build the transient event the dispatcher fans out."""
        return NotificationEvent(
            kind=self.type,
            proposal_id=self.proposal_id,
            dao_name=self.dao_name,
            dao_url=self.dao_url,
            url=self.url,
            proposal_title=self.proposal_title,
            proposal_description=self.proposal_description,
            winning_choice=self.winning_choice,
        )
