from pydantic import BaseModel, ConfigDict, Field, field_validator

from rsvp_automation.correlation.dtos import InboundReply

CHANNEL_PREFIXES = ("whatsapp:", "sms:")


class InboundWhatsAppMessage(BaseModel):
    """Form fields Twilio posts for an inbound WhatsApp message (the ones we use)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    from_: str = Field(alias="From", min_length=1)
    message_sid: str | None = Field(default=None, alias="MessageSid")
    button_payload: str | None = Field(default=None, alias="ButtonPayload")
    list_id: str | None = Field(default=None, alias="ListId")
    original_replied_message_sid: str | None = Field(default=None, alias="OriginalRepliedMessageSid")
    body: str | None = Field(default=None, alias="Body")

    @field_validator("button_payload", "list_id", "original_replied_message_sid", "message_sid", mode="before")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def phone(self) -> str:
        sender = self.from_.strip()
        for prefix in CHANNEL_PREFIXES:
            if sender.lower().startswith(prefix):
                return sender[len(prefix):]
        return sender

    def to_reply(self, raw: dict[str, str]) -> InboundReply:
        return InboundReply(
            phone=self.phone,
            message_sid=self.message_sid,
            button_payload=self.button_payload,
            list_id=self.list_id,
            replied_to_sid=self.original_replied_message_sid,
            body=self.body,
            raw=raw,
        )
