from datetime import datetime
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rsvp_automation.automation.dtos import ActionType, ExecutionStatus, FlowStatus, TriggerType
from rsvp_automation.config.table_names import TableNames
from rsvp_automation.models.base import Base, TimeStamp
from rsvp_automation.models.event import Event


class AutomationFlow(Base, TimeStamp):
    __tablename__ = TableNames.AUTOMATION_FLOWS.value
    __table_args__ = (UniqueConstraint("event_id", "trigger", name="uq_automation_flows_event_trigger"),)

    event_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.EVENTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event: Mapped[Event] = relationship(Event)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    trigger: Mapped[TriggerType] = mapped_column(
        Enum(TriggerType, name="automation_trigger_enum", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    action: Mapped[ActionType] = mapped_column(
        Enum(ActionType, name="automation_action_enum", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    status: Mapped[FlowStatus] = mapped_column(
        Enum(FlowStatus, name="automation_flow_status_enum", values_callable=lambda x: [e.value for e in x]),
        default=FlowStatus.DRAFT,
        nullable=False,
    )
    delay_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<AutomationFlow {self.name} {self.trigger}->{self.action} ({self.status})>"


class AutomationFlowExecution(Base, TimeStamp):
    __tablename__ = TableNames.AUTOMATION_FLOW_EXECUTIONS.value
    __table_args__ = (
        UniqueConstraint("flow_id", "guest_id", name="uq_automation_executions_flow_guest"),
        Index("ix_automation_executions_status_scheduled_for", "status", "scheduled_for"),
    )

    flow_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.AUTOMATION_FLOWS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
    )
    flow: Mapped[AutomationFlow] = relationship(AutomationFlow)
    guest_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.GUESTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[ExecutionStatus] = mapped_column(
        Enum(
            ExecutionStatus,
            name="automation_execution_status_enum",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=ExecutionStatus.PENDING,
        nullable=False,
    )
    # None means "as soon as possible"
    scheduled_for: Mapped[datetime | None] = mapped_column(nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    executed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<AutomationFlowExecution flow={self.flow_id} guest={self.guest_id} {self.status}>"
