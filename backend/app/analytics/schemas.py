from pydantic import BaseModel, Field


class StatsDebugInfo(BaseModel):
    sender_labels: list[str]
    records: int
    conversations: int
    human_samples: int
    automated_samples: int
    rejected_samples: int


class ResponseTimeStats(BaseModel):
    # Aliases are the field names the dashboard widgets read.
    avg_automated_messages_per_conversation: float = Field(0.0, alias="mediaMensagensPorIA")
    avg_automated_latency_minutes: float = Field(0.0, alias="tempoMedioAtendimentoIAMinutos")
    avg_human_latency_minutes: float = Field(0.0, alias="tempoMedioAtendimentoHumanoMinutos")
    debug: StatsDebugInfo | None = Field(None, alias="_debug")

    model_config = {"populate_by_name": True}
