"""
PeopleCore HR Assistant
Language-model usage ledger.

Every gateway call, successful or not, leaves one ``AIUsageLog`` row so
token spend and latency can be broken down per caller and per pipeline
stage (intent classification, result summary, loan summary).
"""

from datetime import datetime, timezone

from peoplecore.models import db

PURPOSE_INTENT = "intent"
PURPOSE_SUMMARY = "summary"
PURPOSE_LOAN_SUMMARY = "loan_summary"

# USD per 1M tokens, (input, output)
TOKEN_COSTS = {
    "moonshotai/kimi-k2-instruct-0905": {"input": 1.00, "output": 3.00},
    "llama-3.3-70b-versatile":          {"input": 0.59, "output": 0.79},
    "gpt-4o-mini":                      {"input": 0.15, "output": 0.60},
    "gpt-4o":                           {"input": 2.50, "output": 10.00},
    "claude-3-5-haiku-20241022":        {"input": 1.00, "output": 5.00},
    "claude-3-5-sonnet-20241022":       {"input": 3.00, "output": 15.00},
    "local-stub":                       {"input": 0.00, "output": 0.00},
}
_FREE = {"input": 0.0, "output": 0.0}


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """USD cost of one call; unknown models are priced at zero."""
    rate = TOKEN_COSTS.get(model, _FREE)
    return (prompt_tokens * rate["input"] + completion_tokens * rate["output"]) / 1_000_000


class AIUsageLog(db.Model):
    __tablename__ = "ai_usage_logs"
    __table_args__ = (
        db.Index("idx_ai_usage_caller", "caller_id"),
        db.Index("idx_ai_usage_purpose_ts", "purpose", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    caller_id = db.Column(db.String(36), nullable=False, default="system", comment="Identity id or 'system'")
    purpose = db.Column(db.String(30), nullable=False, default="", comment="intent | summary | loan_summary")

    provider = db.Column(db.String(20), nullable=False, comment="groq | openai | anthropic | local")
    model = db.Column(db.String(80), nullable=False)
    prompt_tokens = db.Column(db.Integer, nullable=False, default=0)
    completion_tokens = db.Column(db.Integer, nullable=False, default=0)
    cost_usd = db.Column(db.Float, nullable=False, default=0.0)
    latency_ms = db.Column(db.Integer, nullable=False, default=0)

    success = db.Column(db.Boolean, nullable=False, default=True)
    error_message = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    @property
    def total_tokens(self) -> int:
        return (self.prompt_tokens or 0) + (self.completion_tokens or 0)

    def to_dict(self):
        return {
            "id": self.id,
            "caller_id": self.caller_id,
            "purpose": self.purpose,
            "provider": self.provider,
            "model": self.model,
            "tokens": {"prompt": self.prompt_tokens, "completion": self.completion_tokens,
                       "total": self.total_tokens},
            "cost_usd": round(self.cost_usd or 0.0, 6),
            "latency_ms": self.latency_ms,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AIUsageLog {self.id}: {self.purpose} {self.model} caller={self.caller_id}>"
