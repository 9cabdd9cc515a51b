from .errors import ApiError, ConfigError, FilePilotError, ToolExecutionError, ToolNotFound, ValidationError
from .risk import OperationKind, RiskLevel, kind_of, risk_of

__all__ = [
  "ApiError",
  "ConfigError",
  "FilePilotError",
  "ToolExecutionError",
  "ToolNotFound",
  "ValidationError",
  "OperationKind",
  "RiskLevel",
  "kind_of",
  "risk_of",
]
