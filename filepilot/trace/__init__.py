from .trace_emitter import TraceEmitter, new_run_id
from .trace_store_jsonl import TraceStoreJSONL

__all__ = ["TraceEmitter", "TraceStoreJSONL", "new_run_id"]
