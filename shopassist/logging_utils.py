"""Logging utilities for the shop assistant.

Provides structured JSONL logging for retrieval results and LLM interactions.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from shopassist.config import LOG_DIR

__all__ = ["log_interaction", "get_log_file"]


def get_log_file(log_dir: Optional[Path] = None) -> Path:
    """Today's interaction log file, creating the directory on first use."""
    directory = log_dir or LOG_DIR
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"llm_interactions_{datetime.now().strftime('%Y%m%d')}.jsonl"


def log_interaction(event_type: str, data: Dict[str, Any], log_dir: Optional[Path] = None) -> None:
    """Log LLM interactions to a structured JSONL file.

    Args:
        event_type: Type of event (rag_result, llm_call, llm_response, llm_error)
        data: Event-specific data to log
        log_dir: Override for the log directory
    """
    log_entry = {"timestamp": datetime.now().isoformat(), "event_type": event_type, **data}
    with open(get_log_file(log_dir), "a", encoding="utf-8") as f:
        f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + "\n")
