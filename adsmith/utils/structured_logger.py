import json
import logging
import time
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _emit(level: int, payload: Dict[str, Any], additional_fields: Dict[str, Any]) -> None:
    if additional_fields:
        payload.update(additional_fields)
    logger.log(level, json.dumps(payload, default=str))


def batch_start(epoch: int, total: int, max_concurrency: int, **additional_fields: Any) -> float:
    """
    Emit a structured batch_start log and return the start_time (epoch seconds) for duration calculation.
    """
    start_time = time.time()
    payload: Dict[str, Any] = {
        "event": "batch_start",
        "epoch": epoch,
        "total": total,
        "max_concurrency": max_concurrency,
    }
    _emit(logging.INFO, payload, additional_fields)
    return start_time


def batch_end(epoch: int, start_time: float, outcome: str, success_count: int, total: int, **additional_fields: Any) -> None:
    """
    Emit a structured batch_end log with elapsed_ms.
    """
    payload: Dict[str, Any] = {
        "event": "batch_end",
        "epoch": epoch,
        "outcome": outcome,
        "success_count": success_count,
        "total": total,
        "elapsed_ms": int((time.time() - start_time) * 1000),
    }
    # A fully failed batch is worth a warning
    level = logging.WARNING if total and success_count == 0 else logging.INFO
    _emit(level, payload, additional_fields)


def slot_attempt_failed(index: int, attempt: int, max_attempts: int, error: Optional[str] = None, **additional_fields: Any) -> None:
    payload: Dict[str, Any] = {
        "event": "slot_attempt_failed",
        "index": index,
        "attempt": attempt,
        "max_attempts": max_attempts,
    }
    if error is not None:
        payload["error"] = error
    _emit(logging.WARNING, payload, additional_fields)


def slot_exhausted(index: int, attempts: int, error: Optional[str] = None, **additional_fields: Any) -> None:
    payload: Dict[str, Any] = {
        "event": "slot_exhausted",
        "index": index,
        "attempts": attempts,
    }
    if error is not None:
        payload["error"] = error
    _emit(logging.ERROR, payload, additional_fields)


def slot_discarded(index: int, epoch: int, current_epoch: int, **additional_fields: Any) -> None:
    """
    Emit a structured slot_discarded log for a completion that belongs to a superseded batch.
    """
    payload: Dict[str, Any] = {
        "event": "slot_discarded",
        "index": index,
        "epoch": epoch,
        "current_epoch": current_epoch,
    }
    _emit(logging.INFO, payload, additional_fields)
