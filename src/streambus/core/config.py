"""
Configuration models for buses and their schedulers.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .scheduler import IMMEDIATE, Scheduler, SerialScheduler


class SchedulerKind(str, Enum):
    """Schedulers that can be built from configuration."""

    IMMEDIATE = "immediate"  # Run on the emitting thread
    SERIAL = "serial"        # Single worker thread, FIFO


class SchedulerConfig(BaseModel):
    """Configuration for a bus's scheduler."""

    kind: SchedulerKind = SchedulerKind.IMMEDIATE
    thread_name_prefix: str = "streambus"


class BusConfig(BaseModel):
    """Configuration for a single bus."""

    name: Optional[str] = None
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    first_timeout: float = Field(default=5.0, gt=0)


def create_scheduler(config: SchedulerConfig) -> Scheduler:
    """
    Build the scheduler described by ``config``.

    A serial scheduler owns a worker thread; the caller is responsible for
    shutting it down.
    """
    if config.kind == SchedulerKind.SERIAL:
        return SerialScheduler(thread_name_prefix=config.thread_name_prefix)
    return IMMEDIATE


def load_bus_config_from_dict(data: Dict[str, Any]) -> BusConfig:
    """Load a bus config from a dictionary (parsed YAML/JSON)."""
    return BusConfig.model_validate(data)
