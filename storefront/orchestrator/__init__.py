"""Orchestration and scheduling"""

from .coordinator import StorefrontCoordinator, build_composer
from .scheduler import JobScheduler

__all__ = ["StorefrontCoordinator", "JobScheduler", "build_composer"]
