"""Task declarations handed to the build scheduler.

``TaskGraph`` records tasks and ordering edges. ``run`` executes a target
and its dependencies in order; the CLI uses it when no external scheduler
is present.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A named unit of work with its ordering edges."""
    name: str
    action: Optional[Callable[[], Any]] = None
    group: Optional[str] = None
    description: Optional[str] = None
    enabled: Callable[[], bool] = lambda: True
    depends_on: List[str] = field(default_factory=list)


class TaskGraph:
    """Registry of tasks and ``depends_on`` edges between them."""

    def __init__(self):
        self.tasks: Dict[str, Task] = {}

    def register_task(self, name: str, action: Optional[Callable[[], Any]] = None, *,
                      group: Optional[str] = None, description: Optional[str] = None,
                      enabled: Optional[Callable[[], bool]] = None) -> Task:
        if name in self.tasks:
            raise ValueError(f"Task '{name}' is already registered")
        task = Task(name=name, action=action, group=group, description=description)
        if enabled is not None:
            task.enabled = enabled
        self.tasks[name] = task
        logger.debug("Registered task '%s'", name)
        return task

    def declare_dependency(self, task: str, depends_on: str) -> None:
        """Declare that ``task`` must run after ``depends_on``."""
        if task not in self.tasks:
            raise KeyError(f"Unknown task '{task}'")
        edges = self.tasks[task].depends_on
        if depends_on not in edges:
            edges.append(depends_on)

    def dependencies_of(self, name: str) -> List[str]:
        return list(self.tasks[name].depends_on)

    def execution_order(self, target: str) -> List[str]:
        """Tasks needed for ``target``, dependencies first."""
        order: List[str] = []
        done: Set[str] = set()
        visiting: Set[str] = set()

        def visit(name: str) -> None:
            if name in done:
                return
            if name in visiting:
                raise ValueError(f"Task dependency cycle through '{name}'")
            if name not in self.tasks:
                raise KeyError(f"Unknown task '{name}'")
            visiting.add(name)
            for dependency in self.tasks[name].depends_on:
                visit(dependency)
            visiting.discard(name)
            done.add(name)
            order.append(name)

        visit(target)
        return order

    def run(self, target: str) -> Dict[str, Any]:
        """Run ``target`` after its dependencies; returns each action's result."""
        results: Dict[str, Any] = {}
        for name in self.execution_order(target):
            task = self.tasks[name]
            if not task.enabled():
                logger.info("Skipping task '%s'", name)
                continue
            if task.action is not None:
                logger.info("> Task :%s", name)
                results[name] = task.action()
        return results
