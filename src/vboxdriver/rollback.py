"""
Teardown of partially built VMs when an image build step fails.
"""

from dataclasses import dataclass, field
from typing import Callable, List

from .interfaces.driver import Driver
from .logging import get_logger

log = get_logger(__name__)


@dataclass
class RollbackAction:
    """A single rollback action."""

    description: str
    action: Callable[[], None]
    critical: bool = False  # If True, failure stops rollback chain


@dataclass
class RollbackContext:
    """
    Context manager that undoes registered work if the block raises.

    Usage:
        with RollbackContext("build base image") as ctx:
            driver.import_appliance("base", "base.ova")
            ctx.add_vm(driver, "base")
            driver.start("base")
            ...
            ctx.commit()

    Teardown failures are logged and never replace the original exception.
    """

    operation_name: str
    _actions: List[RollbackAction] = field(default_factory=list)
    _committed: bool = False

    def add_action(
        self, description: str, action: Callable[[], None], critical: bool = False
    ) -> None:
        """Register a custom rollback action."""
        self._actions.append(
            RollbackAction(description=description, action=action, critical=critical)
        )
        log.debug("rollback.registered", action=description)

    def add_vm(self, driver: Driver, vm_name: str) -> None:
        """Register a VM to be powered off and deleted."""

        def cleanup_vm():
            if driver.is_running(vm_name):
                driver.stop(vm_name)
            driver.delete(vm_name)

        self.add_action(f"delete VM {vm_name}", cleanup_vm)

    def commit(self) -> None:
        """Mark operation as successful, preventing rollback."""
        self._committed = True
        log.info("rollback.committed", operation=self.operation_name)

    @property
    def committed(self) -> bool:
        return self._committed

    def rollback(self) -> List[str]:
        """Execute rollback actions in reverse order. Returns list of errors."""
        errors = []
        log.warning("rollback.started", operation=self.operation_name)

        for action in reversed(self._actions):
            try:
                log.info("rollback.action", action=action.description)
                action.action()
            except Exception as e:
                error_msg = f"Rollback action '{action.description}' failed: {e}"
                errors.append(error_msg)
                log.error("rollback.action_failed", action=action.description, error=str(e))
                if action.critical:
                    break

        return errors

    def __enter__(self) -> "RollbackContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None and not self._committed:
            errors = self.rollback()
            if errors:
                log.error(
                    "rollback.completed_with_errors",
                    operation=self.operation_name,
                    errors=errors,
                )
        return False  # Don't suppress the exception
