"""Employee lookup collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Protocol

import yaml

from .models import Employee


class EmployeeDirectory(Protocol):
    """Resolves employees by id."""

    async def get_by_id(self, employee_id: str) -> Employee | None:
        """Return the employee or ``None`` when unknown."""


class InMemoryEmployeeDirectory(EmployeeDirectory):
    """Keep employees in a local dictionary.

    Used by tests and by the CLI, which seeds it from the YAML file named by
    ``employees_file`` in the configuration.
    """

    def __init__(self, employees: Iterable[Employee] = ()) -> None:
        self._employees: Dict[str, Employee] = {e.id: e for e in employees}

    @classmethod
    def from_yaml(cls, path: str | Path) -> "InMemoryEmployeeDirectory":
        with open(path) as f:
            data = yaml.safe_load(f) or []
        return cls(Employee(**item) for item in data)

    def add(self, employee: Employee) -> None:
        self._employees[employee.id] = employee

    async def get_by_id(self, employee_id: str) -> Employee | None:
        return self._employees.get(employee_id)
