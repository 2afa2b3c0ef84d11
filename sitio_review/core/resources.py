"""
Resource repository interface — read-only access to live sitio/project data.

The conflict detector needs the current state of the resource a change
targets. Hosts that keep sitios and projects outside this database pass an
IResourceRepository to ReviewController; without one the controller reads
the bundled resources table in its own session.
"""

from __future__ import annotations

import abc
from typing import Any, Optional


class IResourceRepository(abc.ABC):
    """Interface for live resource lookups."""

    @abc.abstractmethod
    def get_current(self, resource_type: str, resource_id: int) -> Optional[Any]:
        """
        Return the live record for (resource_type, resource_id).

        Returns:
            The record as structured data, or None if it does not exist.
        """
        ...
