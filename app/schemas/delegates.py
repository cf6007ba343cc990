"""Delegate schemas"""

import logging
from datetime import datetime
from typing import Any, List, Mapping

from app.core.errors import ValidationError
from app.schemas.common import CamelModel

logger = logging.getLogger("tool-gateway.schemas.delegates")


class DelegateCapabilities(CamelModel):
    """
    Normalized capability flags a delegate declares about itself.

    Delegates announce capabilities either as a list of flag names
    (["canFileAccess"]) or as an object of booleans ({"canFileAccess": true}).
    Both shapes are adapted once, here, into the same three flags.

    Example:
        >>> DelegateCapabilities.from_raw(["canFileAccess"]) == \\
        ...     DelegateCapabilities.from_raw({"canFileAccess": True})
        True
    """

    managed_install: bool = False
    can_file_access: bool = False
    can_shell_access: bool = False

    @classmethod
    def from_raw(cls, raw: Any) -> "DelegateCapabilities":
        """
        Build capabilities from either legacy wire shape.

        Args:
            raw: None, a sequence of flag names, a mapping of flag name to
                bool, or an existing DelegateCapabilities

        Returns:
            Normalized capabilities; absent flags default to False

        Raises:
            ValidationError: If raw is neither shape
        """
        if raw is None:
            return cls()
        if isinstance(raw, DelegateCapabilities):
            return raw.model_copy()

        flags = {}
        if isinstance(raw, Mapping):
            for field_name, field in cls.model_fields.items():
                flags[field_name] = raw.get(field.alias) is True or raw.get(field_name) is True
            return cls(**flags)

        if isinstance(raw, (list, tuple, set, frozenset)):
            names = {str(item) for item in raw}
            for field_name, field in cls.model_fields.items():
                flags[field_name] = field.alias in names or field_name in names
            unknown = names - {f.alias for f in cls.model_fields.values()} - set(cls.model_fields)
            if unknown:
                logger.debug(f"Ignoring unknown capability names: {sorted(unknown)}")
            return cls(**flags)

        raise ValidationError(
            "Capabilities must be a list of names or an object of booleans",
            details={"type": type(raw).__name__},
        )


class DelegateInfo(CamelModel):
    """Connected delegate as reported by GET /tools/delegates"""

    delegate_id: str
    user_id: str
    tools: List[str]
    connected_at: datetime
    capabilities: DelegateCapabilities


class DelegateListResponse(CamelModel):
    """Response for GET /tools/delegates"""

    delegates: List[DelegateInfo]
