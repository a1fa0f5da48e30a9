"""
LedgerSettings -- kernel-side view of ledger configuration.

The kernel never reads YAML or environment variables.  The service layer
builds a LedgerSettings (see grants_config.bridges) and hands it to the
kernel services that need it.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DEFAULT_PLACEHOLDER_STATE = "XX"


@dataclass(frozen=True)
class LedgerSettings:
    """
    Settings consumed by the serial allocator and the aggregate calculator.

    Attributes:
        placeholder_state_code: State segment used when a state has no
            short-code mapping.
        state_aliases: Legacy spelling -> canonical state name.
    """

    placeholder_state_code: str = DEFAULT_PLACEHOLDER_STATE
    state_aliases: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not self.placeholder_state_code:
            raise ValueError("placeholder_state_code must be non-empty")
        if not isinstance(self.state_aliases, MappingProxyType):
            object.__setattr__(
                self, "state_aliases", MappingProxyType(dict(self.state_aliases))
            )
