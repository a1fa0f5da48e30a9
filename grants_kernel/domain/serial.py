"""
Serial identifiers for assigned workplans.

Format (bit-exact):

    LCC-{DonorShort}-{StateShort}-{MMYY}-{Sequence:04d}

    e.g. LCC-ABC-KH-0125-0007

The sequence is per grant and comes from Grant.max_workplan_sequence.
Sequences above 9999 render with more digits; they are never truncated.

Pure functions only.  Issuing numbers is GrantSequenceService's job.
"""

import re
from dataclasses import dataclass

from grants_kernel.exceptions import InvalidMonthYearError

SERIAL_PREFIX = "LCC"

_MMYY_RE = re.compile(r"^\d{4}$")
_SERIAL_RE = re.compile(
    r"^(?P<prefix>[A-Z]+)-(?P<donor>[^-]+)-(?P<state>[^-]+)-(?P<mmyy>\d{4})-(?P<seq>\d{4,})$"
)


def validate_mmyy(mmyy: str) -> str:
    """
    Validate a month-year tag.

    Raises:
        InvalidMonthYearError: Unless mmyy is exactly four digits with a
            month between 01 and 12.
    """
    if not isinstance(mmyy, str) or not _MMYY_RE.match(mmyy):
        raise InvalidMonthYearError(str(mmyy))
    month = int(mmyy[:2])
    if month < 1 or month > 12:
        raise InvalidMonthYearError(mmyy)
    return mmyy


@dataclass(frozen=True)
class SerialId:
    """One rendered serial, kept as its segments."""

    donor_code: str
    state_code: str
    mmyy: str
    sequence: int
    prefix: str = SERIAL_PREFIX

    def __post_init__(self) -> None:
        if self.sequence < 1:
            raise ValueError(f"Serial sequence must be >= 1, got {self.sequence}")

    def render(self) -> str:
        return (
            f"{self.prefix}-{self.donor_code}-{self.state_code}"
            f"-{self.mmyy}-{self.sequence:04d}"
        )

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def parse(cls, value: str) -> "SerialId":
        """
        Read a serial back into its segments.

        For display and legacy rows only.  Assignment state is decided by
        Workplan.serial_status, never by parsing.

        Raises:
            ValueError: If value is not a well-formed serial.
        """
        match = _SERIAL_RE.match(value.strip()) if value else None
        if match is None:
            raise ValueError(f"Not a serial id: {value!r}")
        return cls(
            donor_code=match["donor"],
            state_code=match["state"],
            mmyy=match["mmyy"],
            sequence=int(match["seq"]),
            prefix=match["prefix"],
        )


def plan_serials(
    donor_code: str,
    state_codes: list[str],
    mmyy: str,
    start_after: int,
) -> list[SerialId]:
    """
    Number one serial per state code, starting at start_after + 1.

    state_codes is in project order; the i-th serial gets sequence
    start_after + i + 1.
    """
    validate_mmyy(mmyy)
    if start_after < 0:
        raise ValueError(f"start_after must be >= 0, got {start_after}")
    return [
        SerialId(
            donor_code=donor_code,
            state_code=state_code,
            mmyy=mmyy,
            sequence=start_after + offset,
        )
        for offset, state_code in enumerate(state_codes, start=1)
    ]
