# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/config/targets.py

"""
Restore target and routing rule models.

A restore target says WHERE archives are provisioned:
- zfs: a root dataset under which one dataset (or file) per leaf lives
- lvmthin: a volume group plus the thin pool new volumes are carved from

Routing rules map a source provider tag (and optionally a filename regex)
to a target name. Rules are evaluated in declaration order.
"""

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROVIDER_TAGS = ("zfs", "lvmthin")


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class PoolTarget(BaseModel):
    """Pool-backend restore destination."""
    model_config = ConfigDict(extra='forbid')

    type: Literal["zfs"]
    root: str = Field(..., description="Root dataset, e.g. 'tank/restore'")

    @field_validator("root")
    @classmethod
    def check_root(cls, value: str) -> str:
        return _non_empty(value)

    def __str__(self) -> str:
        return f"zfs:{self.root}"


class ThinTarget(BaseModel):
    """Thin-backend restore destination."""
    model_config = ConfigDict(extra='forbid')

    type: Literal["lvmthin"]
    vg: str = Field(..., description="Volume group name")
    thinpool: str = Field(..., description="Thin pool LV inside the volume group")

    @field_validator("vg", "thinpool")
    @classmethod
    def check_names(cls, value: str) -> str:
        return _non_empty(value)

    def __str__(self) -> str:
        return f"lvmthin:{self.vg}/{self.thinpool}"


RestoreTarget = Annotated[Union[PoolTarget, ThinTarget], Field(discriminator="type")]


class RestoreRule(BaseModel):
    """Route archives from one source provider to a named target."""
    model_config = ConfigDict(extra='forbid')

    provider: str
    regex: str | None = None
    target: str

    @field_validator("provider", "target")
    @classmethod
    def check_names(cls, value: str) -> str:
        return _non_empty(value)

    @field_validator("regex")
    @classmethod
    def check_regex(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regex {value!r}: {e}") from e
        return value
