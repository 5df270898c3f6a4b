import re
from typing import Dict, Optional, Set

from pydantic import BaseModel, Field


class Status(BaseModel):
    """State of an LDES in LDP, recomputed on every call"""
    found: bool = Field(False, description="HEAD on the root answered 200")
    valid: bool = Field(False, description="Root metadata parses as LDES in LDP metadata")
    writable: bool = Field(False, description="WAC-Allow grants write access to the root")
    empty: bool = Field(False, description="One relation whose fragment has no children")
    full: bool = Field(False, description="Retention policy limit reached (not evaluated)")


WAC_ALLOW_PATTERN = re.compile(r'(\w+)\s*=\s*"([^"]*)"')


def parse_wac_allow(header: Optional[str]) -> Dict[str, Set[str]]:
    """Access modes per permission group of a WAC-Allow header"""
    if not header:
        return {}
    return {group: set(modes.split()) for group, modes in WAC_ALLOW_PATTERN.findall(header)}


def is_writable(header: Optional[str]) -> bool:
    """Write access granted to the current user or the public"""
    permissions = parse_wac_allow(header)
    return any("write" in permissions.get(group, set()) for group in ("user", "public"))
