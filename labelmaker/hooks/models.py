"""
Registration records and verified events.

Records are stored as JSON using the original service's field names
(Owner, Name, HookID, AccessToken, HookPath, Secret) so existing data
keeps loading.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class RepoRecord(BaseModel):
    """Registration of one repository, keyed by owner:name."""

    owner: str = Field(alias="Owner")
    name: str = Field(alias="Name")
    hook_id: int = Field(alias="HookID")
    access_token: str = Field(alias="AccessToken", repr=False)
    hook_path: str = Field(alias="HookPath")

    class Config:
        populate_by_name = True
        frozen = True

    @property
    def key(self) -> str:
        return repo_key(self.owner, self.name)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data) -> "RepoRecord":
        return cls.model_validate_json(data)

    def public_dict(self) -> Dict[str, Any]:
        """Representation safe to return to clients; drops the access token."""
        return {
            "owner": self.owner,
            "name": self.name,
            "hook_id": self.hook_id,
            "hook_path": self.hook_path,
        }


class HookRecord(BaseModel):
    """Secret material for one callback path."""

    owner: str = Field(alias="Owner")
    name: str = Field(alias="Name")
    secret: str = Field(alias="Secret", repr=False)

    class Config:
        populate_by_name = True
        frozen = True

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, data) -> "HookRecord":
        return cls.model_validate_json(data)


@dataclass(frozen=True)
class VerifiedEvent:
    """A callback whose signature has been checked against its hook secret."""
    owner: str
    name: str
    event_type: str
    body: bytes = field(repr=False)
    delivery_id: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def payload(self) -> Any:
        """Decode the JSON body."""
        return json.loads(self.body)


def repo_key(owner: str, name: str) -> str:
    """Field name of a repository in the repos hash."""
    return f"{owner}:{name}"
