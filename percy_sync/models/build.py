"""Client-side view of one build on the comparison service."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from percy_sync.models.resource import Resource


class BuildSession(BaseModel):
    """A created build and the resources declared against it.

    Resources are keyed by sha, so adding the same content twice keeps a
    single entry. Finalizing is terminal; the client does not police calls
    made after it.
    """

    model_config = ConfigDict(validate_assignment=True)

    build_id: str
    web_url: str | None = None
    resources: dict[str, Resource] = Field(default_factory=dict)
    finalized: bool = False

    @classmethod
    def from_response(
        cls, body: dict[str, Any], resources: list[Resource] | None = None
    ) -> "BuildSession":
        """Build a session from a create-build response body."""
        data = body.get("data") or {}
        attributes = data.get("attributes") or {}
        session = cls(build_id=str(data.get("id", "")), web_url=attributes.get("web-url"))
        session.add_resources(resources or [])
        return session

    def add_resources(self, resources: list[Resource]) -> None:
        for resource in resources:
            self.resources.setdefault(resource.sha, resource)

    @property
    def shas(self) -> list[str]:
        return list(self.resources)
