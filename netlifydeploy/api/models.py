"""Records exchanged with the Netlify deploy API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Site(BaseModel):
    """A site from GET /sites."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    url: Optional[str] = None


class Deploy(BaseModel):
    """
    A deploy as returned by POST /sites/{site_id}/deploys and GET /deploys/{id}.
    Only state and required matter to the pipeline; unknown states mean "not yet".
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    state: str = ""
    site_id: Optional[str] = None
    deploy_url: str = ""
    deploy_ssl_url: Optional[str] = None
    # API sends null when nothing is missing
    required: Optional[List[str]] = None

    @property
    def required_digests(self) -> List[str]:
        return list(self.required or [])


class DeployFiles(BaseModel):
    """Request body for creating a deploy: announces path -> sha1 for every file."""

    files: Dict[str, str] = Field(default_factory=dict)
    draft: bool = True
    async_: bool = Field(default=True, alias="async")
    branch: Optional[str] = None
    functions: Optional[Dict[str, str]] = None

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict:
        """Body as sent on the wire: "async" key, branch dropped when empty, functions null."""
        body = self.model_dump(by_alias=True)
        if not body.get("branch"):
            body.pop("branch", None)
        body["functions"] = None
        return body
