"""
couchmodel — Model Option Schemas
===================================

What:  Pydantic models for the options a model is constructed with: the
       views it exposes and the (optional) REST surface on top of them.
How:   Options arrive as plain dicts (code or JSON env vars) and are
       validated into these models before the route table is built.
Who:   Consumed by CouchModel, the route table builder and Settings.

Example (the `views` and `restapi` arguments of create_model):

    {
        "views": [
            "_design/article/_view/by_date",
            {"path": "_design/article/_view/by_tag", "name": "by_one_of_the_tags"},
            {"path": "_design/article/_view/by_slug"}
        ],
        "restapi": {
            "prefix": "/articles",
            "index": true,
            "byID": true,
            "views": {"byOneOfTheTags": false, "bySlug": true}
        }
    }

Prefix rules are checked by the route table builder (not here) so that a
malformed prefix surfaces as InvalidPrefix, like the other configuration
errors.
"""

from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from couchmodel.exceptions import ConfigurationError


class ViewRegistration(BaseModel):
    """
    What:  One view the model can query.
    Fields:
        path: Canonical CouchDB view path, e.g. "_design/article/_view/by_slug"
        name: Exposed short name; defaults to the last path segment
    """
    path: str = Field(description="Canonical view path inside the database")
    name: Optional[str] = Field(
        default=None,
        description="Exposed name used for finders and REST paths",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """View paths are relative to the database and never empty."""
        v = v.strip().strip("/")
        if not v:
            raise ValueError("View path must not be empty")
        return v

    @classmethod
    def coerce(cls, value: Union[str, dict, "ViewRegistration"]) -> "ViewRegistration":
        """Accepts a bare path string, a {path, name} mapping or an instance."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            value = {"path": value}
        try:
            return cls.model_validate(value)
        except ValidationError as e:
            raise ConfigurationError(
                message="Invalid view registration",
                context={"errors": e.errors(include_url=False)},
            ) from e


class RestApiOptions(BaseModel):
    """
    What:  Switches for the embedded REST handler.
    Defaults:
        Everything is disabled; a route is reachable only when switched on.
        `byID` (camelCase spelling used by view keys too) is
        accepted alongside `by_id`.
    """
    prefix: str = Field(default="", description="Mount prefix, e.g. '/articles'")
    index: bool = Field(default=False, description="Enable GET / (document listing)")
    by_id: bool = Field(
        default=False,
        alias="byID",
        description="Enable GET /{id} (single document)",
    )
    views: Dict[str, bool] = Field(
        default_factory=dict,
        description="View key (exposed name or camelCase form) → enabled",
    )

    model_config = {"populate_by_name": True, "frozen": True}

    @classmethod
    def coerce(cls, value: Union[dict, "RestApiOptions", None]) -> Optional["RestApiOptions"]:
        """None stays None (no REST surface); dicts are validated."""
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls.model_validate(value)
        except ValidationError as e:
            raise ConfigurationError(
                message="Invalid REST options",
                context={"errors": e.errors(include_url=False)},
            ) from e
