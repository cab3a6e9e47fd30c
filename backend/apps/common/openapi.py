"""
drf-spectacular 扩展：Bearer 认证描述、按 URL 前缀分组、稳定的 operationId
"""

from __future__ import annotations

import re

from drf_spectacular.extensions import OpenApiAuthenticationExtension
from drf_spectacular.openapi import AutoSchema
from drf_spectacular.plumbing import build_bearer_security_scheme_object

_NON_WORD = re.compile(r"\W+")


class JWTAuthScheme(OpenApiAuthenticationExtension):
    target_class = "apps.common.authentication.JWTAuthentication"
    name = "JWTAuth"

    def get_security_definition(self, auto_schema):
        return build_bearer_security_scheme_object(header_name="Authorization", token_prefix="Bearer")


def path_segments(path: str) -> list[str]:
    """
    /api/evaluations/events/{event_id}/ -> ["evaluations", "events", "event_id"]
    """
    segments = []
    for part in (path or "").strip("/").split("/"):
        part = part.strip("{}")
        if part and part != "api":
            segments.append(_NON_WORD.sub("_", part))
    return segments


class ShortDescriptionAutoSchema(AutoSchema):
    """
    未写 extend_schema(description=...) 的接口取视图 docstring 首行作为说明
    """

    def get_description(self) -> str:
        description = super().get_description()
        if description:
            return description
        doc = (type(self.view).__doc__ or "").strip()
        return doc.splitlines()[0].strip() if doc else f"{self.method} {self.path}"

    def get_tags(self) -> list[str]:
        tags = super().get_tags()
        if tags and tags != ["api"]:
            return tags
        segments = path_segments(self.path)
        return [segments[0]] if segments else ["api"]

    def get_operation_id(self) -> str:
        return "_".join([self.method.lower(), *path_segments(self.path)]) or self.method.lower()
