"""
Resource registry for the MCP dispatch core.

The ResourceManager owns two stores:
- static resources, keyed by exact URI (unique)
- resource templates, kept in registration order, whose URI pattern mixes
  literal text with {variable} placeholders

Lookup order for get(uri):
1. Exact match against static resources.
2. Templates in registration order; the first template that matches wins.
3. Otherwise ResourceNotFoundError.

Template matching is positional: literal segments must match exactly, and a
variable captures everything up to the first occurrence of the next literal
segment. A final literal segment is matched at the end of the URI, and a
trailing variable captures the rest of it. Captures must be non-empty and the
whole URI must be consumed.
"""

from __future__ import annotations

import base64
import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from mcp_dispatch.errors import (
    DuplicateResourceError,
    InvalidArgumentError,
    MCPError,
    RegistryLockedError,
    ResourceError,
    ResourceNotFoundError,
)
from mcp_dispatch.logging import get_logger
from mcp_dispatch.registry import call_handler

logger = get_logger(__name__)

# Handler types: static resources take no arguments, templates take the
# captured variables. Either may return an awaitable.
ResourceHandler = Callable[[], Any]
TemplateHandler = Callable[[dict[str, str]], Any]

DEFAULT_MIME_TYPE = "text/plain"

_VARIABLE_PATTERN = re.compile(r"\{([^{}]+)\}")


# =============================================================================
# URI Templates
# =============================================================================


class Segment(NamedTuple):
    """One piece of a compiled URI template."""

    value: str
    is_variable: bool


def compile_uri_template(uri_template: str) -> tuple[Segment, ...]:
    """
    Split a URI template into literal and variable segments.

    Args:
        uri_template: Pattern such as "file://{name}.log".

    Returns:
        Segments in order, e.g. (literal "file://", variable "name",
        literal ".log").

    Raises:
        InvalidArgumentError: If two variables are adjacent, since the
            boundary between them is undefined.
    """
    segments: list[Segment] = []
    pos = 0
    for match in _VARIABLE_PATTERN.finditer(uri_template):
        if match.start() > pos:
            segments.append(Segment(uri_template[pos : match.start()], False))
        elif segments and segments[-1].is_variable:
            raise InvalidArgumentError(
                f"URI template '{uri_template}' has adjacent variables",
                details={"uri_template": uri_template},
            )
        segments.append(Segment(match.group(1).strip(), True))
        pos = match.end()
    if pos < len(uri_template):
        segments.append(Segment(uri_template[pos:], False))
    return tuple(segments)


def match_uri_template(
    segments: tuple[Segment, ...], uri: str
) -> dict[str, str] | None:
    """
    Test a URI against compiled template segments.

    Args:
        segments: Output of compile_uri_template().
        uri: Concrete URI to match.

    Returns:
        Captured variables, or None if the URI does not match.
    """
    variables: dict[str, str] = {}
    pos = 0
    for index, segment in enumerate(segments):
        if not segment.is_variable:
            if not uri.startswith(segment.value, pos):
                return None
            pos += len(segment.value)
            continue

        if index + 1 == len(segments):
            end = len(uri)
        elif index + 2 == len(segments):
            # The final literal is anchored at the end of the URI
            suffix = segments[index + 1].value
            if not uri.endswith(suffix):
                return None
            end = len(uri) - len(suffix)
        else:
            end = uri.find(segments[index + 1].value, pos)
            if end == -1:
                return None

        value = uri[pos:end]
        if not value:
            return None
        variables[segment.value] = value
        pos = end

    return variables if pos == len(uri) else None


# =============================================================================
# Entries
# =============================================================================


@dataclass(frozen=True)
class StaticResource:
    """
    A resource served at one exact URI.

    Attributes:
        uri: Unique resource URI.
        name: Display name.
        description: Human-readable description.
        mime_type: MIME type of the content.
        handler: Zero-argument callable producing the content.
    """

    uri: str
    name: str
    handler: ResourceHandler
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE

    def to_dict(self) -> dict[str, Any]:
        """Return listing metadata (no handler)."""
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True)
class ResourceTemplate:
    """
    A family of resources served through one URI pattern.

    Attributes:
        uri_template: Pattern with {variable} placeholders.
        name: Display name.
        description: Human-readable description.
        mime_type: MIME type of the content.
        handler: Callable receiving the captured variables.
        segments: Compiled form of uri_template.
    """

    uri_template: str
    name: str
    handler: TemplateHandler
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE
    segments: tuple[Segment, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "segments", compile_uri_template(self.uri_template))

    @property
    def variables(self) -> list[str]:
        """Variable names in pattern order."""
        return [segment.value for segment in self.segments if segment.is_variable]

    def match(self, uri: str) -> dict[str, str] | None:
        """Return captured variables if uri matches this template."""
        return match_uri_template(self.segments, uri)

    def to_dict(self) -> dict[str, Any]:
        """Return listing metadata (no handler)."""
        return {
            "uriTemplate": self.uri_template,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }


def resource_contents(uri: str, mime_type: str, content: Any) -> dict[str, Any]:
    """
    Build one entry of a resources/read "contents" list.

    Bytes are base64-encoded into "blob"; everything else becomes "text".
    """
    if isinstance(content, (bytes, bytearray)):
        return {
            "uri": uri,
            "mimeType": mime_type,
            "blob": base64.b64encode(bytes(content)).decode("ascii"),
        }
    if isinstance(content, str):
        text = content
    elif isinstance(content, (dict, list)):
        text = json.dumps(content, indent=2, default=str)
    else:
        text = "" if content is None else str(content)
    return {"uri": uri, "mimeType": mime_type, "text": text}


# =============================================================================
# Resource Manager
# =============================================================================


class ResourceManager:
    """
    Registry of static resources and resource templates.

    Example:
        >>> resources = ResourceManager()
        >>> resources.add_resource("file://a.txt", "a", lambda: "hello")
        >>> resources.add_template("file://{name}.log", "logs", lambda v: "log:" + v["name"])
        >>> await resources.get("file://x.log")
        'log:x'
    """

    def __init__(self) -> None:
        """Initialize empty resource stores."""
        self._resources: dict[str, StaticResource] = {}
        self._templates: list[ResourceTemplate] = []
        self._locked = False

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_resource(
        self,
        uri: str,
        name: str,
        handler: ResourceHandler,
        description: str = "",
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> StaticResource:
        """
        Register a static resource.

        Raises:
            DuplicateResourceError: If uri is already registered.
            RegistryLockedError: If the session has connected.
        """
        if self._locked:
            raise RegistryLockedError("resource")
        if uri in self._resources:
            raise DuplicateResourceError(uri)
        resource = StaticResource(
            uri=uri,
            name=name,
            handler=handler,
            description=description,
            mime_type=mime_type,
        )
        self._resources[uri] = resource
        logger.debug("Registered resource", extra={"uri": uri})
        return resource

    def add_template(
        self,
        uri_template: str,
        name: str,
        handler: TemplateHandler,
        description: str = "",
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> ResourceTemplate:
        """
        Append a resource template. Patterns need not be mutually exclusive.

        Raises:
            InvalidArgumentError: If the pattern has adjacent variables.
            RegistryLockedError: If the session has connected.
        """
        if self._locked:
            raise RegistryLockedError("resource template")
        template = ResourceTemplate(
            uri_template=uri_template,
            name=name,
            handler=handler,
            description=description,
            mime_type=mime_type,
        )
        self._templates.append(template)
        logger.debug("Registered resource template", extra={"uri_template": uri_template})
        return template

    def lock(self) -> None:
        """Make both stores read-only."""
        self._locked = True

    @property
    def locked(self) -> bool:
        """Whether the stores reject further registrations."""
        return self._locked

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    def list_resources(self) -> list[dict[str, Any]]:
        """Return static resource metadata in registration order."""
        return [resource.to_dict() for resource in self._resources.values()]

    def list_templates(self) -> list[dict[str, Any]]:
        """Return template metadata in registration order."""
        return [template.to_dict() for template in self._templates]

    @property
    def resource_count(self) -> int:
        return len(self._resources)

    @property
    def template_count(self) -> int:
        return len(self._templates)

    def __len__(self) -> int:
        """Return the total number of resources and templates."""
        return len(self._resources) + len(self._templates)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def resolve(
        self, uri: str
    ) -> tuple[StaticResource | ResourceTemplate, dict[str, str] | None]:
        """
        Find the entry serving a URI without invoking it.

        Args:
            uri: Concrete resource URI.

        Returns:
            (entry, variables): variables is None for static resources.

        Raises:
            ResourceNotFoundError: If nothing matches.
        """
        resource = self._resources.get(uri)
        if resource is not None:
            return resource, None

        for template in self._templates:
            variables = template.match(uri)
            if variables is not None:
                return template, variables

        raise ResourceNotFoundError(uri)

    async def get(self, uri: str) -> Any:
        """
        Invoke the handler serving a URI and return its content.

        Raises:
            ResourceNotFoundError: If no static resource or template matches.
            ResourceError: If the handler raises; the message is preserved.
        """
        entry, variables = self.resolve(uri)
        return await self._invoke(entry, variables, uri)

    async def read(self, uri: str) -> dict[str, Any]:
        """
        Read a URI into a resources/read result.

        Returns:
            {"contents": [{"uri", "mimeType", "text" | "blob"}]}
        """
        entry, variables = self.resolve(uri)
        content = await self._invoke(entry, variables, uri)
        return {"contents": [resource_contents(uri, entry.mime_type, content)]}

    async def _invoke(
        self,
        entry: StaticResource | ResourceTemplate,
        variables: dict[str, str] | None,
        uri: str,
    ) -> Any:
        try:
            if variables is None:
                return await call_handler(entry.handler)
            return await call_handler(entry.handler, variables)
        except ResourceError:
            raise
        except Exception as e:
            message = e.message if isinstance(e, MCPError) else str(e)
            raise ResourceError(message, uri=uri) from e
