"""
Dependency Descriptor Model
===========================
One <dependency> entry of a Maven manifest.

Identity is the coordinate key ``groupId:artifactId``; version, scope and
type are NOT part of identity, so a later descriptor with the same key
always supersedes an earlier one.

``raw`` keeps the XML the descriptor was parsed from so that untouched
entries of an existing manifest can be re-emitted verbatim (exclusions,
classifiers and other children survive a merge).
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class DependencyDescriptor:
    group_id: str
    artifact_id: str
    version: Optional[str] = None
    scope: Optional[str] = None
    type: Optional[str] = None
    raw: str = field(default="", compare=False, repr=False)

    @property
    def key(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"

    def to_xml(self, indent: str = "    ") -> str:
        """Render the descriptor as a canonical <dependency> element."""
        inner = indent + "  "
        lines = [
            f"{indent}<dependency>",
            f"{inner}<groupId>{self.group_id}</groupId>",
            f"{inner}<artifactId>{self.artifact_id}</artifactId>",
        ]
        if self.version is not None:
            lines.append(f"{inner}<version>{self.version}</version>")
        if self.type is not None:
            lines.append(f"{inner}<type>{self.type}</type>")
        if self.scope is not None:
            lines.append(f"{inner}<scope>{self.scope}</scope>")
        lines.append(f"{indent}</dependency>")
        return "\n".join(lines)

    def __str__(self) -> str:
        return f"{self.key}:{self.version}"
