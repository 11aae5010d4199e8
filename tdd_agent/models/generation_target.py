"""
Generation Target Model
=======================
Pydantic model describing the single unit the convergence loop works on.

Fields:
    class_name      — simple class name (e.g. "Calculator")
    package_name    — dotted package (e.g. "com.example.math"), None/"" for the default package
    specification   — free-text description of the intended behaviour

The model is frozen: one target is fixed for the lifetime of a run.
"""
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class GenerationTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    class_name: str
    package_name: Optional[str] = None
    specification: str = ""

    @field_validator("class_name")
    @classmethod
    def validate_class_name(cls, v: str) -> str:
        v = v.strip()
        if not _IDENTIFIER_RE.match(v):
            raise ValueError(f"Invalid class name: {v!r}")
        return v

    @field_validator("package_name")
    @classmethod
    def validate_package_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not all(_IDENTIFIER_RE.match(part) for part in v.split(".")):
            raise ValueError(f"Invalid package name: {v!r}")
        return v

    @property
    def package_path(self) -> str:
        """Package as a relative directory path ("" for the default package)."""
        return self.package_name.replace(".", "/") if self.package_name else ""

    @property
    def qualified_name(self) -> str:
        if self.package_name:
            return f"{self.package_name}.{self.class_name}"
        return self.class_name
