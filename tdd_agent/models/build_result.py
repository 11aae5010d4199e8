"""
Build Result Model
==================
Raw build/test output plus the derived "all tests passed" flag.

The flag is computed from a fixed literal marker (e.g. "BUILD SUCCESS"),
never from structured parsing of the output.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class BuildResult:
    output: str
    tests_passed: bool

    @classmethod
    def from_output(cls, output: str, success_marker: str) -> "BuildResult":
        output = output or ""
        return cls(output=output, tests_passed=success_marker in output)
