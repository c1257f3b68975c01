# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exception taxonomy for memory graph operations.

Tool handlers catch every one of these and render them as ``✗`` text;
nothing here is allowed to reach the MCP runtime.
"""

from typing import Literal

from pydantic import ValidationError

ErrorKind = Literal["not_found", "validation", "storage_unavailable", "internal"]


class MemoryGraphError(Exception):
    """Base class for all memory graph errors."""

    kind: ErrorKind = "internal"


class MemoryNotFoundError(MemoryGraphError):
    """A referenced memory key does not exist in the scope."""

    kind: ErrorKind = "not_found"

    def __init__(self, key: str, role: str = "Memory"):
        self.key = key
        self.role = role
        super().__init__(f"{role} not found: {key}")


class MemoryValidationError(MemoryGraphError, ValueError):
    """Malformed input: out-of-range strength, unknown category or relation type."""

    kind: ErrorKind = "validation"


class StorageUnavailableError(MemoryGraphError):
    """The durable medium for a scope could not be read or written."""

    kind: ErrorKind = "storage_unavailable"


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into ``field: message; ...``.

    Locations use the wire (camelCase) field names; model-level errors have
    no location and are reported by message alone.
    """
    parts = []
    for error in exc.errors(include_url=False):
        message = error["msg"].removeprefix("Value error, ")
        location = ".".join(str(part) for part in error["loc"])
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)
