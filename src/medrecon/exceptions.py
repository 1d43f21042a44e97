"""
Medrecon Exceptions

Data-quality problems are recovered where they occur and never surface
here. These types cover the two failure classes that do propagate: contract
violations at the merge boundary, and transport failures inside the
terminology and fetch collaborators (always caught by their callers).
"""


class MedreconError(Exception):
    """Base class for all medrecon errors."""


class MergeContractError(MedreconError, TypeError):
    """Records of different entity types were passed to one merge call."""

    def __init__(self, expected: str, found: str):
        self.expected = expected
        self.found = found
        super().__init__(
            f"Cannot deduplicate {found} records together with {expected} records"
        )


class TerminologyError(MedreconError):
    """An external terminology service call failed."""

    def __init__(self, system: str, code: str, reason: str):
        self.system = system
        self.code = code
        self.reason = reason
        super().__init__(f"{system} lookup for {code} failed: {reason}")


class FetchError(MedreconError):
    """A raw data fetch for one connection or resource type failed."""

    def __init__(self, connection_id: str, reason: str, resource_type: str | None = None):
        self.connection_id = connection_id
        self.resource_type = resource_type
        self.reason = reason
        target = f"{resource_type} for {connection_id}" if resource_type else connection_id
        super().__init__(f"Fetch of {target} failed: {reason}")
