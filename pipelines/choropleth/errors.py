from __future__ import annotations


class ChoroplethError(ValueError):
    """Structural problem that must stop the pipeline before anything is drawn."""


class KeyMismatchError(ChoroplethError):
    """Join key does not follow the geometry provider's naming for the granularity."""


class DuplicateRegionError(ChoroplethError):
    def __init__(self, keys):
        self.keys = list(keys)
        shown = self.keys[:10]
        more = f" (+{len(self.keys) - len(shown)} more)" if len(self.keys) > len(shown) else ""
        super().__init__(
            f"{len(self.keys)} region key(s) have conflicting values: {shown}{more}. "
            "Pass tie_break='first', 'last' or 'mean' to resolve them explicitly."
        )


class UnsupportedGranularityError(ChoroplethError):
    def __init__(self, name, supported):
        self.name = name
        self.supported = sorted(supported)
        super().__init__(f"Unsupported granularity {name!r}; expected one of {self.supported}")


class IncompleteCoverageWarning(UserWarning):
    """Some geometry has no matching value and will be drawn with the missing-value colour."""
