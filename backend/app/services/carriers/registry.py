"""
Carrier Format Registry

Built once at process start and handed to the ingestion engine. Never
mutated after construction.
"""
from __future__ import annotations
import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import TypeAdapter, ValidationError

from ..errors import UnsupportedCarrier
from .formats import BUILTIN_CARRIER_FORMATS, CarrierFormatConfig

logger = logging.getLogger(__name__)

CARRIER_FORMATS_FILE = os.getenv("CARRIER_FORMATS_FILE")

_formats_adapter = TypeAdapter(List[CarrierFormatConfig])


class CarrierFormatRegistry:
    """Case-insensitive lookup of carrier formats by carrier name."""

    def __init__(self, formats: Iterable[CarrierFormatConfig]):
        self._formats: Dict[str, CarrierFormatConfig] = {}
        for fmt in formats:
            key = fmt.name.casefold()
            if key in self._formats:
                raise ValueError(f"Duplicate carrier format: {fmt.name}")
            self._formats[key] = fmt

    @classmethod
    def from_definitions(cls, definitions: Iterable[dict]) -> "CarrierFormatRegistry":
        """Validate raw definitions. Raises ValueError naming every problem."""
        try:
            formats = _formats_adapter.validate_python(list(definitions))
        except ValidationError as e:
            raise ValueError(f"Invalid carrier format configuration:\n{e}") from e
        return cls(formats)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "CarrierFormatRegistry":
        """
        Load the registry.

        Uses the JSON file at `path` (or CARRIER_FORMATS_FILE) when given,
        otherwise the built-in definitions.
        """
        path = path or CARRIER_FORMATS_FILE
        if path:
            definitions = json.loads(Path(path).read_text(encoding="utf-8"))
            source = path
        else:
            definitions = BUILTIN_CARRIER_FORMATS
            source = "built-in definitions"

        registry = cls.from_definitions(definitions)
        logger.info(f"Loaded {len(registry)} carrier formats from {source}")
        return registry

    def get(self, carrier_name: str) -> CarrierFormatConfig:
        fmt = self._formats.get((carrier_name or "").strip().casefold())
        if fmt is None:
            raise UnsupportedCarrier(
                f"No configuration found for carrier: {carrier_name}. "
                f"Supported carriers: {', '.join(self.names())}",
                details={"carrier": carrier_name, "supported": self.names()},
            )
        return fmt

    def names(self) -> List[str]:
        return [fmt.name for fmt in self._formats.values()]

    def __contains__(self, carrier_name: str) -> bool:
        return (carrier_name or "").strip().casefold() in self._formats

    def __iter__(self) -> Iterator[CarrierFormatConfig]:
        return iter(self._formats.values())

    def __len__(self) -> int:
        return len(self._formats)
