# WORKFLOW: Register header-to-field mapping configuration.
# Used by: API startup, register importer, bootstrap script
# Functions:
# 1. RegisterMappingLoader.load() - Read and validate one document type's mapping file
# 2. load_register_mappings() - Load the mapping of every supported document type
# 3. map_headers() - Spreadsheet headers -> parcel field names
#
# Mapping flow: mapping/<type>_register_mapping.json -> JSON Schema validation -> plain dict
# Mappings are loaded once at startup and passed to the importer.

import json
import jsonschema
from pathlib import Path
from typing import Dict, Iterable, Optional
import logging

from core.config import settings
from core.exceptions import MappingNotFoundError
from services.parcel_variants import DOCUMENT_TYPES, variant_fields

logger = logging.getLogger(__name__)

RegisterMappings = Dict[str, Dict[str, str]]


class RegisterMappingLoader:
    """Loads header mappings and validates them against the mapping JSON schema."""

    def __init__(self, mapping_dir: Optional[str] = None, schema_path: Optional[str] = None):
        self.mapping_dir = Path(mapping_dir or settings.mapping_dir)
        self.schema_path = Path(schema_path or settings.mapping_schema_path)
        self.schema = self._load_schema()

    def _load_schema(self) -> Dict:
        """Load the JSON schema from file."""
        try:
            with open(self.schema_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except Exception as e:
            logger.error(f"Failed to load register mapping schema: {e}")
            raise

    def mapping_path(self, document_type: str) -> Path:
        return self.mapping_dir / f"{document_type}_register_mapping.json"

    def load(self, document_type: str) -> Dict[str, str]:
        """
        Load the header mapping of one document type.

        Args:
            document_type: Register document type (wbr, ozon)

        Returns:
            Source header -> parcel field name

        Raises:
            MappingNotFoundError: the mapping file does not exist
        """
        path = self.mapping_path(document_type)
        if not path.exists():
            raise MappingNotFoundError(str(path))

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            jsonschema.validate(instance=data, schema=self.schema)
        except jsonschema.ValidationError as e:
            logger.error(f"Register mapping {path} failed schema validation: {e.message}")
            raise

        mapping = {header.strip(): field for header, field in data["header_mappings"].items()}
        known = variant_fields(document_type)
        for header, field in mapping.items():
            if field not in known:
                logger.warning(f"Mapping {path.name}: header '{header}' targets unknown field '{field}', ignored")
        logger.info(f"Loaded {len(mapping)} header mappings for {document_type} registers")
        return {header: field for header, field in mapping.items() if field in known}


def load_register_mappings(document_types: Iterable[str] = DOCUMENT_TYPES,
                           loader: Optional[RegisterMappingLoader] = None) -> RegisterMappings:
    """Load the header mapping of every supported document type."""
    loader = loader or RegisterMappingLoader()
    return {document_type: loader.load(document_type) for document_type in document_types}


def map_headers(headers: Iterable[str], mapping: Dict[str, str]) -> Dict[str, str]:
    """Spreadsheet headers present in the mapping -> parcel field names."""
    return {header: mapping[header] for header in headers if header in mapping}
