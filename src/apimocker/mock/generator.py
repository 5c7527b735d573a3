"""
apimocker Data Generator

Synthetic record generation for mock endpoints.

Features:
- Schema-driven records from a {"field": "type"} mapping
- Faker-backed realistic values (names, emails, URLs, ...)
- Generic fallback records when the schema is not a type mapping
- Explicit random source for reproducible output
"""

from __future__ import annotations

import random
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from faker import Faker

from ..common import safe_json_parse
from .config import ConfigError

Record = Dict[str, Any]

# Value types used for generic fallback records
FALLBACK_VALUE_TYPES = [str, int, float, bool]
FALLBACK_FIELD_COUNT = 5


class GenerationError(Exception):
    """Raised when synthetic data cannot be generated."""


class FieldType(Enum):
    """Type tags accepted in an endpoint schema."""

    UUID = "uuid"
    NAME = "name"
    EMAIL = "email"
    BOOL = "bool"
    INT = "int"
    STRING = "string"
    LAT = "lat"
    LNG = "lng"
    IPV4 = "ipv4"
    URL = "url"
    USERNAME = "username"
    PASSWORD = "password"
    PHONE = "phone"
    DATE = "date"
    TIMESTAMP = "timestamp"

    @classmethod
    def from_tag(cls, tag: Any) -> Optional['FieldType']:
        """Resolve a schema tag, returning None for unknown tags."""
        try:
            return cls(tag)
        except ValueError:
            return None


class DataGenerator:
    """
    Faker-backed generator for mock response records.

    Example:
        generator = DataGenerator(rng=random.Random(42))
        users = generator.generate('{"id": "uuid", "name": "name"}', 10)
    """

    def __init__(self, rng: Optional[random.Random] = None, locale: str = "en_US"):
        """
        Initialize data generator.

        Args:
            rng: Random source shared with the rest of the pipeline
                 (a fresh unseeded one if None)
            locale: Faker locale for names, phone numbers, etc.

        Raises:
            ConfigError: If Faker does not know the locale
        """
        self.rng = rng or random.Random()
        self.locale = locale
        try:
            self.faker = Faker(locale)
        except AttributeError as e:
            raise ConfigError(f"Unknown Faker locale: {locale!r}") from e
        self.faker.seed_instance(self.rng.getrandbits(64))

    def generate(self, schema_source: str, count: int) -> List[Record]:
        """
        Generate records for an endpoint.

        Args:
            schema_source: JSON object mapping field names to type tags,
                           or any other string for generic records
            count: Number of records to produce

        Returns:
            List of records

        Raises:
            GenerationError: If the generic fallback generator fails
        """
        schema = self.parse_schema(schema_source)
        if schema is None:
            return self._generate_fallback(count)

        fields = {name: FieldType.from_tag(tag) for name, tag in schema.items()}
        return [
            {name: self.generate_value(field_type) for name, field_type in fields.items()}
            for _ in range(count)
        ]

    @staticmethod
    def parse_schema(schema_source: str) -> Optional[Dict[str, str]]:
        """Return the field→tag mapping, or None if the source is not one."""
        schema = safe_json_parse(schema_source)
        if not isinstance(schema, dict):
            return None
        if not all(isinstance(tag, str) for tag in schema.values()):
            return None
        return schema

    def generate_value(self, field_type: Optional[FieldType]) -> Any:
        """Generate one value for a field type (None for unknown types)."""
        fake = self.faker

        if field_type is FieldType.UUID:
            return str(uuid.UUID(int=self.rng.getrandbits(128), version=4))
        elif field_type is FieldType.NAME:
            return fake.name()
        elif field_type is FieldType.EMAIL:
            return fake.email()
        elif field_type is FieldType.BOOL:
            return self.rng.randrange(2) == 1
        elif field_type is FieldType.INT:
            return self.rng.randrange(1000)
        elif field_type is FieldType.STRING:
            return fake.word()
        elif field_type is FieldType.LAT:
            return float(fake.latitude())
        elif field_type is FieldType.LNG:
            return float(fake.longitude())
        elif field_type is FieldType.IPV4:
            return fake.ipv4()
        elif field_type is FieldType.URL:
            return fake.url()
        elif field_type is FieldType.USERNAME:
            return fake.user_name()
        elif field_type is FieldType.PASSWORD:
            return fake.password()
        elif field_type is FieldType.PHONE:
            return fake.phone_number()
        elif field_type is FieldType.DATE:
            return fake.date()
        elif field_type is FieldType.TIMESTAMP:
            return int(time.time())

        return None

    def _generate_fallback(self, count: int) -> List[Record]:
        # Shape varies per record
        try:
            return [
                self.faker.pydict(
                    nb_elements=FALLBACK_FIELD_COUNT,
                    variable_nb_elements=True,
                    value_types=FALLBACK_VALUE_TYPES
                )
                for _ in range(count)
            ]
        except Exception as e:
            raise GenerationError(f"Failed to generate fallback records: {e}") from e
