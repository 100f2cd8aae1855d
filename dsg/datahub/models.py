"""
DataHub entity shapes

Plain data-transfer models for the OpenAPI v3 entity endpoints. Every aspect
is wrapped in a ``{"value": {...}}`` envelope, exactly as DataHub sends and
expects it. The models only describe structure; they do not validate
catalog semantics.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic.config import ConfigDict

from dsg.errors import DecodeError, UnsupportedEntityTypeError

TERM_SOURCE_INTERNAL = "INTERNAL"
GLOSSARY_TERM_URN_PREFIX = "urn:li:glossaryTerm:"

DATASET = "dataset"
GLOSSARY_TERM = "glossaryTerm"


class _Shape(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Shared aspects
# ---------------------------------------------------------------------------


class AuditStamp(_Shape):
    time: int = 0
    actor: str = ""


class GlossaryTermAssociation(_Shape):
    urn: str


class GlossaryTerms(_Shape):
    terms: List[GlossaryTermAssociation] = Field(default_factory=list)
    audit_stamp: AuditStamp = Field(default_factory=AuditStamp, alias="auditStamp")


class TagAssociation(_Shape):
    tag: str


class GlobalTags(_Shape):
    tags: List[TagAssociation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Schema metadata
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Type tags a schema field may carry."""

    STRING = "com.linkedin.schema.StringType"
    NUMBER = "com.linkedin.schema.NumberType"


class FieldTypeChoice(_Shape):
    """Tagged choice over the field type tags.

    dsg builds the string and number tags. Other tags the catalog uses
    (BooleanType, DateType...) are kept as extra keys and encoded back as
    they came in.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    string: Optional[Dict[str, Any]] = Field(default=None, alias=FieldType.STRING.value)
    number: Optional[Dict[str, Any]] = Field(default=None, alias=FieldType.NUMBER.value)

    @model_validator(mode="after")
    def _not_both(self) -> "FieldTypeChoice":
        if self.string is not None and self.number is not None:
            raise ValueError(
                f"field type cannot be both {FieldType.STRING.value} and {FieldType.NUMBER.value}"
            )
        return self

    @classmethod
    def of(cls, kind: FieldType) -> "FieldTypeChoice":
        if kind is FieldType.STRING:
            return cls(string={})
        return cls(number={})

    @property
    def kind(self) -> Optional[FieldType]:
        """The known tag that is set, or None for other tags."""
        if self.string is not None:
            return FieldType.STRING
        if self.number is not None:
            return FieldType.NUMBER
        return None


class SchemaFieldDataType(_Shape):
    type: FieldTypeChoice


class SchemaField(_Shape):
    field_path: str = Field(alias="fieldPath")
    description: Optional[str] = None
    type: SchemaFieldDataType
    native_data_type: str = Field(default="", alias="nativeDataType")
    recursive: bool = False
    glossary_terms: Optional[GlossaryTerms] = Field(default=None, alias="glossaryTerms")


class MySqlDDL(_Shape):
    table_schema: str = Field(default="", alias="tableSchema")


class PlatformSchema(_Shape):
    mysql_ddl: Optional[MySqlDDL] = Field(default=None, alias="com.linkedin.schema.MySqlDDL")


class SchemaMetadata(_Shape):
    schema_name: str = Field(default="", alias="schemaName")
    platform: str = ""
    version: int = 0
    hash: str = ""
    platform_schema: PlatformSchema = Field(default_factory=PlatformSchema, alias="platformSchema")
    fields: List[SchemaField] = Field(default_factory=list)


class EditableSchemaFieldInfo(_Shape):
    field_path: str = Field(alias="fieldPath")
    glossary_terms: Optional[GlossaryTerms] = Field(default=None, alias="glossaryTerms")


class EditableSchemaMetadata(_Shape):
    editable_schema_field_info: List[EditableSchemaFieldInfo] = Field(
        default_factory=list, alias="editableSchemaFieldInfo"
    )


class DatasetKey(_Shape):
    platform: str = ""
    name: str = ""
    origin: str = ""


# ---------------------------------------------------------------------------
# Aspect envelopes
# ---------------------------------------------------------------------------


class SchemaMetadataAspect(_Shape):
    value: SchemaMetadata


class DatasetKeyAspect(_Shape):
    value: DatasetKey


class GlobalTagsAspect(_Shape):
    value: GlobalTags


class GlossaryTermsAspect(_Shape):
    value: GlossaryTerms


class EditableSchemaMetadataAspect(_Shape):
    value: EditableSchemaMetadata


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Dataset(_Shape):
    urn: str
    schema_metadata: Optional[SchemaMetadataAspect] = Field(default=None, alias="schemaMetadata")
    dataset_key: Optional[DatasetKeyAspect] = Field(default=None, alias="datasetKey")
    global_tags: Optional[GlobalTagsAspect] = Field(default=None, alias="globalTags")
    glossary_terms: Optional[GlossaryTermsAspect] = Field(default=None, alias="glossaryTerms")
    editable_schema_metadata: Optional[EditableSchemaMetadataAspect] = Field(
        default=None, alias="editableSchemaMetadata"
    )

    @property
    def schema_name(self) -> Optional[str]:
        if self.schema_metadata is None:
            return None
        return self.schema_metadata.value.schema_name or None

    @property
    def name(self) -> Optional[str]:
        if self.dataset_key is None:
            return None
        return self.dataset_key.value.name or None


class GlossaryTermInfo(_Shape):
    name: str = ""
    definition: str = ""
    term_source: str = Field(default="", alias="termSource")


class GlossaryTermInfoAspect(_Shape):
    value: GlossaryTermInfo


class GlossaryTerm(_Shape):
    urn: str
    info: GlossaryTermInfoAspect = Field(alias="glossaryTermInfo")


ENTITY_MODELS = {
    DATASET: Dataset,
    GLOSSARY_TERM: GlossaryTerm,
}


class DatasetSummary(BaseModel):
    """What dsg remembers about a generated response in the history table."""

    schema_name: Optional[str] = None
    schema_urn: Optional[str] = None
    dataset_name: Optional[str] = None


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def new_glossary_term(name: str, definition: str = "", urn: Optional[str] = None) -> GlossaryTerm:
    """Build a glossary term created by dsg (source INTERNAL)."""
    return GlossaryTerm(
        urn=urn or GLOSSARY_TERM_URN_PREFIX + name,
        info=GlossaryTermInfoAspect(
            value=GlossaryTermInfo(
                name=name, definition=definition, term_source=TERM_SOURCE_INTERNAL
            )
        ),
    )


def dump_entity(entity: BaseModel) -> Dict[str, Any]:
    return entity.model_dump(by_alias=True, exclude_none=True)


def dump_entities(entities: Sequence[BaseModel], indent: Optional[int] = None) -> str:
    """Encode entities as a JSON array using DataHub field names."""
    return json.dumps([dump_entity(e) for e in entities], indent=indent, ensure_ascii=False)


def parse_entities(entity_type: str, text: str) -> List[BaseModel]:
    """
    Decode a JSON array of entities of the given type.

    Raises:
        UnsupportedEntityTypeError: entity_type is neither dataset nor glossaryTerm.
        DecodeError: text is not a JSON array of matching entities.
    """
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise UnsupportedEntityTypeError(entity_type, list(ENTITY_MODELS))

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise DecodeError(f"expected a JSON array of {entity_type} entities")

    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        raise DecodeError(f"invalid {entity_type} entity: {e}") from e


def parse_datasets(text: str) -> List[Dataset]:
    return parse_entities(DATASET, text)  # type: ignore[return-value]


def parse_glossary_terms(text: str) -> List[GlossaryTerm]:
    return parse_entities(GLOSSARY_TERM, text)  # type: ignore[return-value]


class _PartialKey(_Shape):
    name: Optional[str] = None


class _PartialSchema(_Shape):
    schema_name: Optional[str] = Field(default=None, alias="schemaName")


class _PartialSchemaAspect(_Shape):
    value: _PartialSchema = Field(default_factory=_PartialSchema)


class _PartialKeyAspect(_Shape):
    value: _PartialKey = Field(default_factory=_PartialKey)


class _PartialDataset(_Shape):
    urn: Optional[str] = None
    schema_metadata: Optional[_PartialSchemaAspect] = Field(default=None, alias="schemaMetadata")
    dataset_key: Optional[_PartialKeyAspect] = Field(default=None, alias="datasetKey")


def summarize_response(text: str) -> DatasetSummary:
    """
    Pull schema name, URN and dataset name out of the first dataset in a
    generated response. Anything that does not fit the dataset shape yields
    an empty summary.
    """
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return DatasetSummary()
    if isinstance(data, list):
        if not data:
            return DatasetSummary()
        data = data[0]

    try:
        partial = _PartialDataset.model_validate(data)
    except ValidationError:
        return DatasetSummary()

    return DatasetSummary(
        schema_name=partial.schema_metadata.value.schema_name if partial.schema_metadata else None,
        schema_urn=partial.urn,
        dataset_name=partial.dataset_key.value.name if partial.dataset_key else None,
    )
