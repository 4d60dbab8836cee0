"""Custom field engine: typed field definitions, value bags and template presets."""

from .definitions import DefinitionEditError, FieldDefinition, FieldDefinitionRegistry
from .field_types import FieldType, FieldTypeError, decode, encode, parse_options, validate_value
from .session import InstanceFormSession
from .templates import MergeResult, Template, TemplateError, merge_template
from .value_bag import FieldValue, RenderedField, ValueBag

__all__ = [
    "DefinitionEditError",
    "FieldDefinition",
    "FieldDefinitionRegistry",
    "FieldType",
    "FieldTypeError",
    "FieldValue",
    "InstanceFormSession",
    "MergeResult",
    "RenderedField",
    "Template",
    "TemplateError",
    "ValueBag",
    "decode",
    "encode",
    "merge_template",
    "parse_options",
    "validate_value",
]
