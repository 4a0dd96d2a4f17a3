"""The ``glazed`` output layer and processor setup from its values."""

from __future__ import annotations

from ..core.exceptions import UnsupportedOutputFormat
from .formatters import (
    TABLE_FORMATS,
    ExcelOutputFormatter,
    JSONOutputFormatter,
    OutputFormatter,
    TableOutputFormatter,
    YAMLOutputFormatter,
)
from .layers import ParameterLayer, ParameterLayers, ParsedLayer
from .parameters import ParameterDefinition, ParameterType
from .processor import FieldsFilterMiddleware, SortColumnsMiddleware, TableProcessor

GLAZED_SLUG = "glazed"

OUTPUT_FORMATS = ("table", "json", "yaml", "excel", *TABLE_FORMATS)


def new_glazed_layer() -> ParameterLayer:
    return ParameterLayer(
        slug=GLAZED_SLUG,
        name="Glazed output flags",
        description="Control how rows are formatted",
    ).add_definitions(
        ParameterDefinition(
            "output",
            ParameterType.CHOICE,
            help="Output format",
            default="table",
            choices=list(OUTPUT_FORMATS),
        ),
        ParameterDefinition(
            "table-format",
            ParameterType.CHOICE,
            help="Table format when output is 'table'",
            default="ascii",
            choices=list(TABLE_FORMATS),
        ),
        ParameterDefinition("output-file", ParameterType.STRING, help="Write output to this file"),
        ParameterDefinition("fields", ParameterType.STRING_LIST, help="Fields to keep, in order", default=[]),
        ParameterDefinition("filter", ParameterType.STRING_LIST, help="Fields to remove", default=[]),
        ParameterDefinition(
            "sort-columns",
            ParameterType.BOOL,
            help="Sort columns alphabetically",
            default=False,
        ),
        ParameterDefinition("indent", ParameterType.INTEGER, help="JSON indentation", default=2),
    )


def ensure_glazed_layer(layers: ParameterLayers) -> ParameterLayers:
    """Add the glazed layer to ``layers`` if it's missing."""
    if GLAZED_SLUG not in layers:
        layers.append_layers(new_glazed_layer())
    return layers


def _value(parsed_layer: ParsedLayer | None, name: str, default=None):
    if parsed_layer is None:
        return default
    value = parsed_layer.get_value(name)
    return default if value is None else value


def setup_table_processor(parsed_layer: ParsedLayer | None) -> TableProcessor:
    """Build a processor with the row and table middlewares the layer asks for."""
    processor = TableProcessor()
    fields = _value(parsed_layer, "fields", [])
    filters = _value(parsed_layer, "filter", [])
    if fields or filters:
        processor.add_row_middleware(FieldsFilterMiddleware(fields, filters))
    if _value(parsed_layer, "sort-columns", False):
        processor.add_table_middleware(SortColumnsMiddleware(fields))
    return processor


def create_output_formatter(parsed_layer: ParsedLayer | None) -> OutputFormatter:
    output = _value(parsed_layer, "output", "table")
    if output == "json":
        return JSONOutputFormatter(indent=_value(parsed_layer, "indent", 2))
    if output == "yaml":
        return YAMLOutputFormatter()
    if output == "excel":
        return ExcelOutputFormatter()
    if output == "table":
        return TableOutputFormatter(_value(parsed_layer, "table-format", "ascii"))
    if output in TABLE_FORMATS:
        return TableOutputFormatter(output)
    raise UnsupportedOutputFormat(f"unknown output format '{output}'")


def setup_processor_output(processor: TableProcessor, parsed_layer: ParsedLayer | None) -> OutputFormatter:
    """Attach the formatter selected by the layer to ``processor``."""
    formatter = create_output_formatter(parsed_layer)
    processor.output_formatter = formatter
    return formatter
