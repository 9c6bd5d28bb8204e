"""
OpenAPI endpoint documentation synthesis.

Every operation in a spec becomes one self-contained markdown chunk with its
parameters, request and response schemas and a JSON example, plus one chunk
per vendor code sample. ``$ref`` pointers are resolved with cycle detection
and nesting is capped at ``MAX_SCHEMA_DEPTH``.
"""

import json
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

import yaml

from ..config.settings import ChunkConfig, ConfigurationError
from ..utils.helpers import slugify, title_case_words
from ..utils.logging import get_logger
from .assembler import ChunkAssembler
from .models import DocChunk, SourceDocument
from .sections import split_content
from .strategies import ChunkingStrategy

logger = get_logger(__name__)

HTTP_METHODS = ["get", "post", "put", "patch", "delete"]

MAX_SCHEMA_DEPTH = 3
MAX_EXAMPLE_PROPERTIES = 5

# Fixed literals keep generated examples deterministic
FORMAT_EXAMPLES = {
    "date-time": "2024-01-15T10:30:00Z",
    "date": "2024-01-15",
    "email": "user@example.com",
    "uri": "https://example.com",
    "uuid": "550e8400-e29b-41d4-a716-446655440000",
}

PARAMETER_LOCATIONS = [
    ("path", "Path Parameters"),
    ("query", "Query Parameters"),
    ("header", "Header Parameters"),
    ("cookie", "Cookie Parameters"),
]

_OPENAPI_DIRECTIVE = re.compile(r'^openapi:\s*["\']?(\w+)\s+([^"\'\n\r]+)["\']?', re.MULTILINE)

_NOT_FOUND = object()


@dataclass
class ParsingContext:
    """State for a single OpenAPI document, built fresh for every call."""
    base_url: str
    spec: Dict[str, Any] = field(default_factory=dict)
    doc_url_map: Dict[str, str] = field(default_factory=dict)

    @property
    def servers(self) -> List[Dict[str, Any]]:
        return self.spec.get("servers") or []

    def resolve_ref(self, ref: str, visited: FrozenSet[str] = frozenset()) -> Optional[Dict[str, Any]]:
        """Resolve a local ``#/...`` pointer, following chained refs.

        Returns ``None`` for unknown pointers and for refs already in
        ``visited``.
        """
        seen = set(visited)
        while True:
            if ref in seen or not ref.startswith("#/"):
                return None
            seen.add(ref)

            node: Any = self.spec
            for part in ref[2:].split("/"):
                part = part.replace("~1", "/").replace("~0", "~")
                if not isinstance(node, dict):
                    return None
                node = node.get(part, _NOT_FOUND)
                if node is _NOT_FOUND:
                    return None

            if not isinstance(node, dict):
                return None
            if "$ref" in node:
                ref = node["$ref"]
                continue
            return node

    def deref(self, node: Any) -> Any:
        """Return ``node`` itself, or its target when it is a ``$ref``."""
        if isinstance(node, dict) and "$ref" in node:
            return self.resolve_ref(node["$ref"])
        return node


def _ref_name(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


def _primary_type(schema: Dict[str, Any]) -> Optional[str]:
    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return next((t for t in schema_type if t != "null"), "string")
    if schema_type is None and "properties" in schema:
        return "object"
    return schema_type


def _json_media(content: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the JSON media type entry of a request or response ``content`` map."""
    if not content:
        return None
    if "application/json" in content:
        return content["application/json"] or {}
    for media_type, media in content.items():
        if "json" in media_type:
            return media or {}
    return None


def _literal_example(media: Dict[str, Any]) -> Any:
    if media.get("example") is not None:
        return media["example"]
    examples = media.get("examples")
    if isinstance(examples, dict):
        for example in examples.values():
            if isinstance(example, dict) and example.get("value") is not None:
                return example["value"]
    return None


# =============================================================================
# EXAMPLE GENERATION
# =============================================================================

def generate_example(schema: Optional[Dict[str, Any]], ctx: ParsingContext, depth: int = 0,
                     visited: FrozenSet[str] = frozenset()) -> Any:
    """Synthesize a JSON example from a schema.

    A literal ``example`` wins. Otherwise values are chosen by type and
    format; objects keep required properties first and at most
    ``MAX_EXAMPLE_PROPERTIES`` in total, arrays get one item. Nesting deeper
    than ``MAX_SCHEMA_DEPTH`` and ``$ref`` cycles produce ``None``.
    """
    if schema is None or depth > MAX_SCHEMA_DEPTH:
        return None

    if "$ref" in schema:
        ref = schema["$ref"]
        return generate_example(ctx.resolve_ref(ref, visited), ctx, depth, visited | {ref})

    if schema.get("example") is not None:
        return schema["example"]

    if schema.get("allOf"):
        merged: Dict[str, Any] = {}
        for part in schema["allOf"]:
            value = generate_example(part, ctx, depth, visited)
            if isinstance(value, dict):
                merged.update(value)
        return merged or None

    for key in ("oneOf", "anyOf"):
        if schema.get(key):
            return generate_example(schema[key][0], ctx, depth, visited)

    if schema.get("enum"):
        return schema["enum"][0]

    schema_type = _primary_type(schema)

    if schema_type == "object":
        properties = schema.get("properties") or {}
        required = set(schema.get("required") or [])
        ordered = [name for name in properties if name in required]
        ordered += [name for name in properties if name not in required]

        example = {}
        for name in ordered:
            if name not in required and len(example) >= MAX_EXAMPLE_PROPERTIES:
                break
            value = generate_example(properties[name], ctx, depth + 1, visited)
            if value is not None:
                example[name] = value

        # Back to declaration order
        return {name: example[name] for name in properties if name in example}

    if schema_type == "array":
        if not schema.get("items"):
            return []
        item = generate_example(schema["items"], ctx, depth + 1, visited)
        return [item] if item is not None else []

    if schema_type == "string":
        if schema.get("format") in FORMAT_EXAMPLES:
            return FORMAT_EXAMPLES[schema["format"]]
        return schema.get("default") or "string"

    if schema_type == "integer":
        return next((v for v in (schema.get("default"), schema.get("minimum")) if v is not None), 0)

    if schema_type == "number":
        return next((v for v in (schema.get("default"), schema.get("minimum")) if v is not None), 0.0)

    if schema_type == "boolean":
        return schema.get("default") if schema.get("default") is not None else True

    return None


# =============================================================================
# SCHEMA FORMATTING
# =============================================================================

def _variant_names(variants: List[Dict[str, Any]]) -> List[str]:
    names = []
    for variant in variants:
        if "$ref" in variant:
            names.append(_ref_name(variant["$ref"]))
        elif variant.get("type"):
            names.append(str(variant["type"]))
    return names


def build_type_string(schema: Dict[str, Any]) -> str:
    """Short type label for a property, such as ``array[Payment]``."""
    if "$ref" in schema:
        return _ref_name(schema["$ref"])

    if schema.get("allOf"):
        return " & ".join(_variant_names(schema["allOf"])) or "object"

    variants = schema.get("oneOf") or schema.get("anyOf")
    if variants:
        return " | ".join(_variant_names(variants)) or "any"

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return " | ".join(t for t in schema_type if t != "null")

    if schema_type == "array" and schema.get("items"):
        items = schema["items"]
        item_type = _ref_name(items["$ref"]) if "$ref" in items else items.get("type", "any")
        return f"array[{item_type}]"

    return schema_type or "any"


def _constraints(schema: Dict[str, Any]) -> str:
    parts = []
    if schema.get("minimum") is not None:
        parts.append(f"min: {schema['minimum']}")
    if schema.get("maximum") is not None:
        parts.append(f"max: {schema['maximum']}")
    return f" [{', '.join(parts)}]" if parts else ""


def _allowed(values: List[Any]) -> str:
    return f" (Allowed: {', '.join(f'`{value}`' for value in values)})"


def format_schema_properties(schema: Optional[Dict[str, Any]], ctx: ParsingContext, indent: str = "",
                             depth: int = 0, visited: FrozenSet[str] = frozenset()) -> str:
    """Render a schema's properties as a markdown bullet list."""
    if schema is None or depth > MAX_SCHEMA_DEPTH:
        return ""

    if "$ref" in schema:
        ref = schema["$ref"]
        return format_schema_properties(ctx.resolve_ref(ref, visited), ctx, indent, depth + 1, visited | {ref})

    if schema.get("allOf"):
        parts = [format_schema_properties(part, ctx, indent, depth + 1, visited) for part in schema["allOf"]]
        return "\n".join(part for part in parts if part)

    properties = schema.get("properties")
    if not properties:
        return ""

    required = set(schema.get("required") or [])
    lines = []

    for name, prop in properties.items():
        type_label = build_type_string(prop)
        if prop.get("format"):
            type_label += f" ({prop['format']})"
        if prop.get("nullable") or (isinstance(prop.get("type"), list) and "null" in prop["type"]):
            type_label += " | null"

        line = f"{indent}- **{name}** ({type_label}) - {'Required' if name in required else 'Optional'}"
        if prop.get("description"):
            line += f" - {' '.join(str(prop['description']).split())}"
        if prop.get("enum"):
            line += _allowed(prop["enum"])
        line += _constraints(prop)
        lines.append(line)

        # Inline nested objects, two levels at most
        if prop.get("type") == "object" and prop.get("properties") and depth < 2:
            nested = format_schema_properties(prop, ctx, indent + "  ", depth + 1, visited)
            if nested:
                lines.append(nested)

    return "\n".join(lines)


# =============================================================================
# PARAMETERS
# =============================================================================

def collect_parameters(path_item: Dict[str, Any], operation: Dict[str, Any], ctx: ParsingContext) -> List[Dict[str, Any]]:
    """Merge path level and operation level parameters, resolving ``$ref`` entries.

    An operation parameter replaces a path parameter with the same name and
    location.
    """
    merged: Dict[tuple, Dict[str, Any]] = {}
    for raw in (path_item.get("parameters") or []) + (operation.get("parameters") or []):
        param = ctx.deref(raw)
        if not isinstance(param, dict) or "name" not in param:
            continue
        merged[(param["name"], param.get("in"))] = param
    return list(merged.values())


def format_parameter(param: Dict[str, Any]) -> str:
    schema = param.get("schema") or {}
    type_label = schema.get("type", "string") if "$ref" not in schema else _ref_name(schema["$ref"])
    line = f"- **{param['name']}** ({type_label}) - {'Required' if param.get('required') else 'Optional'}"

    if param.get("description"):
        line += f" - {' '.join(str(param['description']).split())}"
    if schema.get("enum"):
        line += _allowed(schema["enum"])
    if schema.get("default") is not None:
        line += f" (Default: `{schema['default']}`)"
    example = param.get("example", schema.get("example"))
    if example is not None:
        line += f" (Example: `{example}`)"
    return line + _constraints(schema)


def format_parameters(params: List[Dict[str, Any]]) -> str:
    """Render parameters grouped by location, or ``None`` when there are none."""
    if not params:
        return "None"

    lines = []
    for location, title in PARAMETER_LOCATIONS:
        group = [param for param in params if param.get("in") == location]
        if group:
            lines.append(f"#### {title}")
            lines.extend(format_parameter(param) for param in group)
    return "\n".join(lines) or "None"


# =============================================================================
# URL RESOLUTION
# =============================================================================

def build_doc_url_map(docs_root: str, url_mapping_dir: str, base_url: str) -> Dict[str, str]:
    """Map ``"METHOD /path"`` to documentation URLs from MDX ``openapi:`` directives.

    Each ``.mdx`` file under ``docs_root/url_mapping_dir`` that declares
    ``openapi: get /payments`` maps that operation to ``base_url`` plus the
    file's relative path without extension.
    """
    doc_url_map: Dict[str, str] = {}
    mapping_dir = os.path.join(docs_root, url_mapping_dir)
    if not os.path.isdir(mapping_dir):
        logger.warning(f"URL mapping directory not found: {mapping_dir}")
        return doc_url_map

    base_url = base_url.rstrip("/")
    for root, dirs, files in os.walk(mapping_dir):
        dirs.sort()
        for file_name in sorted(files):
            if not file_name.endswith(".mdx"):
                continue

            file_path = os.path.join(root, file_name)
            try:
                with open(file_path, 'r', encoding='utf-8') as f:
                    content = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Skipping unreadable mapping file {file_path}: {e}")
                continue

            match = _OPENAPI_DIRECTIVE.search(content)
            if not match:
                continue

            slug = os.path.relpath(file_path, mapping_dir).replace(os.sep, "/")[:-len(".mdx")]
            key = f"{match.group(1).upper()} {match.group(2).strip()}"
            doc_url_map[key] = f"{base_url}/{slug}"

    logger.debug(f"Mapped {len(doc_url_map)} operations to documentation pages")
    return doc_url_map


def get_doc_url(ctx: ParsingContext, operation_id: str, method: str, path: str) -> str:
    """Documentation URL for an operation, mapped or derived from its id."""
    key = f"{method.upper()} {path}"
    if key in ctx.doc_url_map:
        return ctx.doc_url_map[key]

    resource = next((part for part in path.split("/") if part), "misc")
    slug = slugify(re.sub(r'_(handler|proxy)$', '', operation_id))
    return f"{ctx.base_url}/{resource}/{slug}"


# =============================================================================
# CHUNK CONTENT
# =============================================================================

def _status_label(code: str) -> str:
    if code.startswith("2"):
        return "Success"
    if code.startswith("4"):
        return "Client Error"
    return "Error"


def _json_block(value: Any) -> List[str]:
    return ["```json", json.dumps(value, indent=2, ensure_ascii=False, default=str), "```"]


def render_operation(method: str, path: str, operation: Dict[str, Any], parameters: List[Dict[str, Any]],
                     ctx: ParsingContext, action_name: str) -> str:
    """Render the markdown documentation for one operation."""
    lines = [f"## {method.upper()} {path}", ""]

    summary = operation.get("summary")
    detail = operation.get("description")
    lines += ["### Description", summary or detail or f"{action_name} endpoint."]
    if summary and detail:
        lines += ["", str(detail).strip()]
    lines.append("")

    lines += ["### Method", method.upper(), ""]
    lines += ["### Endpoint", path, ""]

    if ctx.servers:
        lines.append("#### Base URLs")
        for server in ctx.servers:
            description = f" ({server['description']})" if server.get("description") else ""
            lines.append(f"- {server.get('url', '')}{description}")
        lines.append("")

    lines += ["### Parameters", format_parameters(parameters), ""]

    request_body = ctx.deref(operation.get("requestBody"))
    media = _json_media(request_body.get("content")) if isinstance(request_body, dict) else None
    if media is not None:
        schema = media.get("schema")
        lines.append("### Request Body")
        if schema:
            properties = format_schema_properties(schema, ctx)
            if properties:
                lines.append(properties)
        lines.append("")

        example = _literal_example(media)
        if example is None:
            example = generate_example(schema, ctx)
        if example:
            lines += ["### Request Example"] + _json_block(example) + [""]

    responses = operation.get("responses") or {}
    if responses:
        lines.append("### Response")

        for code, raw_response in responses.items():
            code = str(code)
            response = ctx.deref(raw_response) or {}
            lines.append(f"#### {_status_label(code)} Response ({code})")
            if response.get("description"):
                lines.append(response["description"].strip())

            media = _json_media(response.get("content"))
            if media is not None:
                schema = media.get("schema")
                properties = format_schema_properties(schema, ctx) if schema else ""
                if properties:
                    lines.append(properties)

                if code.startswith("2"):
                    example = _literal_example(media)
                    if example is None:
                        example = generate_example(schema, ctx)
                    if example:
                        lines += ["", "#### Response Example"] + _json_block(example)
            lines.append("")

    return "\n".join(lines).strip()


def _code_samples(operation: Dict[str, Any]) -> List[Dict[str, Any]]:
    samples = operation.get("x-codeSamples") or operation.get("x-code-samples") or []
    return [sample for sample in samples if isinstance(sample, dict) and sample.get("source")]


class OpenApiChunkStrategy(ChunkingStrategy):
    """Strategy that synthesizes endpoint documentation from an OpenAPI spec.

    ``base_url`` is required. ``doc_url_map`` maps ``"METHOD /path"`` keys to
    documentation pages, see ``build_doc_url_map``.
    """

    parser = "openapi"

    def __init__(self, chunk_config: Optional[ChunkConfig] = None, base_url: Optional[str] = None,
                 doc_url_map: Optional[Dict[str, str]] = None):
        super().__init__(chunk_config)
        self.base_url = base_url.rstrip("/") if base_url else base_url
        self.doc_url_map = dict(doc_url_map or {})

    def create_context(self, spec: Dict[str, Any]) -> ParsingContext:
        """Fresh per-document context; nothing is shared between calls."""
        return ParsingContext(base_url=self.base_url, spec=spec, doc_url_map=dict(self.doc_url_map))

    def load_spec(self, document: SourceDocument) -> Optional[Dict[str, Any]]:
        try:
            spec = yaml.safe_load(document.content)
        except yaml.YAMLError as e:
            self.logger.error(f"Failed to parse OpenAPI spec {document.path}: {e}")
            return None

        if not isinstance(spec, dict) or not isinstance(spec.get("paths"), dict):
            self.logger.warning(f"No paths found in OpenAPI spec {document.path}")
            return None
        return spec

    def chunk_document(self, document: SourceDocument) -> List[DocChunk]:
        if not self.base_url:
            raise ConfigurationError(
                "baseUrl is required for OpenAPI parsing. Set baseUrl in your source configuration."
            )

        spec = self.load_spec(document)
        if spec is None:
            return []

        ctx = self.create_context(spec)
        chunks: List[DocChunk] = []
        endpoint_count = 0
        sample_count = 0

        for path, raw_path_item in spec["paths"].items():
            path_item = ctx.deref(raw_path_item)
            if not isinstance(path_item, dict):
                continue

            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue

                operation_chunks = self.chunk_operation(document, ctx, method, str(path), path_item, operation)
                chunks.extend(operation_chunks)
                endpoint_count += 1
                sample_count += len(_code_samples(operation))

        self.logger.info(f"Generated {endpoint_count} endpoint docs and {sample_count} code samples from {document.path}")
        return chunks

    def chunk_operation(self, document: SourceDocument, ctx: ParsingContext, method: str, path: str,
                        path_item: Dict[str, Any], operation: Dict[str, Any]) -> List[DocChunk]:
        """Chunks for one operation: its documentation, then one per code sample."""
        operation_id = operation.get("operationId") or f"{method}_{path.replace('/', '_')}"
        action_name = title_case_words(operation_id)
        tag = (operation.get("tags") or ["API"])[0]
        doc_url = get_doc_url(ctx, operation_id, method, path)

        assembler = ChunkAssembler(
            slug=f"api/{operation_id}",
            title=f"{action_name} - {method.upper()} {path}",
            category="api-reference",
            document_path=f"api-reference/{slugify(str(tag))}/{operation_id.replace('_', '-')}",
            source_url=doc_url,
            repository=document.repository,
            language=document.language,
        )

        parameters = collect_parameters(path_item, operation, ctx)
        content = render_operation(method, path, operation, parameters, ctx, action_name)
        description = operation.get("summary") or operation.get("description") or f"{action_name} endpoint."

        pieces = split_content(content, self.chunk_config)
        for number, piece in enumerate(pieces, 1):
            heading = action_name if len(pieces) == 1 else f"{action_name} (Part {number})"
            assembler.add(heading, piece, description=description, method=method.upper(), path=path)

        for sample in _code_samples(operation):
            lang = str(sample.get("lang") or sample.get("label") or "text")
            sample_content = "\n".join([
                f"{lang} code example for `{method.upper()} {path}`",
                "",
                f"```{lang.lower()}",
                str(sample["source"]).rstrip(),
                "```",
            ])
            assembler.add(
                f"{lang} Example",
                sample_content,
                description=f"{lang} code example for {action_name}",
                method=method.upper(),
                path=path,
                language=lang,
            )

        return assembler.chunks
