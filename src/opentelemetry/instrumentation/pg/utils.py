# Copyright The OpenTelemetry Authors
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
#
"""
Some utils used by the PostgreSQL integration.

None of the helpers below raise on malformed input: they run on every query,
so a bad port or an unparsable connection string degrades the recorded
telemetry instead of failing the database call.
"""

from __future__ import annotations

import json
import logging
import math
from numbers import Integral
from typing import Any, Mapping, Optional
from urllib.parse import SplitResult, unquote, urlsplit

from opentelemetry import propagate, trace
from opentelemetry.context import Context
from opentelemetry.instrumentation._semconv import (
    _OpenTelemetrySemanticConventionStability,
    _OpenTelemetryStabilitySignalType,
    _report_new,
    _report_old,
    _StabilityMode,
)
from opentelemetry.instrumentation.pg.enums import (
    DEFAULT_CONNECTION_STRING,
    AttributeNames,
    SpanNames,
)
from opentelemetry.instrumentation.pg.types import AttributeValue
from opentelemetry.instrumentation.sqlcommenter_utils import _add_sql_comment
from opentelemetry.semconv.attributes.db_attributes import (
    DB_NAMESPACE,
    DB_QUERY_TEXT,
    DB_SYSTEM_NAME,
)
from opentelemetry.semconv.attributes.error_attributes import ERROR_TYPE
from opentelemetry.semconv.attributes.server_attributes import (
    SERVER_ADDRESS,
    SERVER_PORT,
)
from opentelemetry.semconv.trace import DbSystemValues, SpanAttributes
from opentelemetry.trace import Span, SpanKind, Tracer
from opentelemetry.trace.status import Status, StatusCode

_logger = logging.getLogger(__name__)

_POSTGRESQL = DbSystemValues.POSTGRESQL.value
_SQLSTATE_ATTRIBUTES = ("sqlstate", "pgcode", "code")


def _get(obj: Any, key: str) -> Any:
    """Read ``key`` from a mapping or an object, ``None`` when absent"""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _without_empty_values(
    attributes: dict[str, Any],
) -> dict[str, AttributeValue]:
    return {
        key: value for key, value in attributes.items() if value is not None
    }


def get_semconv_stability_mode() -> _StabilityMode:
    """Database stability mode selected through OTEL_SEMCONV_STABILITY_OPT_IN"""
    _OpenTelemetrySemanticConventionStability._initialize()
    return _OpenTelemetrySemanticConventionStability._get_opentelemetry_stability_opt_in_mode(
        _OpenTelemetryStabilitySignalType.DATABASE
    )


def parse_normalized_operation_name(query_text: Any) -> Optional[str]:
    """Returns the leading keyword of a query, uppercased.

    Nothing is validated: whatever the first token is becomes the operation
    name, minus any trailing semicolons.
    """
    if not isinstance(query_text, str):
        return None
    tokens = query_text.split(None, 1)
    if not tokens:
        return None
    return tokens[0].upper().rstrip(";") or None


def get_query_span_name(db_name: Optional[str], query_config: Any) -> str:
    """Builds ``pg.query[:<statement name or operation>][ <db_name>]``.

    A prepared statement name wins over the operation parsed from the query
    text. Without a query at all only the prefix is returned.
    """
    if query_config is None:
        return SpanNames.QUERY_PREFIX
    if isinstance(query_config, str):
        query_config = {"text": query_config}

    name = _get(query_config, "name")
    if isinstance(name, str) and name:
        command = name
    else:
        command = parse_normalized_operation_name(_get(query_config, "text"))

    span_name = SpanNames.QUERY_PREFIX
    if command:
        span_name = f"{span_name}:{command}"
    if db_name:
        span_name = f"{span_name} {db_name}"
    return span_name


def _parse_connection_url(connection_string: Any) -> Optional[SplitResult]:
    if not isinstance(connection_string, str):
        return None
    try:
        parsed = urlsplit(connection_string)
        # the port is parsed lazily, a non numeric or out of range one raises
        parsed.port  # pylint: disable=pointless-statement
    except ValueError:
        return None
    authority = connection_string[len(parsed.scheme) + 1 :].startswith("//")
    if not (parsed.scheme and (authority or parsed.netloc)):
        return None
    return parsed


def parse_and_mask_connection_string(connection_string: Any) -> str:
    """Removes user and password from a connection URL.

    A URL without a host, such as a Unix socket URI, keeps its empty
    authority. Anything that does not parse as a URL is replaced by
    ``postgresql://localhost:5432/``.
    """
    parsed = _parse_connection_url(connection_string)
    if parsed is None:
        _logger.debug(
            "Unable to parse connection string, falling back to %s",
            DEFAULT_CONNECTION_STRING,
        )
        return DEFAULT_CONNECTION_STRING
    host = parsed.netloc.rpartition("@")[2]
    masked = f"{parsed.scheme}://{host}{parsed.path}"
    if parsed.query:
        masked = f"{masked}?{parsed.query}"
    if parsed.fragment:
        masked = f"{masked}#{parsed.fragment}"
    return masked


def get_connection_string(params: Any) -> str:
    connection_string = _get(params, "connection_string")
    if connection_string:
        return parse_and_mask_connection_string(connection_string)
    host = _get(params, "host") or "localhost"
    port = _get(params, "port") or 5432
    database = _get(params, "database") or ""
    return f"postgresql://{host}:{port}/{database}"


def get_port(port: Any) -> Optional[int | float]:
    """Returns ``port`` unchanged when it is a finite integral number"""
    if isinstance(port, bool):
        return None
    if isinstance(port, Integral):
        return port
    if isinstance(port, float) and math.isfinite(port) and port.is_integer():
        return port
    return None


def get_semantic_attributes_from_connection(
    params: Any, semconv_mode: _StabilityMode
) -> dict[str, AttributeValue]:
    host = _get(params, "host")
    port = get_port(_get(params, "port"))
    database = _get(params, "database")

    attributes = {}
    if _report_old(semconv_mode):
        attributes[SpanAttributes.DB_SYSTEM] = _POSTGRESQL
        attributes[SpanAttributes.DB_NAME] = database
        attributes[SpanAttributes.DB_CONNECTION_STRING] = (
            get_connection_string(params)
        )
        attributes[SpanAttributes.DB_USER] = _get(params, "user")
        attributes[SpanAttributes.NET_PEER_NAME] = host
        attributes[SpanAttributes.NET_PEER_PORT] = port
    if _report_new(semconv_mode):
        attributes[DB_SYSTEM_NAME] = _POSTGRESQL
        attributes[DB_NAMESPACE] = _get(params, "namespace") or database
        attributes[SERVER_ADDRESS] = host
        attributes[SERVER_PORT] = port
    return _without_empty_values(attributes)


def get_semantic_attributes_from_pool_connection(
    params: Any, semconv_mode: _StabilityMode
) -> dict[str, AttributeValue]:
    """Same as :func:`get_semantic_attributes_from_connection` for a pool.

    Host, port, database and user found in a parsable ``connection_string``
    take precedence over the structured fields.
    """
    url = _parse_connection_url(_get(params, "connection_string"))
    host = _get(params, "host")
    port = get_port(_get(params, "port"))
    database = _get(params, "database")
    user = _get(params, "user")
    if url is not None:
        host = url.hostname or host
        port = url.port or port
        database = unquote(url.path[1:]) or database
        user = unquote(url.username) if url.username else user

    attributes = {
        AttributeNames.IDLE_TIMEOUT_MILLIS: _get(params, "idle_timeout_millis"),
        AttributeNames.MAX_CLIENT: _get(params, "max_client"),
    }
    if _report_old(semconv_mode):
        attributes[SpanAttributes.DB_SYSTEM] = _POSTGRESQL
        attributes[SpanAttributes.DB_NAME] = database
        attributes[SpanAttributes.DB_CONNECTION_STRING] = (
            get_connection_string(params)
        )
        attributes[SpanAttributes.DB_USER] = user
        attributes[SpanAttributes.NET_PEER_NAME] = host
        attributes[SpanAttributes.NET_PEER_PORT] = port
    if _report_new(semconv_mode):
        attributes[DB_SYSTEM_NAME] = _POSTGRESQL
        attributes[DB_NAMESPACE] = _get(params, "namespace") or database
        attributes[SERVER_ADDRESS] = host
        attributes[SERVER_PORT] = port
    return _without_empty_values(attributes)


def get_pool_name(pool: Any) -> str:
    host = _get(pool, "host") or "unknown_host"
    port = _get(pool, "port")
    if port is None:
        port = "unknown_port"
    database = _get(pool, "database") or "unknown_database"
    return f"{host}:{port}/{database}"


def should_skip_instrumentation(
    instrumentation_config: Any, context: Optional[Context] = None
) -> bool:
    """Whether a call must go untraced.

    Only ``require_parent_span`` can skip a call, and only while no span is
    active in ``context`` (the current context when omitted).
    """
    if not _get(instrumentation_config, "require_parent_span"):
        return False
    parent = trace.get_current_span(context)
    return not parent.get_span_context().is_valid


def _stringify_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", "replace")
    to_postgres = getattr(value, "to_postgres", None)
    if callable(to_postgres):
        return str(to_postgres())
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


def handle_config_query(
    tracer: Tracer,
    instrumentation_config: Any,
    semconv_mode: _StabilityMode,
    connection_parameters: Any,
    query_config: Any,
) -> Span:
    """Starts the span of a single query, the caller has to end it."""
    if isinstance(query_config, str):
        query_config = {"text": query_config}

    span = tracer.start_span(
        get_query_span_name(
            _get(connection_parameters, "database"), query_config
        ),
        kind=SpanKind.CLIENT,
        attributes=get_semantic_attributes_from_connection(
            connection_parameters, semconv_mode
        ),
    )
    if query_config is None:
        return span

    text = _get(query_config, "text")
    if text:
        if _report_old(semconv_mode):
            span.set_attribute(SpanAttributes.DB_STATEMENT, text)
        if _report_new(semconv_mode):
            span.set_attribute(DB_QUERY_TEXT, text)

    values = _get(query_config, "values")
    if _get(instrumentation_config, "enhanced_database_reporting") and (
        isinstance(values, (list, tuple))
    ):
        try:
            span.set_attribute(
                AttributeNames.PG_VALUES,
                [_stringify_value(value) for value in values],
            )
        except Exception:  # pylint: disable=broad-exception-caught
            _logger.debug("Failed to stringify query values", exc_info=True)

    name = _get(query_config, "name")
    if isinstance(name, str):
        span.set_attribute(AttributeNames.PG_PLAN, name)
    return span


def _has_sql_comment(query_text: str) -> bool:
    return "--" in query_text or "/*" in query_text


def add_sql_commenter_comment(span: Span, query_text: Any) -> Any:
    """Appends the context of ``span`` to the query as a sqlcommenter comment"""
    if (
        not isinstance(query_text, str)
        or not query_text.strip()
        or _has_sql_comment(query_text)
    ):
        return query_text

    carrier = {}
    propagate.inject(carrier, context=trace.set_span_in_context(span))
    if not carrier:
        return query_text
    return _add_sql_comment(query_text, **carrier)


def handle_execution_result(
    instrumentation_config: Any, span: Span, result: Any
) -> None:
    response_hook = _get(instrumentation_config, "response_hook")
    if not callable(response_hook):
        return
    try:
        response_hook(span, {"data": result})
    except Exception:  # pylint: disable=broad-exception-caught
        _logger.exception("Error running response hook")


def get_error_message(error: Any) -> Optional[str]:
    if error is None:
        return None
    message = _get(error, "message")
    if isinstance(message, str) and message:
        return message
    return str(error) or None


def _get_error_type(error: BaseException) -> str:
    for attribute in _SQLSTATE_ATTRIBUTES:
        sqlstate = getattr(error, attribute, None)
        if isinstance(sqlstate, str) and sqlstate:
            return sqlstate
    return type(error).__qualname__


def handle_execution_error(
    span: Span, error: BaseException, semconv_mode: _StabilityMode
) -> None:
    if not span.is_recording():
        return
    if _report_new(semconv_mode):
        span.set_attribute(ERROR_TYPE, _get_error_type(error))
    span.set_status(Status(StatusCode.ERROR, get_error_message(error)))
