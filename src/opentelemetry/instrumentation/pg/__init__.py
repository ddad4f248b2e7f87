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

"""
Helpers for tracing PostgreSQL clients.

They name query spans, turn connection and pool configuration into semantic
convention attributes and strip credentials from connection strings. Driver
specific instrumentations call them from their wrappers.

Usage
-----

.. code-block:: python

    from opentelemetry import trace
    from opentelemetry.instrumentation.pg import (
        ConnectionParameters,
        PgInstrumentationConfig,
        QueryConfig,
    )
    from opentelemetry.instrumentation.pg.utils import (
        add_sql_commenter_comment,
        get_semconv_stability_mode,
        handle_config_query,
        handle_execution_error,
        handle_execution_result,
        should_skip_instrumentation,
    )

    tracer = trace.get_tracer(__name__)
    config = PgInstrumentationConfig(enhanced_database_reporting=True)
    params = ConnectionParameters(host="localhost", port=5432, database="app")
    semconv_mode = get_semconv_stability_mode()

    def traced_query(run_query, text, values):
        if should_skip_instrumentation(config):
            return run_query(text, values)
        span = handle_config_query(
            tracer,
            config,
            semconv_mode,
            params,
            QueryConfig(text=text, values=values),
        )
        if config.add_sql_commenter_comment_to_queries:
            text = add_sql_commenter_comment(span, text)
        try:
            result = run_query(text, values)
            handle_execution_result(config, span, result)
            return result
        except Exception as exc:
            handle_execution_error(span, exc, semconv_mode)
            raise
        finally:
            span.end()

    traced_query(run_query, "SELECT $1", ["hello"])

Configuration
-------------

Attribute names follow ``OTEL_SEMCONV_STABILITY_OPT_IN``: ``database`` emits
the stable database conventions only, ``database/dup`` emits both the stable
and the legacy ones, anything else keeps the legacy names.

API
---
"""

from opentelemetry.instrumentation.pg.enums import AttributeNames, SpanNames
from opentelemetry.instrumentation.pg.types import (
    ConnectionParameters,
    PgInstrumentationConfig,
    PoolOptions,
    QueryConfig,
)
from opentelemetry.instrumentation.pg.version import __version__

__all__ = [
    "AttributeNames",
    "ConnectionParameters",
    "PgInstrumentationConfig",
    "PoolOptions",
    "QueryConfig",
    "SpanNames",
    "__version__",
]
