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
Plain data holders handed to :mod:`opentelemetry.instrumentation.pg.utils`.

Every field is optional and ``None`` means absent. The helpers in ``utils``
also accept mappings or arbitrary objects exposing the same field names, so
driver configuration objects can be passed through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from opentelemetry.trace import Span

AttributeValue = Union[str, int, float, Sequence[str]]

ResponseHook = Callable[[Span, Mapping[str, Any]], None]


@dataclass(frozen=True)
class QueryConfig:
    """A query as issued to the driver."""

    text: Optional[str] = None
    values: Optional[Sequence[Any]] = None
    # prepared statement name
    name: Optional[str] = None


@dataclass(frozen=True)
class ConnectionParameters:
    host: Optional[str] = None
    port: Any = None
    database: Optional[str] = None
    user: Optional[str] = None
    namespace: Optional[str] = None
    connection_string: Optional[str] = None


@dataclass(frozen=True)
class PoolOptions(ConnectionParameters):
    max: Optional[int] = None
    max_client: Optional[int] = None
    max_uses: Optional[int] = None
    idle_timeout_millis: Optional[int] = None
    allow_exit_on_idle: Optional[bool] = None
    max_lifetime_seconds: Optional[int] = None


@dataclass
class PgInstrumentationConfig:
    """Options controlling what the PostgreSQL instrumentation records.

    Args:
        enhanced_database_reporting: Record bound query values as
            ``db.postgresql.values``. Values may hold sensitive data.
        require_parent_span: Only create spans when a parent span is active.
        add_sql_commenter_comment_to_queries: Append a sqlcommenter comment
            carrying the span context to outgoing queries.
        response_hook: Called with the span and ``{"data": result}`` once the
            driver returned a result.
    """

    enhanced_database_reporting: bool = False
    require_parent_span: bool = False
    add_sql_commenter_comment_to_queries: bool = False
    response_hook: Optional[ResponseHook] = None
