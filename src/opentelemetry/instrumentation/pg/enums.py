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


class AttributeNames:
    """PostgreSQL specific span attributes not covered by semconv"""

    PG_VALUES = "db.postgresql.values"
    PG_PLAN = "db.postgresql.plan"
    IDLE_TIMEOUT_MILLIS = "db.postgresql.idle.timeout.millis"
    MAX_CLIENT = "db.postgresql.max.client"


class SpanNames:
    QUERY_PREFIX = "pg.query"


DEFAULT_CONNECTION_STRING = "postgresql://localhost:5432/"
