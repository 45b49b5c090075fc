# Copyright 1999-2019 Alibaba Group Holding Ltd.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from hms_mirror.model.enums import CreateStrategy


class Pair:
    """A (description, action) entry, used for SQL logs and table actions."""

    def __init__(self, description: str, action: str):
        self.description = description
        self.action = action

    def __eq__(self, other):
        return (isinstance(other, Pair) and
                self.description == other.description and
                self.action == other.action)

    def __repr__(self):
        return "Pair(%r, %r)" % (self.description, self.action)

    def to_dict(self):
        return {"description": self.description, "action": self.action}

    @classmethod
    def from_dict(cls, d: dict):
        return cls(d.get("description"), d.get("action"))


class EnvironmentTable:
    """One cluster side's view of a table.

    The definition is the captured DDL as an ordered list of lines. Features
    rewrite it in place; everything else reads it through
    hms_mirror.utils.table_utils.
    """

    def __init__(self, name=None):
        self.name = name
        self.exists = False
        self.create_strategy = CreateStrategy.NOTHING
        self.definition = []
        self.partitions = []
        self.add_properties = {}
        self.issues = []
        self.sql = []

    @property
    def partitioned(self) -> bool:
        return len(self.partitions) > 0

    def add_issue(self, issue: str):
        self.issues.append(issue)

    def add_property(self, key: str, value: str):
        self.add_properties[key] = value

    def add_sql(self, description: str, sql: str):
        self.sql.append(Pair(description, sql))

    def reset_attempt(self):
        """Forgets what a previous attempt recorded, keeps what was collected."""
        self.create_strategy = CreateStrategy.NOTHING
        self.add_properties = {}
        self.issues = []
        self.sql = []

    def to_dict(self):
        return {
            "name": self.name,
            "exists": self.exists,
            "createStrategy": self.create_strategy.value,
            "definition": list(self.definition),
            "partitions": list(self.partitions),
            "addProperties": dict(self.add_properties),
            "issues": list(self.issues),
            "sql": [p.to_dict() for p in list(self.sql)],
        }

    @classmethod
    def from_dict(cls, d: dict):
        env_table = cls(d.get("name"))
        env_table.exists = bool(d.get("exists", False))
        env_table.create_strategy = CreateStrategy(d.get("createStrategy",
                                                         CreateStrategy.NOTHING.value))
        env_table.definition = list(d.get("definition") or [])
        env_table.partitions = list(d.get("partitions") or [])
        env_table.add_properties = dict(d.get("addProperties") or {})
        env_table.issues = list(d.get("issues") or [])
        env_table.sql = [Pair.from_dict(p) for p in d.get("sql") or []]
        return env_table
