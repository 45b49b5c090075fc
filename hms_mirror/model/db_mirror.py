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

from hms_mirror.model.table_mirror import TableMirror


class DBMirror:
    def __init__(self, name: str):
        self.name = name
        self.issues = []
        self._table_mirrors = {}

    @property
    def table_mirrors(self) -> dict:
        # sorted so reports and retries walk tables in the same order
        return {k: self._table_mirrors[k] for k in sorted(self._table_mirrors)}

    def add_table(self, table: str) -> TableMirror:
        if table not in self._table_mirrors:
            self._table_mirrors[table] = TableMirror(self.name, table)
        return self._table_mirrors[table]

    def get_table(self, table: str) -> TableMirror:
        return self._table_mirrors.get(table)

    def add_issue(self, issue: str):
        self.issues.append(issue)

    def __len__(self):
        return len(self._table_mirrors)

    def to_dict(self):
        return {
            "name": self.name,
            "issues": list(self.issues),
            "tableMirrors": {k: v.to_dict() for k, v in self.table_mirrors.items()},
        }

    @classmethod
    def from_dict(cls, d: dict):
        db_mirror = cls(d["name"])
        db_mirror.issues = list(d.get("issues") or [])
        for table, tbl_dict in (d.get("tableMirrors") or {}).items():
            db_mirror._table_mirrors[table] = TableMirror.from_dict(tbl_dict)
        return db_mirror
