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

import time

from hms_mirror.config import Config
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import Environment, PhaseState


class Conversion:
    """Root of a run: every database and table being migrated.

    The whole graph, including the config, is what the retry file persists.
    Databases are only added during the single threaded setup pass and are
    never removed.
    """

    def __init__(self, config: Config = None):
        self.config = config
        self.start = time.time()
        self._databases = {}

    @property
    def databases(self) -> dict:
        return {k: self._databases[k] for k in sorted(self._databases)}

    def add_database(self, database: str) -> DBMirror:
        if database not in self._databases:
            self._databases[database] = DBMirror(database)
        return self._databases[database]

    def get_database(self, database: str) -> DBMirror:
        return self._databases.get(database)

    def tables(self):
        """Yields (db_mirror, tbl_mirror), database-major and table-minor."""
        for db_mirror in self.databases.values():
            for tbl_mirror in db_mirror.table_mirrors.values():
                yield db_mirror, tbl_mirror

    def phase_summary(self) -> dict:
        summary = {state: 0 for state in PhaseState}
        for _, tbl_mirror in self.tables():
            summary[tbl_mirror.phase_state] += 1
        return summary

    def __str__(self):
        tables = 0
        partitions = 0
        for _, tbl_mirror in self.tables():
            tables += 1
            partitions += len(tbl_mirror.get_partition_definition(Environment.LOWER))
        return ("Conversion:\n"
                "\tDatabases : %d\n"
                "\tTables    : %d\n"
                "\tPartitions: %d") % (len(self._databases), tables, partitions)

    def to_dict(self):
        return {
            "start": self.start,
            "config": self.config.to_dict() if self.config is not None else None,
            "databases": {k: v.to_dict() for k, v in self.databases.items()},
        }

    @classmethod
    def from_dict(cls, d: dict):
        config = Config.from_dict(d["config"]) if d.get("config") is not None else None
        conversion = cls(config)
        conversion.start = d.get("start", conversion.start)
        for database, db_dict in (d.get("databases") or {}).items():
            conversion._databases[database] = DBMirror.from_dict(db_dict)
        return conversion
