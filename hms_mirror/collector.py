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

import logging
import re
import traceback

from hms_mirror.config import Config
from hms_mirror.errors import MirrorException, SqlExecutionError
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.enums import Environment
from hms_mirror.utils import print_utils


class Collector:
    """Setup pass: builds the Conversion from what the LOWER cluster holds.

    Runs single threaded before any stage, so the database and table
    containers are complete and stable by the time tasks are scheduled.
    """

    def __init__(self, config: Config, conversion: Conversion, clusters: dict, logger=None):
        self._config = config
        self._conversion = conversion
        self._clusters = clusters
        self._logger = logger or logging.getLogger("collector")

    def _resolve_databases(self) -> list:
        if self._config.databases:
            return list(self._config.databases)
        pattern = re.compile(self._config.db_regex)
        databases = [db for db in self._clusters[Environment.LOWER].get_databases()
                     if pattern.fullmatch(db)]
        self._logger.info("databases matching '%s': %s" % (self._config.db_regex, databases))
        return databases

    def _filter_tables(self, tables: list) -> list:
        if not self._config.tbl_regex:
            return tables
        pattern = re.compile(self._config.tbl_regex)
        return [t for t in tables if pattern.fullmatch(t)]

    def _collect_table(self, db_mirror, table: str):
        lower = self._clusters[Environment.LOWER]
        upper = self._clusters[Environment.UPPER]
        tbl_mirror = db_mirror.add_table(table)

        definition = lower.get_table_definition(db_mirror.name, table)
        if definition is None:
            raise MirrorException("Couldn't read the definition of %s.%s on LOWER"
                                  % (db_mirror.name, table))
        tbl_mirror.set_table_definition(Environment.LOWER, definition)
        lower_table = tbl_mirror.get_environment_table(Environment.LOWER)
        try:
            lower_table.partitions = lower.get_partitions(db_mirror.name, table)
        except SqlExecutionError:
            # SHOW PARTITIONS fails on unpartitioned tables
            lower_table.partitions = []

        upper_db = self._config.resolve_database(db_mirror.name)
        upper_definition = upper.get_table_definition(upper_db, table)
        if upper_definition is not None:
            tbl_mirror.set_table_definition(Environment.UPPER, upper_definition)

    def collect(self) -> bool:
        print_utils.print_yellow("[Collecting metadata]\n")
        try:
            lower = self._clusters[Environment.LOWER]
            for database in self._resolve_databases():
                db_mirror = self._conversion.add_database(database)
                tables = self._filter_tables(lower.get_tables(database))
                self._logger.info("%s: %d tables to mirror" % (database, len(tables)))
                if len(tables) == 0:
                    db_mirror.add_issue("No tables found to mirror")
                    self._logger.warning("%s: no tables found to mirror" % database)
                for table in tables:
                    self._collect_table(db_mirror, table)
        except (MirrorException, SqlExecutionError, re.error) as e:
            self._logger.error("collecting metadata failed: %s" % e)
            self._logger.debug(traceback.format_exc())
            print_utils.print_red("[Collecting metadata failed] %s\n" % e)
            return False
        print_utils.print_green("[Collecting metadata done]\n")
        return True
