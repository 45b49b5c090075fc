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

from hms_mirror import sql
from hms_mirror.config import Config
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import CreateStrategy, Environment, StorageStrategy
from hms_mirror.model.table_mirror import TableMirror
from hms_mirror.utils import table_utils


class DataTransfer:
    """Moves table data from LOWER to UPPER for the storage stage."""

    def __init__(self, clusters: dict, logger=None):
        self._clusters = clusters
        self._logger = logger or logging.getLogger("data transfer")
        self._strategies = {
            StorageStrategy.SQL: self._transfer_sql,
            StorageStrategy.EXPORT_IMPORT: self._transfer_export_import,
            StorageStrategy.HYBRID: self._transfer_hybrid,
            StorageStrategy.DISTCP: self._transfer_distcp,
        }

    @property
    def lower(self):
        return self._clusters[Environment.LOWER]

    @property
    def upper(self):
        return self._clusters[Environment.UPPER]

    def fix_config(self, config: Config) -> bool:
        """Returns False when a storage run would have nothing to move."""
        if config.share_storage and not config.storage.migrate_acid:
            self._logger.warning("Shared storage without ACID migration: the METADATA stage "
                                 "already gives UPPER access to the data.")
            return False
        return True

    def transfer(self, strategy: StorageStrategy, config: Config, db_mirror: DBMirror,
                 tbl_mirror: TableMirror) -> bool:
        return self._strategies[strategy](config, db_mirror, tbl_mirror)

    def _transfer_hybrid(self, config: Config, db_mirror: DBMirror,
                         tbl_mirror: TableMirror) -> bool:
        definition = tbl_mirror.get_table_definition(Environment.LOWER)
        partitions = tbl_mirror.get_partition_definition(Environment.LOWER)
        if table_utils.is_acid(definition):
            chosen = StorageStrategy.EXPORT_IMPORT
        elif len(partitions) > config.storage.export_import_partition_limit:
            chosen = StorageStrategy.SQL
        else:
            chosen = StorageStrategy.EXPORT_IMPORT
        tbl_mirror.add_action("Hybrid strategy", chosen.value)
        return self._strategies[chosen](config, db_mirror, tbl_mirror)

    def _transfer_sql(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror) -> bool:
        if not self.upper.build_upper_schema_with_upper_data(config, db_mirror, tbl_mirror):
            return False

        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        upper_db = config.resolve_database(db_mirror.name)
        shadow = sql.SHADOW_PREFIX + tbl_mirror.name

        # shadow table on UPPER reading LOWER's files in place
        shadow_definition = list(tbl_mirror.get_table_definition(Environment.LOWER))
        table_utils.change_table_name(shadow_definition, upper_db, shadow)
        table_utils.to_external(shadow_definition)
        table_utils.set_location(shadow_definition, self.upper.lower_location(config, tbl_mirror))
        table_utils.upsert_tbl_property(shadow_definition, sql.EXTERNAL_PURGE_PROPERTY, "false")

        self.upper.run_sql(config, "Drop shadow table", sql.DROP_TABLE % (upper_db, shadow),
                           upper, db_mirror.name, tbl_mirror.name)
        self.upper.run_sql(config, "Create shadow table",
                           table_utils.to_create_statement(shadow_definition),
                           upper, db_mirror.name, tbl_mirror.name)

        partition_columns = table_utils.get_partition_columns(shadow_definition)
        if len(partition_columns) > 0:
            self.upper.run_sql(config, "Discover shadow partitions",
                               sql.MSCK_REPAIR % (upper_db, shadow),
                               upper, db_mirror.name, tbl_mirror.name)
            statement = sql.DYNAMIC_PARTITION_SETTINGS + sql.INSERT_OVERWRITE_PARTITIONED % (
                upper_db, tbl_mirror.name, ", ".join(partition_columns), upper_db, shadow)
        else:
            statement = sql.INSERT_OVERWRITE % (upper_db, tbl_mirror.name, upper_db, shadow)
        self.upper.run_sql(config, "Transfer data", statement,
                           upper, db_mirror.name, tbl_mirror.name)
        self.upper.run_sql(config, "Drop shadow table", sql.DROP_TABLE % (upper_db, shadow),
                           upper, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("Transfer", StorageStrategy.SQL.value)
        return True

    def _transfer_export_import(self, config: Config, db_mirror: DBMirror,
                                tbl_mirror: TableMirror) -> bool:
        lower = tbl_mirror.get_environment_table(Environment.LOWER)
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        upper_db = config.resolve_database(db_mirror.name)
        acid = table_utils.is_acid(tbl_mirror.get_table_definition(Environment.LOWER))

        if config.storage.intermediate_storage:
            export_location = "%s/%s/%s" % (config.storage.intermediate_storage.rstrip("/"),
                                            db_mirror.name, tbl_mirror.name)
            import_location = export_location
        else:
            export_location = self.lower.export_dir(config, db_mirror, tbl_mirror)
            import_location = self.lower.qualify(self.lower.hcfs_namespace, export_location)

        if self.upper.leave_existing(config, tbl_mirror):
            return True

        self.lower.run_sql(config, "Export table",
                           sql.EXPORT_TABLE % (db_mirror.name, tbl_mirror.name, export_location),
                           lower, db_mirror.name, tbl_mirror.name)
        self.upper.run_sql(config, "Create database", sql.CREATE_DB % upper_db, upper,
                           db_mirror.name, tbl_mirror.name)
        if upper.create_strategy == CreateStrategy.REPLACE:
            self.upper.run_sql(config, "Drop table",
                               sql.DROP_TABLE % (upper_db, tbl_mirror.name),
                               upper, db_mirror.name, tbl_mirror.name)
        if acid:
            # managed ACID tables land in UPPER's managed warehouse
            statement = sql.IMPORT_TABLE % (upper_db, tbl_mirror.name, import_location)
        else:
            statement = sql.IMPORT_EXTERNAL_TABLE % (upper_db, tbl_mirror.name, import_location,
                                                     self.upper.upper_location(config, tbl_mirror))
        self.upper.run_sql(config, "Import table", statement,
                           upper, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("Transfer", StorageStrategy.EXPORT_IMPORT.value)
        return True

    def _transfer_distcp(self, config: Config, db_mirror: DBMirror,
                         tbl_mirror: TableMirror) -> bool:
        if not self.upper.build_upper_schema_with_upper_data(config, db_mirror, tbl_mirror):
            return False
        command = sql.DISTCP % (self.lower.lower_location(config, tbl_mirror),
                                self.upper.upper_location(config, tbl_mirror))
        tbl_mirror.add_action("distcp", command)
        self._logger.info("%s: run '%s' to copy the data" % (tbl_mirror.qualified_name, command))
        return True
