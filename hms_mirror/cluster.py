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
import time

from urllib.parse import urlparse

from hms_mirror import sql
from hms_mirror.config import Config, ClusterConfig
from hms_mirror.errors import MirrorException, SqlExecutionError
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import CreateStrategy, Environment, ReplicationStrategy
from hms_mirror.model.environment_table import EnvironmentTable
from hms_mirror.model.table_mirror import TableMirror
from hms_mirror.utils import table_utils


class Cluster:
    """One side of the migration.

    Reads the metastore for the setup pass and replicates schemas for the
    metadata stage. Every statement that changes a cluster goes through
    run_sql, which records it in the table's SQL log and only executes it
    when the run is not a dry-run.
    """

    def __init__(self, environment: Environment, cluster_config: ClusterConfig, pools,
                 logger=None):
        self.environment = environment
        self.cluster_config = cluster_config
        self._pools = pools
        self._logger = logger or logging.getLogger("cluster")

    @property
    def hcfs_namespace(self):
        return self.cluster_config.hcfs_namespace

    def _runner(self):
        return self._pools.get_runner(self.environment)

    # metastore reads

    def get_databases(self) -> list:
        return [line.strip() for line in self._runner().execute(sql.SHOW_DATABASES)]

    def get_tables(self, database: str) -> list:
        return [line.strip() for line in self._runner().execute(sql.SHOW_TABLES % database,
                                                                database)]

    def get_table_definition(self, database: str, table: str):
        """Captured DDL lines, or None when the table doesn't exist on this cluster."""
        try:
            lines = self._runner().execute(sql.SHOW_CREATE_TABLE % (database, table),
                                           database,
                                           table)
        except SqlExecutionError as e:
            self._logger.debug("%s: no definition for %s.%s: %s" % (self.environment.value,
                                                                     database,
                                                                     table,
                                                                     e))
            return None
        return [line.rstrip() for line in lines]

    def get_partitions(self, database: str, table: str) -> list:
        return [line.strip() for line in self._runner().execute(
            sql.SHOW_PARTITIONS % (database, table), database, table)]

    def run_sql(self, config: Config, description: str, statement: str,
                env_table: EnvironmentTable, database=None, table=None):
        env_table.add_sql(description, statement)
        if config.execute:
            self._runner().execute(statement, database, table)
        else:
            self._logger.debug("DRY-RUN %s: %s" % (description, statement))

    # schema replication

    def build_upper_schema_using_lower_data(self, config: Config, db_mirror: DBMirror,
                                            tbl_mirror: TableMirror) -> bool:
        """Creates the UPPER table straight from the LOWER definition, over LOWER's data."""
        if not self._finalize_upper_definition(config, db_mirror, tbl_mirror, relocate=False):
            return False
        return self.create_upper_table(config, db_mirror, tbl_mirror,
                                       "Create table using LOWER data")

    def build_upper_schema_with_upper_data(self, config: Config, db_mirror: DBMirror,
                                           tbl_mirror: TableMirror) -> bool:
        """Creates the UPPER table located on UPPER's own storage."""
        if not self._finalize_upper_definition(config, db_mirror, tbl_mirror, relocate=True):
            return False
        return self.create_upper_table(config, db_mirror, tbl_mirror, "Create table")

    def build_transfer_table_schema(self, config: Config, database: str, db_mirror: DBMirror,
                                    tbl_mirror: TableMirror) -> bool:
        lower = tbl_mirror.get_environment_table(Environment.LOWER)
        location = self.lower_location(config, tbl_mirror)
        self.run_sql(config, "Create transfer database", sql.CREATE_DB % database, lower,
                     db_mirror.name, tbl_mirror.name)
        self.run_sql(config, "Drop transfer table",
                     sql.DROP_TABLE % (database, tbl_mirror.name), lower,
                     db_mirror.name, tbl_mirror.name)
        self.run_sql(config, "Create transfer table",
                     sql.CREATE_LIKE_LOCATION % (database, tbl_mirror.name,
                                                 db_mirror.name, tbl_mirror.name, location),
                     lower, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("Transfer schema", "%s.%s" % (database, tbl_mirror.name))
        return True

    def export_schema(self, config: Config, database: str, db_mirror: DBMirror,
                      tbl_mirror: TableMirror) -> bool:
        lower = tbl_mirror.get_environment_table(Environment.LOWER)
        export_dir = self.export_dir(config, db_mirror, tbl_mirror)
        self.run_sql(config, "Export transfer schema",
                     sql.EXPORT_METADATA % (database, tbl_mirror.name, export_dir),
                     lower, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("Export", export_dir)
        return True

    def import_transfer_schema_using_lower_data(self, config: Config, db_mirror: DBMirror,
                                                tbl_mirror: TableMirror) -> bool:
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        upper_db = config.resolve_database(db_mirror.name)
        if self.leave_existing(config, tbl_mirror):
            return True

        location = self.lower_location(config, tbl_mirror)
        export_dir = self.export_dir(config, db_mirror, tbl_mirror)
        # UPPER reads the export straight off LOWER's filesystem
        export_uri = self.qualify(config.get_cluster(Environment.LOWER).hcfs_namespace,
                                   export_dir)

        self.run_sql(config, "Create database", sql.CREATE_DB % upper_db, upper,
                     db_mirror.name, tbl_mirror.name)
        if upper.create_strategy == CreateStrategy.REPLACE:
            self.run_sql(config, "Drop table", sql.DROP_TABLE % (upper_db, tbl_mirror.name),
                         upper, db_mirror.name, tbl_mirror.name)
        self.run_sql(config, "Import transfer schema",
                     sql.IMPORT_EXTERNAL_TABLE % (upper_db, tbl_mirror.name, export_uri, location),
                     upper, db_mirror.name, tbl_mirror.name)
        if table_utils.is_partitioned(tbl_mirror.get_table_definition(Environment.LOWER)):
            self.run_sql(config, "Discover partitions",
                         sql.MSCK_REPAIR % (upper_db, tbl_mirror.name),
                         upper, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("UPPER schema", "IMPORTED")
        return True

    def create_upper_table(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror,
                           description: str) -> bool:
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        upper_db = config.resolve_database(db_mirror.name)
        if self.leave_existing(config, tbl_mirror):
            return True

        self.run_sql(config, "Create database", sql.CREATE_DB % upper_db, upper,
                     db_mirror.name, tbl_mirror.name)
        if upper.create_strategy == CreateStrategy.REPLACE:
            self.run_sql(config, "Drop table", sql.DROP_TABLE % (upper_db, tbl_mirror.name),
                         upper, db_mirror.name, tbl_mirror.name)
        self.run_sql(config, description, table_utils.to_create_statement(upper.definition),
                     upper, db_mirror.name, tbl_mirror.name)
        if table_utils.is_partitioned(upper.definition):
            self.run_sql(config, "Discover partitions",
                         sql.MSCK_REPAIR % (upper_db, tbl_mirror.name),
                         upper, db_mirror.name, tbl_mirror.name)
        tbl_mirror.add_action("UPPER schema", upper.create_strategy.value)
        return True

    # helpers

    def lower_location(self, config: Config, tbl_mirror: TableMirror) -> str:
        location = table_utils.get_location(tbl_mirror.get_table_definition(Environment.LOWER))
        if location is None:
            raise MirrorException("No LOCATION found in the LOWER definition of %s"
                                  % tbl_mirror.qualified_name)
        return self.qualify(config.get_cluster(Environment.LOWER).hcfs_namespace, location)

    def upper_location(self, config: Config, tbl_mirror: TableMirror) -> str:
        location = self.lower_location(config, tbl_mirror)
        if config.share_storage:
            return location
        return self.qualify(config.get_cluster(Environment.UPPER).hcfs_namespace,
                             urlparse(location).path)

    def export_dir(self, config: Config, db_mirror: DBMirror, tbl_mirror: TableMirror) -> str:
        return "%s%s/%s" % (config.export_base_dir_prefix, db_mirror.name, tbl_mirror.name)

    @staticmethod
    def qualify(namespace, location: str) -> str:
        if namespace and location.startswith("/"):
            return namespace.rstrip("/") + location
        return location

    def leave_existing(self, config: Config, tbl_mirror: TableMirror) -> bool:
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        if not upper.exists:
            upper.create_strategy = CreateStrategy.CREATE
            return False
        if config.replication_strategy == ReplicationStrategy.OVERWRITE:
            upper.create_strategy = CreateStrategy.REPLACE
            return False
        upper.create_strategy = CreateStrategy.LEAVE
        upper.add_issue("Schema exists already, no action taken (%s)"
                        % config.replication_strategy.value)
        tbl_mirror.add_action("UPPER schema", CreateStrategy.LEAVE.value)
        return True

    def _finalize_upper_definition(self, config: Config, db_mirror: DBMirror,
                                   tbl_mirror: TableMirror, relocate: bool) -> bool:
        upper = tbl_mirror.get_environment_table(Environment.UPPER)
        definition = upper.definition
        if len(definition) == 0:
            raise MirrorException("No definition captured for %s" % tbl_mirror.qualified_name)
        if table_utils.is_view(definition):
            tbl_mirror.add_issue("Views are not replicated, recreate them on UPPER once their "
                                 "tables are mirrored")
            return False
        if not table_utils.is_hive_native(definition):
            tbl_mirror.add_issue("Non-native (storage handler) tables can't be replicated")
            return False

        table_utils.change_table_name(definition, config.resolve_database(db_mirror.name),
                                      tbl_mirror.name)
        if relocate:
            table_utils.set_location(definition, self.upper_location(config, tbl_mirror))
        else:
            table_utils.set_location(definition, self.lower_location(config, tbl_mirror))

        if table_utils.to_external(definition):
            self._add_property(upper, sql.LEGACY_MANAGED_PROPERTY, "true")
            if relocate or config.commit_to_upper:
                self._add_property(upper, sql.EXTERNAL_PURGE_PROPERTY, "true")
        table_utils.remove_tbl_property(definition, "transient_lastDdlTime")

        stage_property = sql.STORAGE_STAGE_PROPERTY if relocate else sql.METADATA_STAGE_PROPERTY
        self._add_property(upper, stage_property, time.strftime("%Y-%m-%d %H:%M:%S"))
        if table_utils.is_partitioned(definition) and not self.cluster_config.legacy_hive:
            self._add_property(upper, sql.DISCOVER_PARTITIONS_PROPERTY, "true")
        return True

    @staticmethod
    def _add_property(env_table: EnvironmentTable, key: str, value: str):
        table_utils.upsert_tbl_property(env_table.definition, key, value)
        env_table.add_property(key, value)
