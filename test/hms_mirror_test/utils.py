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

import threading
import time

from hms_mirror.cluster import Cluster
from hms_mirror.config import Config
from hms_mirror.connection_pools import ConnectionPools
from hms_mirror.errors import SqlExecutionError
from hms_mirror.model.conversion import Conversion
from hms_mirror.model.db_mirror import DBMirror
from hms_mirror.model.enums import Environment, Stage


def text_table_definition(name="web_logs", location="/warehouse/logs.db/web_logs"):
    return [
        "CREATE TABLE `%s`(" % name,
        "  `id` bigint,",
        "  `msg` string)",
        "ROW FORMAT DELIMITED",
        "  FIELDS TERMINATED BY '|'",
        "  LINES TERMINATED BY '\\n'",
        "WITH SERDEPROPERTIES (",
        "  'escape.delim'='\\\\')",
        "STORED AS INPUTFORMAT",
        "  'org.apache.hadoop.mapred.TextInputFormat'",
        "OUTPUTFORMAT",
        "  'org.apache.hadoop.hive.ql.io.HiveIgnoreKeyTextOutputFormat'",
        "LOCATION",
        "  '%s'" % location,
        "TBLPROPERTIES (",
        "  'transient_lastDdlTime'='1613660000')",
    ]


def external_table_definition(name="events", location="hdfs://lower/warehouse/events",
                              partitioned=False):
    definition = ["CREATE EXTERNAL TABLE `%s`(" % name,
                  "  `id` bigint,",
                  "  `payload` string)"]
    if partitioned:
        definition += ["PARTITIONED BY (",
                       "  `dt` string)"]
    definition += [
        "ROW FORMAT SERDE",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcSerde'",
        "STORED AS INPUTFORMAT",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcInputFormat'",
        "OUTPUTFORMAT",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcOutputFormat'",
        "LOCATION",
        "  '%s'" % location,
        "TBLPROPERTIES (",
        "  'transient_lastDdlTime'='1613660000')",
    ]
    return definition


def acid_table_definition(name="orders", location="hdfs://lower/warehouse/managed/orders"):
    return [
        "CREATE TABLE `%s`(" % name,
        "  `id` bigint)",
        "ROW FORMAT SERDE",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcSerde'",
        "STORED AS INPUTFORMAT",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcInputFormat'",
        "OUTPUTFORMAT",
        "  'org.apache.hadoop.hive.ql.io.orc.OrcOutputFormat'",
        "LOCATION",
        "  '%s'" % location,
        "TBLPROPERTIES (",
        "  'transactional'='true',",
        "  'transient_lastDdlTime'='1613660000')",
    ]


def make_config(stage=Stage.METADATA, concurrency=4, execute=True):
    config = Config()
    config.stage = stage
    config.databases = ["logs"]
    config.execute = execute
    config.metadata.concurrency = concurrency
    config.storage.concurrency = concurrency
    config.get_cluster(Environment.LOWER).hcfs_namespace = "hdfs://lower"
    config.get_cluster(Environment.LOWER).hive_server2.uri = "jdbc:hive2://lower:10000"
    config.get_cluster(Environment.UPPER).hcfs_namespace = "hdfs://upper"
    config.get_cluster(Environment.UPPER).hive_server2.uri = "jdbc:hive2://upper:10000"
    return config


def make_conversion(config, tables: dict, database="logs"):
    """tables maps a table name to its LOWER definition."""
    conversion = Conversion(config)
    db_mirror = conversion.add_database(database)
    for name, definition in tables.items():
        tbl_mirror = db_mirror.add_table(name)
        tbl_mirror.set_table_definition(Environment.LOWER, definition)
    return conversion


class FakeRunner:
    """Stands in for HiveSQLRunner, answers from canned results."""

    def __init__(self, results=None, failures=None):
        self.results = results or {}
        self.failures = set(failures or [])
        self.executed = []
        self._lock = threading.Lock()

    def execute(self, sql, database=None, table=None):
        with self._lock:
            self.executed.append(sql)
        if sql in self.failures:
            raise SqlExecutionError(sql, 1, "FAILED: SemanticException")
        return list(self.results.get(sql, []))


class ConcurrencyTracker:
    def __init__(self):
        self._lock = threading.Lock()
        self.running = 0
        self.max_running = 0
        self.calls = []

    def enter(self, name):
        with self._lock:
            self.running += 1
            self.max_running = max(self.max_running, self.running)
            self.calls.append(name)

    def exit(self):
        with self._lock:
            self.running -= 1


class RecordingCluster:
    """Schema replication surface that records what the stage asked for."""

    def __init__(self, tracker=None, delay=0.0, fail_tables=None, raise_tables=None,
                 upper_tables=None):
        self.tracker = tracker or ConcurrencyTracker()
        self.upper_tables = dict(upper_tables or {})
        self.delay = delay
        self.fail_tables = set(fail_tables or [])
        self.raise_tables = set(raise_tables or [])

    def _call(self, method, tbl_mirror):
        self.tracker.enter((method, tbl_mirror.name))
        try:
            time.sleep(self.delay)
            if tbl_mirror.name in self.raise_tables:
                raise RuntimeError("metastore unreachable")
            return tbl_mirror.name not in self.fail_tables
        finally:
            self.tracker.exit()

    def get_table_definition(self, database, table):
        return self.upper_tables.get(table)

    def build_upper_schema_using_lower_data(self, config, db_mirror, tbl_mirror):
        return self._call("build_upper_schema_using_lower_data", tbl_mirror)

    def build_transfer_table_schema(self, config, database, db_mirror, tbl_mirror):
        return self._call("build_transfer_table_schema", tbl_mirror)

    def export_schema(self, config, database, db_mirror, tbl_mirror):
        return self._call("export_schema", tbl_mirror)

    def import_transfer_schema_using_lower_data(self, config, db_mirror, tbl_mirror):
        return self._call("import_transfer_schema_using_lower_data", tbl_mirror)


class RecordingTransfer(RecordingCluster):
    @property
    def upper(self):
        return self

    def transfer(self, strategy, config, db_mirror, tbl_mirror):
        return self._call("transfer_%s" % strategy.value, tbl_mirror)


def build_clusters(config, log_dir, lower_runner=None, upper_runner=None):
    pools = ConnectionPools(log_dir)
    pools.set_runner(Environment.LOWER, lower_runner or FakeRunner())
    pools.set_runner(Environment.UPPER, upper_runner or FakeRunner())
    return {env: Cluster(env, config.get_cluster(env), pools) for env in Environment}


def build_table(definition, name="events", upper_definition=None):
    db_mirror = DBMirror("logs")
    tbl_mirror = db_mirror.add_table(name)
    tbl_mirror.set_table_definition(Environment.LOWER, definition)
    if upper_definition is not None:
        tbl_mirror.set_table_definition(Environment.UPPER, upper_definition)
    # what the stage task does before dispatching
    tbl_mirror.get_environment_table(Environment.UPPER).definition = list(definition)
    return db_mirror, tbl_mirror
