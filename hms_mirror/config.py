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

import os

import yaml

from hms_mirror.errors import ConfigurationError
from hms_mirror.model.enums import (Environment, MetadataStrategy, ReplicationStrategy, Stage,
                                    StorageStrategy, parse_enum)

'''
  Configuration file layout (YAML):

  databases: [db1, db2]
  dbRegEx: null
  tblRegEx: null
  dbPrefix: null
  transferPrefix: hms_mirror_transfer_
  exportBaseDirPrefix: /apps/hive/warehouse/export_
  shareStorage: false
  commitToUpper: false
  replicationStrategy: SYNCHRONIZE
  metadata:
    strategy: DIRECT
    concurrency: 4
  storage:
    strategy: HYBRID
    concurrency: 4
    migrateACID: false
    exportImportPartitionLimit: 100
    intermediateStorage: null
  clusters:
    LOWER:
      legacyHive: true
      hcfsNamespace: hdfs://lower
      hiveServer2:
        uri: jdbc:hive2://lower:10000
        beeline: beeline
        connectionProperties: {user: hive, password: ""}
    UPPER:
      ...
'''

DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".hms-mirror", "cfg", "default.yaml")


class HiveServer2Config:
    def __init__(self, uri=None, beeline="beeline", connection_properties=None):
        self.uri = uri
        self.beeline = beeline
        self.connection_properties = connection_properties or {}

    def to_dict(self):
        return {"uri": self.uri,
                "beeline": self.beeline,
                "connectionProperties": dict(self.connection_properties)}

    @classmethod
    def from_dict(cls, d: dict):
        d = d or {}
        return cls(d.get("uri"), d.get("beeline", "beeline"), d.get("connectionProperties"))


class ClusterConfig:
    def __init__(self, environment: Environment, hcfs_namespace=None, legacy_hive=False,
                 hive_server2=None):
        self.environment = environment
        self.hcfs_namespace = hcfs_namespace
        self.legacy_hive = legacy_hive
        self.hive_server2 = hive_server2 or HiveServer2Config()

    def to_dict(self):
        return {"hcfsNamespace": self.hcfs_namespace,
                "legacyHive": self.legacy_hive,
                "hiveServer2": self.hive_server2.to_dict()}

    @classmethod
    def from_dict(cls, environment: Environment, d: dict):
        d = d or {}
        return cls(environment,
                   d.get("hcfsNamespace"),
                   bool(d.get("legacyHive", False)),
                   HiveServer2Config.from_dict(d.get("hiveServer2")))


class MetadataConfig:
    def __init__(self, strategy=MetadataStrategy.DIRECT, concurrency=4):
        self.strategy = strategy
        self.concurrency = concurrency

    def to_dict(self):
        return {"strategy": self.strategy.value, "concurrency": self.concurrency}

    @classmethod
    def from_dict(cls, d: dict):
        d = d or {}
        strategy = d.get("strategy", MetadataStrategy.DIRECT.value)
        try:
            strategy = parse_enum(MetadataStrategy, strategy, "metadata strategy")
        except ValueError as e:
            raise ConfigurationError(str(e))
        return cls(strategy, int(d.get("concurrency", 4)))


class StorageConfig:
    def __init__(self, strategy=StorageStrategy.HYBRID, concurrency=4, migrate_acid=False,
                 export_import_partition_limit=100, intermediate_storage=None):
        self.strategy = strategy
        self.concurrency = concurrency
        self.migrate_acid = migrate_acid
        self.export_import_partition_limit = export_import_partition_limit
        self.intermediate_storage = intermediate_storage

    def to_dict(self):
        return {"strategy": self.strategy.value,
                "concurrency": self.concurrency,
                "migrateACID": self.migrate_acid,
                "exportImportPartitionLimit": self.export_import_partition_limit,
                "intermediateStorage": self.intermediate_storage}

    @classmethod
    def from_dict(cls, d: dict):
        d = d or {}
        strategy = d.get("strategy", StorageStrategy.HYBRID.value)
        try:
            strategy = parse_enum(StorageStrategy, strategy, "storage strategy")
        except ValueError as e:
            raise ConfigurationError(str(e))
        return cls(strategy,
                   int(d.get("concurrency", 4)),
                   bool(d.get("migrateACID", False)),
                   int(d.get("exportImportPartitionLimit", 100)),
                   d.get("intermediateStorage"))


class Config:
    def __init__(self):
        self.stage = None
        self.databases = []
        self.db_regex = None
        self.tbl_regex = None
        self.db_prefix = None
        self.transfer_prefix = "hms_mirror_transfer_"
        self.export_base_dir_prefix = "/apps/hive/warehouse/export_"
        self.share_storage = False
        self.commit_to_upper = False
        self.execute = False
        self.replication_strategy = ReplicationStrategy.SYNCHRONIZE
        self.metadata = MetadataConfig()
        self.storage = StorageConfig()
        self.clusters = {env: ClusterConfig(env) for env in Environment}

    def get_cluster(self, environment: Environment) -> ClusterConfig:
        return self.clusters[environment]

    def resolve_database(self, database: str) -> str:
        """Name of the database on the UPPER cluster."""
        if self.db_prefix:
            return self.db_prefix + database
        return database

    def concurrency_for(self, stage: Stage) -> int:
        if stage == Stage.METADATA:
            return self.metadata.concurrency
        return self.storage.concurrency

    def validate(self):
        if self.stage is None:
            raise ConfigurationError("Stage (METADATA|STORAGE) has not been specified.")
        if not self.databases and not self.db_regex:
            raise ConfigurationError("No databases specified")
        if not isinstance(self.metadata.strategy, MetadataStrategy):
            raise ConfigurationError("METADATA strategy can only be one of: DIRECT|TRANSITION")
        if not isinstance(self.storage.strategy, StorageStrategy):
            raise ConfigurationError(
                "STORAGE strategy can only be one of: SQL|EXPORT_IMPORT|HYBRID|DISTCP")
        if self.commit_to_upper and not self.share_storage:
            raise ConfigurationError(
                "Can't commit schema (purgeable) unless using 'Shared Storage'")
        if self.storage.migrate_acid:
            if self.stage != Stage.STORAGE or self.storage.strategy not in (
                    StorageStrategy.EXPORT_IMPORT, StorageStrategy.HYBRID):
                raise ConfigurationError("ACID migration only supported in STORAGE stage "
                                         "with the EXPORT_IMPORT or HYBRID strategies.")
        if self.concurrency_for(self.stage) < 1:
            raise ConfigurationError("Concurrency of the %s stage must be at least 1"
                                     % self.stage.value)

    def to_dict(self):
        return {
            "stage": self.stage.value if self.stage is not None else None,
            "databases": list(self.databases),
            "dbRegEx": self.db_regex,
            "tblRegEx": self.tbl_regex,
            "dbPrefix": self.db_prefix,
            "transferPrefix": self.transfer_prefix,
            "exportBaseDirPrefix": self.export_base_dir_prefix,
            "shareStorage": self.share_storage,
            "commitToUpper": self.commit_to_upper,
            "execute": self.execute,
            "replicationStrategy": self.replication_strategy.value,
            "metadata": self.metadata.to_dict(),
            "storage": self.storage.to_dict(),
            "clusters": {env.value: c.to_dict() for env, c in self.clusters.items()},
        }

    @classmethod
    def from_dict(cls, d: dict):
        if not isinstance(d, dict):
            raise ConfigurationError("Configuration must be a mapping, got %s" % type(d).__name__)
        config = cls()
        try:
            if d.get("stage") is not None:
                config.stage = parse_enum(Stage, d["stage"], "stage")
            config.replication_strategy = parse_enum(
                ReplicationStrategy,
                d.get("replicationStrategy", ReplicationStrategy.SYNCHRONIZE.value),
                "replication strategy")
        except ValueError as e:
            raise ConfigurationError(str(e))
        databases = d.get("databases") or []
        if isinstance(databases, str):
            databases = [db.strip() for db in databases.split(",") if db.strip()]
        config.databases = list(databases)
        config.db_regex = d.get("dbRegEx")
        config.tbl_regex = d.get("tblRegEx")
        config.db_prefix = d.get("dbPrefix")
        config.transfer_prefix = d.get("transferPrefix", config.transfer_prefix)
        config.export_base_dir_prefix = d.get("exportBaseDirPrefix",
                                              config.export_base_dir_prefix)
        config.share_storage = bool(d.get("shareStorage", False))
        config.commit_to_upper = bool(d.get("commitToUpper", False))
        config.execute = bool(d.get("execute", False))
        config.metadata = MetadataConfig.from_dict(d.get("metadata"))
        config.storage = StorageConfig.from_dict(d.get("storage"))
        clusters = d.get("clusters") or {}
        for env in Environment:
            config.clusters[env] = ClusterConfig.from_dict(env, clusters.get(env.value))
        return config

    @classmethod
    def load(cls, path: str):
        if not os.path.exists(path):
            raise ConfigurationError("Couldn't locate configuration file: " + path)
        try:
            with open(path, "r", encoding="utf-8") as fd:
                d = yaml.safe_load(fd)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError("Couldn't read configuration file %s: %s" % (path, e))
        return cls.from_dict(d or {})

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)
