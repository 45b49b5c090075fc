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

SHOW_DATABASES = "SHOW DATABASES"
SHOW_TABLES = "SHOW TABLES IN %s"
SHOW_CREATE_TABLE = "SHOW CREATE TABLE %s.%s"
SHOW_PARTITIONS = "SHOW PARTITIONS %s.%s"

CREATE_DB = "CREATE DATABASE IF NOT EXISTS %s"
DROP_TABLE = "DROP TABLE IF EXISTS %s.%s"
CREATE_LIKE_LOCATION = "CREATE EXTERNAL TABLE IF NOT EXISTS %s.%s LIKE %s.%s LOCATION '%s'"
MSCK_REPAIR = "MSCK REPAIR TABLE %s.%s"

EXPORT_METADATA = "EXPORT TABLE %s.%s TO '%s' FOR METADATA REPLICATION('hms-mirror')"
EXPORT_TABLE = "EXPORT TABLE %s.%s TO '%s'"
IMPORT_EXTERNAL_TABLE = "IMPORT EXTERNAL TABLE %s.%s FROM '%s' LOCATION '%s'"
IMPORT_TABLE = "IMPORT TABLE %s.%s FROM '%s'"

DYNAMIC_PARTITION_SETTINGS = ("SET hive.exec.dynamic.partition=true; "
                              "SET hive.exec.dynamic.partition.mode=nonstrict; ")
INSERT_OVERWRITE = "INSERT OVERWRITE TABLE %s.%s SELECT * FROM %s.%s"
INSERT_OVERWRITE_PARTITIONED = "INSERT OVERWRITE TABLE %s.%s PARTITION (%s) SELECT * FROM %s.%s"

DISTCP = "hadoop distcp -update -skipcrccheck %s %s"

SHADOW_PREFIX = "hms_mirror_shadow_"
METADATA_STAGE_PROPERTY = "hms-mirror_Metadata_Stage1"
STORAGE_STAGE_PROPERTY = "hms-mirror_Storage_Stage2"
EXTERNAL_PURGE_PROPERTY = "external.table.purge"
DISCOVER_PARTITIONS_PROPERTY = "discover.partitions"
LEGACY_MANAGED_PROPERTY = "hms-mirror_LegacyManaged"
