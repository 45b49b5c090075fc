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

import re

'''
  Accessors over a table definition as captured by "SHOW CREATE TABLE", one
  list entry per output line:

      CREATE EXTERNAL TABLE `web_logs`(
        `id` bigint,
        `msg` string)
      PARTITIONED BY (
        `dt` string)
      ROW FORMAT SERDE
        'org.apache.hadoop.hive.ql.io.orc.OrcSerde'
      STORED AS INPUTFORMAT
        'org.apache.hadoop.hive.ql.io.orc.OrcInputFormat'
      OUTPUTFORMAT
        'org.apache.hadoop.hive.ql.io.orc.OrcOutputFormat'
      LOCATION
        'hdfs://lower-ns/warehouse/tablespace/external/hive/logs.db/web_logs'
      TBLPROPERTIES (
        'transactional'='false',
        'transient_lastDdlTime'='1613660000')
'''

_IDENTIFIER = r'(?:`[^`]+`|[^\s(`.]+)'
_CREATE_TABLE = re.compile(r'^CREATE\s+(EXTERNAL\s+)?TABLE\s+(IF\s+NOT\s+EXISTS\s+)?(%s(?:\.%s)?)'
                           % (_IDENTIFIER, _IDENTIFIER), re.IGNORECASE)
_PROPERTY = re.compile(r"^\s*'([^']*)'\s*=\s*'([^']*)'\s*([,)]?)\s*$")
_COLUMN = re.compile(r'^\s*`?([^`\s]+)`?\s+(.+?)\s*[,)]?\s*$')


def _strip_quotes(value: str) -> str:
    return value.strip().strip("'").strip('"')


def _index_of_prefix(definition: list, prefix: str, start=0) -> int:
    for i in range(start, len(definition)):
        if definition[i].strip().upper().startswith(prefix):
            return i
    return -1


def _properties_range(definition: list):
    start = _index_of_prefix(definition, "TBLPROPERTIES")
    if start < 0:
        return -1, -1
    end = start + 1
    while end < len(definition):
        if definition[end].strip().endswith(")"):
            break
        end += 1
    return start, end


def get_tbl_properties(definition: list) -> dict:
    props = {}
    start, end = _properties_range(definition)
    if start < 0:
        return props
    for line in definition[start + 1: end + 1]:
        m = _PROPERTY.match(line)
        if m is not None:
            props[m.group(1)] = m.group(2)
    return props


def is_acid(definition: list) -> bool:
    props = get_tbl_properties(definition)
    return props.get("transactional", "false").lower() == "true"


def is_managed(definition: list) -> bool:
    if len(definition) == 0:
        return False
    m = _CREATE_TABLE.match(definition[0].strip())
    return m is not None and m.group(1) is None


def is_view(definition: list) -> bool:
    return len(definition) > 0 and re.match(r'^CREATE\s+VIEW', definition[0].strip(),
                                            re.IGNORECASE) is not None


def is_hive_native(definition: list) -> bool:
    # storage handler tables (hbase, kafka, jdbc...) can't be replayed elsewhere
    return _index_of_prefix(definition, "STORED BY") < 0


def is_partitioned(definition: list) -> bool:
    return _index_of_prefix(definition, "PARTITIONED BY") >= 0


def get_partition_columns(definition: list) -> list:
    start = _index_of_prefix(definition, "PARTITIONED BY")
    if start < 0:
        return []
    columns = []
    i = start + 1
    while i < len(definition):
        line = definition[i]
        m = _COLUMN.match(line)
        if m is not None:
            columns.append(m.group(1))
        if line.strip().endswith(")"):
            break
        i += 1
    return columns


def get_location(definition: list):
    idx = _index_of_prefix(definition, "LOCATION")
    if idx < 0:
        return None
    line = definition[idx].strip()
    # LOCATION may carry its value on the same line
    remainder = line[len("LOCATION"):].strip()
    if len(remainder) > 0:
        return _strip_quotes(remainder)
    if idx + 1 < len(definition):
        return _strip_quotes(definition[idx + 1])
    return None


def set_location(definition: list, location: str) -> bool:
    idx = _index_of_prefix(definition, "LOCATION")
    if idx < 0:
        return False
    if len(definition[idx].strip()) > len("LOCATION"):
        definition[idx] = "LOCATION '%s'" % location
    else:
        definition[idx + 1] = "  '%s'" % location
    return True


def change_table_name(definition: list, database: str, table: str) -> bool:
    if len(definition) == 0:
        return False
    first = definition[0]
    m = _CREATE_TABLE.match(first.strip())
    if m is None:
        return False
    external = "EXTERNAL " if m.group(1) is not None else ""
    rest = first.strip()[m.end():]
    definition[0] = "CREATE %sTABLE `%s`.`%s`%s" % (external, database, table, rest)
    return True


def to_external(definition: list) -> bool:
    if not is_managed(definition):
        return False
    definition[0] = re.sub(r'^(\s*)CREATE\s+TABLE', r'\1CREATE EXTERNAL TABLE', definition[0],
                           count=1, flags=re.IGNORECASE)
    return True


def upsert_tbl_property(definition: list, key: str, value: str):
    start, end = _properties_range(definition)
    if start < 0:
        definition.append("TBLPROPERTIES (")
        definition.append("  '%s'='%s')" % (key, value))
        return
    for i in range(start + 1, end + 1):
        m = _PROPERTY.match(definition[i])
        if m is not None and m.group(1) == key:
            definition[i] = "  '%s'='%s'%s" % (key, value, m.group(3))
            return
    definition.insert(start + 1, "  '%s'='%s'," % (key, value))


def remove_tbl_property(definition: list, key: str) -> bool:
    start, end = _properties_range(definition)
    if start < 0:
        return False
    for i in range(start + 1, end + 1):
        m = _PROPERTY.match(definition[i])
        if m is None or m.group(1) != key:
            continue
        if m.group(3) == ")":
            if i == start + 1:
                # the only property, drop the whole block
                del definition[start: i + 1]
            else:
                del definition[i]
                definition[i - 1] = definition[i - 1].rstrip().rstrip(",") + ")"
        else:
            del definition[i]
        return True
    return False


def to_create_statement(definition: list) -> str:
    return "\n".join(definition)
