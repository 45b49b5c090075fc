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

from hms_mirror.feature.base_feature import BaseFeature


class BadTextFileDefFeature(BaseFeature):
    '''
      Tables ALTERED with SERDEPROPERTIES after creation come back from the
      metastore like this, which Hive refuses to replay:

          ROW FORMAT DELIMITED
            FIELDS TERMINATED BY '|'
            LINES TERMINATED BY '\n'
          WITH SERDEPROPERTIES (
            'escape.delim'='\\')
          STORED AS INPUTFORMAT
            'org.apache.hadoop.mapred.TextInputFormat'

      The delimiters are moved into the SERDEPROPERTIES of an explicit
      LazySimpleSerDe declaration.
    '''

    name = "BadTextFileDefFeature"
    description = ("Table schema definitions that include both ROW FORMAT DELIMITED BY and "
                   "WITH SERDEPROPERTIES in the declaration aren't valid as a new schema when "
                   "you attempt to replay the schema. This happens when tables are ALTERED "
                   "with SERDEPROPERTIES after initial creation. The FIELDS TERMINATED BY and "
                   "LINES TERMINATED BY values are migrated into the SERDEPROPERTIES so the "
                   "schema can be successfully created.")

    ROW_FORMAT_DELIMITED = "ROW FORMAT DELIMITED"
    FIELDS_TERMINATED_BY = re.compile(r'FIELDS TERMINATED BY (.*)')
    LINES_TERMINATED_BY = re.compile(r'LINES TERMINATED BY (.*)')
    WITH_SERDEPROPERTIES = "WITH SERDEPROPERTIES"

    ROW_FORMAT_SERDE = "ROW FORMAT SERDE"
    LAZY_SERDE = "'org.apache.hadoop.hive.serde2.lazy.LazySimpleSerDe'"

    FORM_FEED = "\f"
    FORM_FEED_OCTAL = "\\014"

    def applicable(self, schema: list) -> bool:
        return (self.contains(self.ROW_FORMAT_DELIMITED, schema) and
                self.contains(self.WITH_SERDEPROPERTIES, schema))

    def fix_schema(self, schema: list) -> bool:
        if not self.applicable(schema):
            return False

        self._logger.debug("Table has an old TEXTFILE definition, moving delimiters to "
                           "SERDEPROPERTIES")
        ftb = self.get_group_for(self.FIELDS_TERMINATED_BY, schema)
        if ftb is not None:
            ftb = self._escape_form_feed(ftb)
        ltb = self.get_group_for(self.LINES_TERMINATED_BY, schema)

        rfd = self.index_of(schema, self.ROW_FORMAT_DELIMITED)
        ws = self.index_of(schema, self.WITH_SERDEPROPERTIES)
        self.remove_range(rfd, ws, schema)

        schema.insert(rfd, self.ROW_FORMAT_SERDE)
        schema.insert(rfd + 1, self.LAZY_SERDE)
        # rfd + 2 is the WITH SERDEPROPERTIES line, properties follow it
        idx = rfd + 3
        if ftb is not None:
            schema.insert(idx, "'field.delim'=" + ftb + ",")
            idx += 1
        if ltb is not None:
            schema.insert(idx, "'line.delim'=" + ltb + ",")
        return True

    def _escape_form_feed(self, value: str) -> str:
        if value.strip("'") == self.FORM_FEED:
            return "'" + self.FORM_FEED_OCTAL + "'"
        return value
